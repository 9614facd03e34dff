"""Entry point for `python -m sugarlift`."""

from sugarlift.cli.app import app


def main() -> None:
    """Invoke the CLI application."""

    app()


if __name__ == "__main__":
    main()
