"""Sugarlift package initialization."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from importlib import metadata
from pathlib import Path


APP_NAME = "Sugarlift"


def _find_pyproject(start: Path) -> Path | None:
    for candidate in (start, *start.parents):
        path = candidate / "pyproject.toml"
        if path.is_file():
            return path
    return None


def _read_version_from_pyproject(pyproject: Path) -> str | None:
    try:
        with pyproject.open("rb") as handle:
            data = tomllib.load(handle)
    except OSError:  # pragma: no cover - filesystem errors
        return None

    project = data.get("project")
    if not isinstance(project, dict):
        return None

    if project.get("name") != "sugarlift":
        return None

    version = project.get("version")
    if not isinstance(version, str) or not version.strip():
        return None

    return version.strip()


@lru_cache(maxsize=1)
def get_version() -> str:
    """Return the Sugarlift version.

    A source checkout reads `[project].version` from `pyproject.toml`; an installed package falls
    back to the distribution metadata generated from the same file.
    """

    pyproject = _find_pyproject(Path(__file__).resolve().parent)
    if pyproject is not None:
        version = _read_version_from_pyproject(pyproject)
        if version is not None:
            return version

    try:
        return metadata.version("sugarlift")
    except metadata.PackageNotFoundError as exc:  # pragma: no cover - occurs in dev
        raise RuntimeError("Unable to determine Sugarlift version.") from exc


def app_signature() -> str:
    """Return `"Sugarlift <version>"`, used as the data item App-Name tag and HTTP user agent."""

    return f"{APP_NAME} {get_version()}"


__all__ = ["APP_NAME", "app_signature", "get_version"]
