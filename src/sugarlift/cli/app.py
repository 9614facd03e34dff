"""Command line interface for Sugarlift."""

from __future__ import annotations

import asyncio
import json
import logging
import pathlib
import signal
import sys
from typing import Optional

import httpx
import typer
import yaml
from dotenv import load_dotenv

from sugarlift import app_signature, get_version
from sugarlift.config import Config, load_config
from sugarlift.core.assets import AssetPair, discover_assets
from sugarlift.core.errors import InsufficientBalanceError, SugarliftError, UploadAborted
from sugarlift.core.estimator import FeeEstimator
from sugarlift.core.funding import FundingGate
from sugarlift.core.pipeline import PipelineReport, UploadPipeline
from sugarlift.core.scheduler import UploadScheduler
from sugarlift.core.uploader import BundlrUploader
from sugarlift.logging import configure_logging
from sugarlift.network.bundlr import BundlrClient, BundlrError
from sugarlift.network.dataitem import DataItemSigner
from sugarlift.network.solana import (
    Keypair,
    SolanaCliTransfer,
    bundlr_node_for,
    detect_cluster,
    format_sol,
)
from sugarlift.storage import Cache
from sugarlift.ui import Spinner

EXIT_FAILED = 1
EXIT_PREFLIGHT = 2
EXIT_ABORTED = 130

app = typer.Typer(
    name="sugarlift",
    help="Upload NFT assets to Bundlr/Arweave and track the links in a local cache.",
    no_args_is_help=True,
    add_completion=False,
)

config_app = typer.Typer(help="Configuration utilities.", no_args_is_help=True)
app.add_typer(config_app, name="config")


def _load_environment(env_file: Optional[pathlib.Path]) -> None:
    """Load environment variables from .env files."""

    if env_file is not None:
        load_dotenv(dotenv_path=env_file, override=True)
    else:
        load_dotenv(override=False)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(get_version())
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[pathlib.Path] = typer.Option(
        None,
        "--config",
        metavar="PATH",
        help="Path to YAML configuration file (used exclusively).",
    ),
    env_file: Optional[pathlib.Path] = typer.Option(
        None,
        "--env-file",
        metavar="PATH",
        help="Load environment variables from .env-style file before execution.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        metavar="LEVEL",
        help="Override the configured log level (debug, info, warn, error).",
    ),
    log_path: Optional[pathlib.Path] = typer.Option(
        None,
        "--log-path",
        metavar="PATH",
        help="Override the base directory or file for log output.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Mirror log records to the terminal (stderr).",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show Sugarlift version and exit.",
    ),
) -> None:
    """CLI root; loads configuration, logging, and shared context."""

    ctx.ensure_object(dict)
    _load_environment(env_file)

    try:
        config_obj = load_config(config)
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc

    logger = configure_logging(
        log_path=log_path or config_obj.logging.path,
        level=(log_level or config_obj.logging.level).upper(),
        mirror_to_console=verbose,
    )
    ctx.obj.update({"config": config_obj, "config_path": config, "logger": logger})


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    format: str = typer.Option("yaml", "--format", help="Output format (yaml or json)."),
) -> None:
    """Show the effective configuration for this invocation."""

    config: Config = ctx.obj["config"]
    normalized_format = format.strip().lower()
    if normalized_format not in {"yaml", "json"}:
        raise typer.BadParameter("Format must be 'yaml' or 'json'.", param_hint="--format")

    for entry in config.loaded_from:
        typer.echo(f"# loaded from {entry}", err=True)

    data = config.model.model_dump(mode="json")
    if normalized_format == "json":
        typer.echo(json.dumps(data, indent=2))
    else:
        typer.echo(yaml.safe_dump(data, sort_keys=False))


@app.command()
def version() -> None:
    """Print the Sugarlift version."""

    typer.echo(get_version())


@app.command()
def estimate(
    ctx: typer.Context,
    assets_dir: Optional[pathlib.Path] = typer.Argument(
        None, help="Directory holding N.json / N.<ext> asset files."
    ),
    cache_path: Optional[pathlib.Path] = typer.Option(
        None, "--cache", metavar="PATH", help="Cache file to resume from."
    ),
) -> None:
    """Print the upload size and Bundlr cost of the files not uploaded yet."""

    config: Config = ctx.obj["config"]
    logger: logging.Logger = ctx.obj["logger"]
    assets, cache = _load_inputs(config, assets_dir, cache_path)
    keypair = _load_keypair(config)
    node = _resolve_node(config, logger)

    async def run() -> None:
        async with _bundlr_client(config, node) as client:
            pipeline = _build_pipeline(config, logger, client, cache, keypair, show_progress=False)
            plan, fee = await pipeline.estimate(assets)
            typer.echo(
                f"images={len(plan.images)} animations={len(plan.animations)} "
                f"metadata={len(plan.metadata)}"
            )
            typer.echo(f"Total upload size: {fee.total_size} bytes")
            typer.echo(f"Required balance: {fee.required} lamports (◎ {format_sol(fee.required)})")

    try:
        asyncio.run(run())
    except (SugarliftError, BundlrError, OSError, ValueError) as exc:
        logger.error("Estimate failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_PREFLIGHT) from exc


@app.command()
def upload(
    ctx: typer.Context,
    assets_dir: Optional[pathlib.Path] = typer.Argument(
        None, help="Directory holding N.json / N.<ext> asset files."
    ),
    cache_path: Optional[pathlib.Path] = typer.Option(
        None, "--cache", metavar="PATH", help="Cache file recording uploaded links."
    ),
    parallel: Optional[int] = typer.Option(
        None, "--parallel", min=1, max=256, help="Override the number of concurrent uploads."
    ),
) -> None:
    """Fund the Bundlr balance if needed and upload every asset missing from the cache."""

    config: Config = ctx.obj["config"]
    logger: logging.Logger = ctx.obj["logger"]
    assets, cache = _load_inputs(config, assets_dir, cache_path)
    keypair = _load_keypair(config)
    node = _resolve_node(config, logger)
    interactive = sys.stderr.isatty()

    typer.echo(f"Uploading {len(assets)} asset(s) via {node} (Ctrl+C to abort)")
    stop_event = asyncio.Event()
    def _handle_signal() -> None:
        logger.info("Interrupt received; stopping upload after in-flight requests.")
        stop_event.set()

    async def run() -> PipelineReport:
        loop = asyncio.get_running_loop()
        installed = _install_signal_handlers(loop, _handle_signal)
        try:
            async with _bundlr_client(config, node) as client:
                pipeline = _build_pipeline(
                    config,
                    logger,
                    client,
                    cache,
                    keypair,
                    show_progress=interactive,
                    parallel_override=parallel,
                )
                return await pipeline.run(assets, stop_event)
        finally:
            _restore_signal_handlers(loop, installed)

    try:
        report = asyncio.run(run())
    except UploadAborted as exc:
        typer.secho("Upload aborted by user.", fg=typer.colors.RED, bold=True, err=True)
        if isinstance(exc.report, PipelineReport):
            _emit_errors(exc.report)
        raise typer.Exit(code=EXIT_ABORTED) from exc
    except InsufficientBalanceError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_PREFLIGHT) from exc
    except (SugarliftError, BundlrError, httpx.HTTPError, OSError, ValueError) as exc:
        logger.error("Upload failed before completion: %s", exc)
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_PREFLIGHT) from exc

    if stop_event.is_set():
        # interrupted after the last dispatch; every started upload is in the cache
        typer.secho("Upload aborted by user.", fg=typer.colors.RED, bold=True, err=True)
        _emit_errors(report)
        raise typer.Exit(code=EXIT_ABORTED)

    if report.status == "failed":
        typer.secho("Upload failed (see error list).", fg=typer.colors.RED, bold=True, err=True)
        _emit_errors(report)
        typer.echo("Re-run the command to retry the failed files.", err=True)
        raise typer.Exit(code=EXIT_FAILED)

    typer.secho(
        f"Upload successful: {report.uploaded} file(s) uploaded.", fg=typer.colors.GREEN, bold=True
    )


def _load_inputs(
    config: Config,
    assets_dir: Optional[pathlib.Path],
    cache_path: Optional[pathlib.Path],
) -> tuple[dict[int, AssetPair], Cache]:
    directory = assets_dir or config.storage.assets_dir
    try:
        assets = discover_assets(directory)
        cache = Cache.load(cache_path or config.storage.cache_path)
    except (OSError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_PREFLIGHT) from exc
    if not assets:
        typer.echo(f"No assets found in {directory}.", err=True)
        raise typer.Exit(code=EXIT_PREFLIGHT)
    return assets, cache


def _load_keypair(config: Config) -> Keypair:
    try:
        return Keypair.from_file(config.solana.keypair)
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_PREFLIGHT) from exc


def _resolve_node(config: Config, logger: logging.Logger) -> str:
    if config.bundlr.node:
        return config.bundlr.node
    try:
        cluster = detect_cluster(config.solana.rpc_url, timeout=config.bundlr.timeout_seconds)
    except (httpx.HTTPError, ValueError) as exc:
        typer.echo(f"Error: unable to determine Solana cluster: {exc}", err=True)
        raise typer.Exit(code=EXIT_PREFLIGHT) from exc
    node = bundlr_node_for(cluster)
    logger.info("Detected cluster %s; using Bundlr node %s", cluster.value, node)
    return node


def _bundlr_client(config: Config, node: str) -> BundlrClient:
    return BundlrClient(
        node=node,
        http=httpx.AsyncClient(
            timeout=config.bundlr.timeout_seconds,
            headers={"User-Agent": app_signature()},
        ),
    )


def _build_pipeline(
    config: Config,
    logger: logging.Logger,
    client: BundlrClient,
    cache: Cache,
    keypair: Keypair,
    *,
    show_progress: bool,
    parallel_override: int | None = None,
) -> UploadPipeline:
    settings = config.upload
    uploader = BundlrUploader(
        client=client,
        signer=DataItemSigner(keypair.seed),
        settings=settings,
        logger=logger,
    )
    gate = FundingGate(
        oracle=client,
        transfer=SolanaCliTransfer(
            keypair_path=config.solana.keypair,
            rpc_url=config.solana.rpc_url,
            executable=config.solana.cli_path,
        ),
        logger=logger,
        max_attempts=settings.funding_max_attempts,
        poll_interval=settings.funding_poll_seconds,
        spinner=Spinner(enabled=show_progress),
    )
    scheduler = UploadScheduler(
        uploader=uploader,
        cache=cache,
        logger=logger,
        parallel_limit=parallel_override or settings.parallel_limit,
        show_progress=show_progress,
    )
    return UploadPipeline(
        estimator=FeeEstimator(oracle=client, settings=settings, logger=logger),
        gate=gate,
        scheduler=scheduler,
        cache=cache,
        address=keypair.address,
        logger=logger,
    )


def _emit_errors(report: PipelineReport) -> None:
    for error in report.errors:
        typer.echo(f"  - {error}", err=True)


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop, handler
) -> list[tuple[str, int, object]]:
    installed: list[tuple[str, int, object]] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handler)
            installed.append(("loop", sig, None))
        except (NotImplementedError, RuntimeError):
            previous = signal.getsignal(sig)

            def _handler(*_args):  # type: ignore[no-untyped-def]
                loop.call_soon_threadsafe(handler)

            signal.signal(sig, _handler)
            installed.append(("signal", sig, previous))
    return installed


def _restore_signal_handlers(
    loop: asyncio.AbstractEventLoop, installed: list[tuple[str, int, object]]
) -> None:
    for kind, sig, previous in installed:
        if kind == "loop":
            loop.remove_signal_handler(sig)
        else:
            signal.signal(sig, previous)
