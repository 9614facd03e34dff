"""CLI tests using Typer's test runner."""

from __future__ import annotations

import json
import logging

import pytest
import yaml
from rich.logging import RichHandler
from typer.testing import CliRunner

from sugarlift import get_version
from sugarlift.cli import app as cli_module
from sugarlift.core.assets import DataType
from sugarlift.core.errors import UploadAborted, UploadError, UploadErrorKind
from sugarlift.core.pipeline import PipelineReport, UploadPlan
from sugarlift.core.scheduler import UploadResult

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch, add_asset):
    monkeypatch.chdir(tmp_path)
    add_asset(0)
    keypair = tmp_path / "id.json"
    keypair.write_text(json.dumps([7] * 64), encoding="utf-8")
    config_path = tmp_path / "sugarlift.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "logging": {"path": str(tmp_path / "logs")},
                "solana": {"keypair": str(keypair)},
                "bundlr": {"node": "https://node.example"},
                "storage": {
                    "assets_dir": str(tmp_path / "assets"),
                    "cache_path": str(tmp_path / "cache.json"),
                },
            }
        ),
        encoding="utf-8",
    )
    return config_path


class _NullClient:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None


class _StubPipeline:
    def __init__(self, outcome, interrupt: bool = False) -> None:
        self.outcome = outcome
        self.interrupt = interrupt

    async def run(self, assets, stop_event=None):
        if self.interrupt:
            stop_event.set()
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _patch_pipeline(monkeypatch, outcome, interrupt: bool = False) -> None:
    monkeypatch.setattr(cli_module, "_bundlr_client", lambda config, node: _NullClient())
    monkeypatch.setattr(
        cli_module, "_build_pipeline", lambda *args, **kwargs: _StubPipeline(outcome, interrupt)
    )


def _report(errors=(), aborted=False) -> PipelineReport:
    stage = UploadResult(data_type=DataType.IMAGE, total=1, uploaded=0 if errors else 1)
    stage.errors.extend(errors)
    stage.aborted = aborted
    return PipelineReport(plan=UploadPlan(images=[0], metadata=[0]), stages=[stage])


def test_version_command(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(cli_module.app, ["version"])

    assert result.exit_code == 0
    assert get_version() in result.stdout


def test_config_show_json(workspace):
    result = runner.invoke(
        cli_module.app, ["--config", str(workspace), "config", "show", "--format", "json"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["bundlr"]["node"] == "https://node.example"
    assert payload["upload"]["parallel_limit"] == 45


def test_config_show_rejects_unknown_format(workspace):
    result = runner.invoke(
        cli_module.app, ["--config", str(workspace), "config", "show", "--format", "toml"]
    )

    assert result.exit_code != 0


def test_upload_missing_assets_dir_is_preflight_error(workspace, tmp_path):
    result = runner.invoke(
        cli_module.app, ["--config", str(workspace), "upload", str(tmp_path / "missing")]
    )

    assert result.exit_code == cli_module.EXIT_PREFLIGHT


def test_upload_successful(workspace, monkeypatch):
    _patch_pipeline(monkeypatch, _report())

    result = runner.invoke(cli_module.app, ["--config", str(workspace), "upload"])

    assert result.exit_code == 0, result.output
    assert "Upload successful" in result.stdout


def test_upload_failed_lists_errors(workspace, monkeypatch):
    error = UploadError(UploadErrorKind.SEND_DATA_FAILED, "Bundlr upload error: boom", "0")
    _patch_pipeline(monkeypatch, _report(errors=[error]))

    result = runner.invoke(cli_module.app, ["--config", str(workspace), "upload"])

    assert result.exit_code == cli_module.EXIT_FAILED
    assert "[0] Bundlr upload error: boom" in result.output


def test_upload_aborted_exit_code(workspace, monkeypatch):
    aborted = UploadAborted("Upload aborted", report=_report(aborted=True))
    _patch_pipeline(monkeypatch, aborted)

    result = runner.invoke(cli_module.app, ["--config", str(workspace), "upload"])

    assert result.exit_code == cli_module.EXIT_ABORTED
    assert "aborted by user" in result.output


def test_upload_interrupted_after_last_dispatch_exits_aborted(workspace, monkeypatch):
    _patch_pipeline(monkeypatch, _report(), interrupt=True)

    result = runner.invoke(cli_module.app, ["--config", str(workspace), "upload"])

    assert result.exit_code == cli_module.EXIT_ABORTED
    assert "aborted by user" in result.output
    assert "Upload successful" not in result.output


def test_verbose_mirrors_logs_to_console(workspace):
    result = runner.invoke(
        cli_module.app, ["--config", str(workspace), "--verbose", "config", "show"]
    )

    assert result.exit_code == 0, result.output
    logger = logging.getLogger("sugarlift")
    assert any(isinstance(handler, RichHandler) for handler in logger.handlers)
