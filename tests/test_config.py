"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from sugarlift.config import load_config


def _write_yaml(path: Path, payload: dict) -> None:
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")


def test_load_config_merges_default_and_local(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_payload = {
        "version": 1,
        "logging": {"level": "info"},
        "solana": {"rpc_url": "https://api.devnet.solana.com/"},
        "upload": {"parallel_limit": 45, "fee_multiplier": 1.1},
        "storage": {"assets_dir": "assets", "cache_path": "cache.json"},
    }
    local_payload = {
        "logging": {"level": "warn"},
        "bundlr": {"node": "https://node2.bundlr.network/"},
        "upload": {"parallel_limit": 8},
    }

    _write_yaml(config_dir / "default.yaml", default_payload)
    _write_yaml(config_dir / "local.yaml", local_payload)

    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config.logging.level == "warn"
    assert config.upload.parallel_limit == 8
    assert config.upload.fee_multiplier == pytest.approx(1.1)
    assert config.upload.funding_max_attempts == 120
    assert config.solana.rpc_url == "https://api.devnet.solana.com"
    assert config.bundlr.node == "https://node2.bundlr.network"
    assert config.storage.cache_path == Path("cache.json")
    assert len(config.loaded_from) == 2


def test_load_config_with_explicit_override(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    _write_yaml(config_dir / "default.yaml", {"logging": {"level": "warn"}})
    _write_yaml(config_dir / "local.yaml", {"logging": {"level": "error"}})
    override_path = tmp_path / "extra.yaml"
    _write_yaml(override_path, {"upload": {"parallel_limit": 3}})

    monkeypatch.chdir(tmp_path)

    config = load_config(override_path)

    assert config.logging.level == "info"
    assert config.upload.parallel_limit == 3
    assert config.loaded_from == (str(override_path),)


def test_load_config_falls_back_to_packaged_default(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config.upload.parallel_limit == 45
    assert config.upload.header_size == 2000
    assert config.upload.minimum_size == 10000
    assert config.bundlr.node is None


def test_load_config_rejects_invalid_values(tmp_path, monkeypatch):
    override_path = tmp_path / "bad.yaml"
    _write_yaml(override_path, {"upload": {"fee_multiplier": 0.5}})
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ValueError, match="Invalid configuration"):
        load_config(override_path)


def test_load_config_rejects_unknown_keys(tmp_path, monkeypatch):
    override_path = tmp_path / "bad.yaml"
    _write_yaml(override_path, {"upload": {"threads": 4}})
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ValueError):
        load_config(override_path)


def test_load_config_missing_explicit_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")
