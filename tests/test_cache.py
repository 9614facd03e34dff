"""Tests for the JSON link cache."""

from __future__ import annotations

import json
import os

import pytest

from sugarlift.core.assets import DataType, discover_assets
from sugarlift.storage import Cache, CacheItem


def test_load_missing_file_returns_empty_cache(tmp_path):
    cache = Cache.load(tmp_path / "cache.json")

    assert cache.items == {}
    assert not (tmp_path / "cache.json").exists()


def test_sync_round_trip_preserves_unknown_keys(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(
        json.dumps(
            {
                "program": {"candyMachine": "CM111"},
                "items": {
                    "0": {
                        "name": "Asset #0",
                        "image_link": "https://arweave.net/a",
                        "metadata_link": "",
                        "onChain": True,
                    }
                },
            }
        ),
        encoding="utf-8",
    )

    cache = Cache.load(path)
    cache.items["0"].set_link(DataType.METADATA, "https://arweave.net/m")
    cache.sync_file()

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["program"] == {"candyMachine": "CM111"}
    item = payload["items"]["0"]
    assert item["onChain"] is True
    assert item["metadata_link"] == "https://arweave.net/m"
    assert "animation_link" not in item


def test_sync_leaves_no_temporary_files(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    cache = Cache(path=path, items={"0": CacheItem(name="zero")})

    cache.sync_file()
    cache.sync_file()

    assert os.listdir(path.parent) == ["cache.json"]
    assert Cache.load(path).items["0"].name == "zero"


def test_failed_sync_keeps_previous_snapshot(tmp_path, monkeypatch):
    path = tmp_path / "cache.json"
    cache = Cache(path=path, items={"0": CacheItem(name="zero", image_link="first")})
    cache.sync_file()
    cache.items["0"].image_link = "second"

    def _fail(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", _fail)
    with pytest.raises(OSError):
        cache.sync_file()

    assert Cache.load(path).items["0"].image_link == "first"
    assert os.listdir(tmp_path) == ["cache.json"]


def test_load_rejects_malformed_file(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("[1, 2", encoding="utf-8")

    with pytest.raises(ValueError):
        Cache.load(path)


def test_ensure_items_seeds_new_assets_with_metadata_name(tmp_path, assets_dir, add_asset):
    add_asset(0)
    add_asset(1)
    cache = Cache(path=tmp_path / "cache.json", items={"0": CacheItem(name="kept")})

    added = cache.ensure_items(discover_assets(assets_dir))

    assert added == 1
    assert cache.items["0"].name == "kept"
    assert cache.items["1"].name == "Asset #1"
    assert not cache.items["1"].is_linked(DataType.IMAGE)


def test_load_rejects_malformed_program_section(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(json.dumps({"program": 5, "items": {}}), encoding="utf-8")

    with pytest.raises(ValueError, match="program"):
        Cache.load(path)
