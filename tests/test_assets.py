"""Tests for asset discovery and metadata rewriting."""

from __future__ import annotations

import json

import pytest

from sugarlift.core.assets import DataType, discover_assets, updated_metadata


def test_discover_assets_pairs_files_by_index(assets_dir, add_asset):
    add_asset(1)
    add_asset(0, animation_ext="mp4")
    (assets_dir / "collection.json").write_text("{}", encoding="utf-8")
    (assets_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    assets = discover_assets(assets_dir)

    assert list(assets) == [0, 1]
    assert assets[0].animation == assets_dir / "0.mp4"
    assert assets[1].animation is None
    assert assets[1].path_for(DataType.METADATA) == assets_dir / "1.json"


def test_discover_assets_requires_image_and_metadata(assets_dir, add_asset):
    (assets_dir / "0.json").write_text("{}", encoding="utf-8")

    with pytest.raises(ValueError, match="requires both"):
        discover_assets(assets_dir)


def test_discover_assets_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        discover_assets(tmp_path / "nope")


def test_path_for_animation_without_file(assets_dir, add_asset):
    add_asset(0)
    asset = discover_assets(assets_dir)[0]

    with pytest.raises(ValueError):
        asset.path_for(DataType.ANIMATION)


def test_updated_metadata_rewrites_links_in_memory(assets_dir, add_asset):
    add_asset(0, animation_ext="mp4")
    path = assets_dir / "0.json"
    original = path.read_text(encoding="utf-8")

    document = json.loads(
        updated_metadata(path, "https://arweave.net/img", "https://arweave.net/anim")
    )

    assert document["image"] == "https://arweave.net/img"
    assert document["animation_url"] == "https://arweave.net/anim"
    uris = [entry["uri"] for entry in document["properties"]["files"]]
    assert uris == ["https://arweave.net/img", "https://arweave.net/anim"]
    assert path.read_text(encoding="utf-8") == original


def test_updated_metadata_leaves_animation_alone_without_link(assets_dir, add_asset):
    add_asset(0)

    document = json.loads(updated_metadata(assets_dir / "0.json", "https://arweave.net/img"))

    assert document["image"] == "https://arweave.net/img"
    assert "animation_url" not in document
