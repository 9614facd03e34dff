"""Shared fixtures for Sugarlift tests."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest


def write_asset(
    directory: Path,
    index: int,
    *,
    image_ext: str = "png",
    image_size: int = 64,
    animation_ext: str | None = None,
) -> None:
    image = directory / f"{index}.{image_ext}"
    image.write_bytes(b"\x89" * image_size)
    document = {
        "name": f"Asset #{index}",
        "image": image.name,
        "properties": {"files": [{"uri": image.name, "type": f"image/{image_ext}"}]},
    }
    if animation_ext is not None:
        animation = directory / f"{index}.{animation_ext}"
        animation.write_bytes(b"\x00" * 32)
        document["animation_url"] = animation.name
        document["properties"]["files"].append(
            {"uri": animation.name, "type": f"video/{animation_ext}"}
        )
    (directory / f"{index}.json").write_text(json.dumps(document), encoding="utf-8")


@pytest.fixture
def assets_dir(tmp_path) -> Path:
    directory = tmp_path / "assets"
    directory.mkdir()
    return directory


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("sugarlift.tests")


@pytest.fixture
def add_asset(assets_dir):
    """Write asset `index` into `assets_dir`."""

    def _add(index: int, **kwargs) -> None:
        write_asset(assets_dir, index, **kwargs)

    return _add
