"""Asset pairs, data kinds and in-memory metadata rewriting."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "webp", "svg"})
ANIMATION_EXTENSIONS = frozenset({"mp4", "mov", "webm", "glb", "gltf", "mp3", "wav", "html"})


class DataType(str, Enum):
    IMAGE = "image"
    METADATA = "metadata"
    ANIMATION = "animation"


@dataclass(frozen=True, slots=True)
class AssetPair:
    """Files that make up one asset."""

    name: str
    image: Path
    metadata: Path
    animation: Path | None = None

    def path_for(self, data_type: DataType) -> Path:
        if data_type is DataType.IMAGE:
            return self.image
        if data_type is DataType.METADATA:
            return self.metadata
        if self.animation is None:
            raise ValueError(f"Asset {self.name!r} has no animation file")
        return self.animation


def asset_id_for(path: Path) -> str:
    """Return the cache key for a file: its base name without extension."""

    return path.stem


def discover_assets(assets_dir: Path) -> dict[int, AssetPair]:
    """Pair `N.json` with `N.<image>` and an optional `N.<animation>` under `assets_dir`."""

    if not assets_dir.is_dir():
        raise FileNotFoundError(f"Assets directory not found: {assets_dir}")

    grouped: dict[str, dict[str, Path]] = {}
    for path in sorted(assets_dir.iterdir()):
        if not path.is_file() or path.name.startswith("."):
            continue
        ext = path.suffix.lower().lstrip(".")
        if ext == "json":
            kind = "metadata"
        elif ext in IMAGE_EXTENSIONS:
            kind = "image"
        elif ext in ANIMATION_EXTENSIONS:
            kind = "animation"
        else:
            logger.debug("Ignoring unsupported asset file %s", path.name)
            continue
        grouped.setdefault(path.stem, {})[kind] = path

    assets: dict[int, AssetPair] = {}
    for stem, files in grouped.items():
        if not stem.isdigit():
            logger.debug("Ignoring non-indexed asset %s", stem)
            continue
        if "image" not in files or "metadata" not in files:
            raise ValueError(f"Asset {stem} requires both an image and a metadata file.")
        assets[int(stem)] = AssetPair(
            name=stem,
            image=files["image"],
            metadata=files["metadata"],
            animation=files.get("animation"),
        )

    return dict(sorted(assets.items()))


def updated_metadata(
    metadata_path: Path,
    image_link: str,
    animation_link: str | None = None,
) -> str:
    """Return the metadata document with links substituted, leaving the file untouched."""

    document: dict[str, Any] = json.loads(metadata_path.read_text(encoding="utf-8"))
    if not isinstance(document, dict):
        raise ValueError(f"Metadata file {metadata_path} must contain a JSON object.")

    old_image = document.get("image")
    old_animation = document.get("animation_url")

    document["image"] = image_link
    if animation_link is not None:
        document["animation_url"] = animation_link

    properties = document.get("properties")
    if isinstance(properties, dict) and isinstance(properties.get("files"), list):
        for entry in properties["files"]:
            if not isinstance(entry, dict):
                continue
            uri = entry.get("uri")
            if animation_link is not None and old_animation and uri == old_animation:
                entry["uri"] = animation_link
            elif uri == old_image or (old_image is None and _is_image_entry(entry)):
                entry["uri"] = image_link

    return json.dumps(document)


def _is_image_entry(entry: dict[str, Any]) -> bool:
    file_type = entry.get("type")
    return isinstance(file_type, str) and file_type.startswith("image/")
