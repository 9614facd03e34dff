"""JSON cache of upload links with atomic checkpointing."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from sugarlift.core.assets import AssetPair, DataType, asset_id_for

logger = logging.getLogger(__name__)


class CacheItem(BaseModel):
    """Upload status of one asset.

    Unknown keys are kept so a cache written by another tool survives a load/sync cycle.
    """

    model_config = ConfigDict(extra="allow")

    name: str = ""
    image_link: str = ""
    metadata_link: str = ""
    animation_link: str | None = None

    def link_for(self, data_type: DataType) -> str | None:
        if data_type is DataType.IMAGE:
            return self.image_link
        if data_type is DataType.METADATA:
            return self.metadata_link
        return self.animation_link

    def set_link(self, data_type: DataType, link: str) -> None:
        if data_type is DataType.IMAGE:
            self.image_link = link
        elif data_type is DataType.METADATA:
            self.metadata_link = link
        else:
            self.animation_link = link

    def is_linked(self, data_type: DataType) -> bool:
        return bool(self.link_for(data_type))


@dataclass(slots=True)
class Cache:
    """Asset id -> CacheItem map bound to a file on disk."""

    path: Path
    items: dict[str, CacheItem] = field(default_factory=dict)
    program: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> Cache:
        """Load the cache at `path`, or return an empty one when the file does not exist."""

        if not path.exists():
            logger.info("Cache file %s not found; starting with an empty cache.", path)
            return cls(path=path)

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Cache file {path} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"Cache file {path} must contain a JSON object.")

        raw_items = payload.get("items") or {}
        if not isinstance(raw_items, dict):
            raise ValueError(f"Cache file {path} has a malformed 'items' section.")
        try:
            items = {str(key): CacheItem.model_validate(value) for key, value in raw_items.items()}
        except ValidationError as exc:
            raise ValueError(f"Cache file {path} has an invalid item: {exc}") from exc

        program = payload.get("program") or {}
        if not isinstance(program, dict):
            raise ValueError(f"Cache file {path} has a malformed 'program' section.")
        logger.debug("Loaded %s cache item(s) from %s", len(items), path)
        return cls(path=path, items=items, program=dict(program))

    def ensure_items(self, assets: dict[int, AssetPair]) -> int:
        """Add empty entries for assets the cache does not know yet; return how many were added."""

        added = 0
        for asset in assets.values():
            asset_id = asset_id_for(asset.image)
            if asset_id in self.items:
                continue
            self.items[asset_id] = CacheItem(name=_metadata_name(asset) or asset.name)
            added += 1
        return added

    def to_dict(self) -> dict[str, Any]:
        return {
            "program": self.program,
            "items": {key: _dump_item(item) for key, item in self.items.items()},
        }

    def sync_file(self) -> None:
        """Atomically replace the cache file with the current in-memory snapshot."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(self.to_dict(), indent=2)
        descriptor, temp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(descriptor, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        logger.debug("Synced %s cache item(s) to %s", len(self.items), self.path)


def _metadata_name(asset: AssetPair) -> str | None:
    try:
        document = json.loads(asset.metadata.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    name = document.get("name") if isinstance(document, dict) else None
    return name if isinstance(name, str) else None


def _dump_item(item: CacheItem) -> dict[str, Any]:
    data = item.model_dump(mode="json")
    if data.get("animation_link") is None:
        data.pop("animation_link", None)
    return data
