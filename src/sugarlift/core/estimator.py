"""Upload size and fee estimation."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from sugarlift.config import UploadSettings
from sugarlift.core.assets import AssetPair, updated_metadata


class FeeOracle(Protocol):
    async def get_fee(self, data_size: int) -> int:
        """Return the price in lamports for `data_size` bytes."""


@dataclass(frozen=True, slots=True)
class FeeEstimate:
    total_size: int
    base_fee: int
    required: int


def compute_upload_size(
    assets: Mapping[int, AssetPair],
    image_indices: Iterable[int],
    metadata_indices: Iterable[int],
    animation_indices: Iterable[int],
    *,
    header_size: int,
    minimum_size: int,
    mock_uri_size: int,
) -> int:
    """Return the byte count Bundlr will charge for the selected files.

    Metadata is measured after substituting fixed-length mock URIs for the links, so the estimate
    does not depend on the real links that only exist after the upload.
    """

    total = 0
    for index in image_indices:
        size = assets[index].image.stat().st_size
        total += header_size + max(minimum_size, size)

    for index in animation_indices:
        animation = assets[index].animation
        if animation is None:
            raise ValueError(f"Asset {index} has no animation file")
        total += header_size + max(minimum_size, animation.stat().st_size)

    mock_uri = "x" * mock_uri_size
    for index in metadata_indices:
        asset = assets[index]
        mock_animation = mock_uri if asset.animation is not None else None
        document = updated_metadata(asset.metadata, mock_uri, mock_animation)
        total += header_size + max(minimum_size, len(document.encode("utf-8")))

    return total


@dataclass(slots=True)
class FeeEstimator:
    """Turns a selection of files into the lamports required on the Bundlr node."""

    oracle: FeeOracle
    settings: UploadSettings
    logger: logging.Logger

    async def estimate(
        self,
        assets: Mapping[int, AssetPair],
        image_indices: Iterable[int],
        metadata_indices: Iterable[int],
        animation_indices: Iterable[int],
    ) -> FeeEstimate:
        total_size = compute_upload_size(
            assets,
            image_indices,
            metadata_indices,
            animation_indices,
            header_size=self.settings.header_size,
            minimum_size=self.settings.minimum_size,
            mock_uri_size=self.settings.mock_uri_size,
        )
        self.logger.info("Total upload size: %s", total_size)

        base_fee = await self.oracle.get_fee(total_size)
        # Decimal keeps 50 * 1.1 at exactly 55
        required = math.ceil(Decimal(base_fee) * Decimal(str(self.settings.fee_multiplier)))
        return FeeEstimate(total_size=total_size, base_fee=base_fee, required=required)
