"""Upload pipeline: plan, estimate, fund, then upload each data kind in turn."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from sugarlift.core.assets import AssetPair, DataType, asset_id_for
from sugarlift.core.errors import UploadAborted, UploadError
from sugarlift.core.estimator import FeeEstimate, FeeEstimator
from sugarlift.core.funding import FundingGate, FundingOutcome
from sugarlift.core.scheduler import UploadResult, UploadScheduler
from sugarlift.storage import Cache


@dataclass(slots=True)
class UploadPlan:
    """Indices still needing each data kind."""

    images: list[int] = field(default_factory=list)
    animations: list[int] = field(default_factory=list)
    metadata: list[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.images or self.animations or self.metadata)

    def stages(self) -> list[tuple[DataType, list[int]]]:
        """Upload order: metadata last, because it embeds the media links."""

        return [
            (DataType.IMAGE, self.images),
            (DataType.ANIMATION, self.animations),
            (DataType.METADATA, self.metadata),
        ]


def select_indices(
    assets: Mapping[int, AssetPair], cache: Cache, data_type: DataType
) -> list[int]:
    """Return asset indices whose cache entry has no link yet for `data_type`.

    Already-linked entries count as uploaded, which makes re-running after a failure resume
    where the previous run stopped.
    """

    selected: list[int] = []
    for index, asset in sorted(assets.items()):
        if data_type is DataType.ANIMATION and asset.animation is None:
            continue
        item = cache.items.get(asset_id_for(asset.image))
        if item is None or not item.is_linked(data_type):
            selected.append(index)
    return selected


def plan_uploads(assets: Mapping[int, AssetPair], cache: Cache) -> UploadPlan:
    images = select_indices(assets, cache, DataType.IMAGE)
    animations = select_indices(assets, cache, DataType.ANIMATION)
    # new media links must be written into the metadata again
    metadata = sorted(
        set(select_indices(assets, cache, DataType.METADATA)) | set(images) | set(animations)
    )
    return UploadPlan(images=images, animations=animations, metadata=metadata)


@dataclass(slots=True)
class PipelineReport:
    plan: UploadPlan
    estimate: FeeEstimate | None = None
    funding: FundingOutcome | None = None
    stages: list[UploadResult] = field(default_factory=list)

    @property
    def errors(self) -> list[UploadError]:
        return [error for stage in self.stages for error in stage.errors]

    @property
    def uploaded(self) -> int:
        return sum(stage.uploaded for stage in self.stages)

    @property
    def status(self) -> str:
        if any(stage.aborted for stage in self.stages):
            return "aborted"
        if self.errors:
            return "failed"
        return "successful"


@dataclass(slots=True)
class UploadPipeline:
    estimator: FeeEstimator
    gate: FundingGate
    scheduler: UploadScheduler
    cache: Cache
    address: str
    logger: logging.Logger

    async def estimate(self, assets: Mapping[int, AssetPair]) -> tuple[UploadPlan, FeeEstimate]:
        """Plan and price the next upload without touching the cache file."""

        self.cache.ensure_items(assets)
        plan = plan_uploads(assets, self.cache)
        estimate = await self.estimator.estimate(
            assets, plan.images, plan.metadata, plan.animations
        )
        return plan, estimate

    async def run(
        self,
        assets: Mapping[int, AssetPair],
        stop_event: asyncio.Event | None = None,
    ) -> PipelineReport:
        """Upload everything the cache does not have yet.

        Raises `UploadAborted` when `stop_event` interrupts the run, after the cache has been
        synchronized.
        """

        stop_event = stop_event or asyncio.Event()
        self._seed_cache(assets)
        plan = plan_uploads(assets, self.cache)
        report = PipelineReport(plan=plan)

        if plan.is_empty:
            self.logger.info("All %s asset(s) are already uploaded.", len(assets))
            return report

        self.logger.info(
            "Upload plan: images=%s animations=%s metadata=%s",
            len(plan.images),
            len(plan.animations),
            len(plan.metadata),
        )
        # validates every stage before paying for any of them
        for data_type, indices in plan.stages():
            self.scheduler.build_tasks(assets, indices, data_type)

        report.estimate = await self.estimator.estimate(
            assets, plan.images, plan.metadata, plan.animations
        )
        report.funding = await self.gate.ensure(self.address, report.estimate.required)

        for data_type, indices in plan.stages():
            if not indices:
                continue
            result = await self.scheduler.upload(assets, indices, data_type, stop_event)
            report.stages.append(result)
            if result.aborted:
                raise UploadAborted(
                    f"Upload aborted during {data_type.value} stage; "
                    f"{result.unresolved} file(s) were not uploaded.",
                    report=report,
                )
            if not result.successful:
                self.logger.error(
                    "Stopping after %s stage with %s error(s).",
                    data_type.value,
                    len(result.errors),
                )
                break

        return report

    def _seed_cache(self, assets: Mapping[int, AssetPair]) -> None:
        added = self.cache.ensure_items(assets)
        if added:
            self.logger.info("Added %s new asset(s) to the cache.", added)
            self.cache.sync_file()
