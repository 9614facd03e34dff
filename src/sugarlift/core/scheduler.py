"""Bounded, self-refilling upload pool with incremental cache checkpoints."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from sugarlift import app_signature
from sugarlift.core.assets import AssetPair, DataType, asset_id_for
from sugarlift.core.errors import (
    ContentTypeMismatchError,
    ExtensionMismatchError,
    MissingCacheItemError,
    PreflightError,
    UploadError,
    UploadErrorKind,
)
from sugarlift.core.uploader import Uploader, UploadTask
from sugarlift.network.bundlr import BundlrError, arweave_link
from sugarlift.network.dataitem import Tag
from sugarlift.storage import Cache
from sugarlift.ui import UploadProgress

PAYMENT_REQUIRED = 402


@dataclass(slots=True)
class UploadOutcome:
    """Value a worker hands back to the harvesting loop."""

    task: UploadTask
    tx_id: str | None = None
    error: Exception | None = None


@dataclass(slots=True)
class UploadResult:
    data_type: DataType
    total: int
    uploaded: int = 0
    errors: list[UploadError] = field(default_factory=list)
    unresolved: int = 0
    aborted: bool = False
    checkpoints: int = 0

    @property
    def status(self) -> str:
        if self.aborted:
            return "aborted"
        if self.errors:
            return "failed"
        return "successful"

    @property
    def successful(self) -> bool:
        return self.status == "successful"


def content_type_for(data_type: DataType, extension: str) -> str:
    if data_type is DataType.IMAGE:
        return f"image/{extension}"
    if data_type is DataType.METADATA:
        return "application/json"
    return f"video/{extension}"


def error_kind_for(error: Exception | None) -> UploadErrorKind:
    """Classify a failed upload for the error report."""

    if isinstance(error, ContentTypeMismatchError):
        return UploadErrorKind.CONTENT_TYPE_MISMATCH
    if isinstance(error, BundlrError) and error.status_code == PAYMENT_REQUIRED:
        return UploadErrorKind.INSUFFICIENT_BALANCE
    return UploadErrorKind.SEND_DATA_FAILED


def common_extension(paths: Iterable[Path]) -> str:
    """Return the single extension shared by `paths`."""

    extensions = {path.suffix.lstrip(".") for path in paths}
    if len(extensions) != 1 or "" in extensions:
        raise ExtensionMismatchError(extensions)
    return extensions.pop()


@dataclass(slots=True)
class UploadScheduler:
    """Runs upload tasks with at most `parallel_limit` in flight.

    Completions are harvested in the order they finish. Only the harvesting loop touches the
    cache and the progress indicator.
    """

    uploader: Uploader
    cache: Cache
    logger: logging.Logger
    parallel_limit: int = 45
    show_progress: bool = False

    def build_tasks(
        self,
        assets: Mapping[int, AssetPair],
        indices: Iterable[int],
        data_type: DataType,
    ) -> list[UploadTask]:
        indices = list(indices)
        missing = [index for index in indices if index not in assets]
        if missing:
            raise PreflightError(f"Failed to get asset at index {missing[0]}")

        paths = [assets[index].path_for(data_type) for index in indices]
        if not paths:
            return []
        extension = common_extension(paths)
        tags = [
            Tag("App-Name", app_signature()),
            Tag("Content-Type", content_type_for(data_type, extension)),
        ]

        tasks: list[UploadTask] = []
        for path in paths:
            asset_id = asset_id_for(path)
            item = self.cache.items.get(asset_id)
            if item is None:
                raise MissingCacheItemError(asset_id)
            tasks.append(
                UploadTask(
                    asset_id=asset_id,
                    file_path=path,
                    image_link=item.image_link,
                    animation_link=item.animation_link,
                    data_type=data_type,
                    tags=list(tags),
                )
            )
        return tasks

    async def upload(
        self,
        assets: Mapping[int, AssetPair],
        indices: Iterable[int],
        data_type: DataType,
        stop_event: asyncio.Event | None = None,
    ) -> UploadResult:
        """Upload one data kind for the selected assets and record the links in the cache."""

        tasks = self.build_tasks(assets, indices, data_type)
        return await self.run(tasks, data_type, stop_event=stop_event)

    async def run(
        self,
        tasks: list[UploadTask],
        data_type: DataType,
        *,
        stop_event: asyncio.Event | None = None,
    ) -> UploadResult:
        stop_event = stop_event or asyncio.Event()
        result = UploadResult(data_type=data_type, total=len(tasks))
        pending: deque[UploadTask] = deque(tasks)
        completions: asyncio.Queue[UploadOutcome] = asyncio.Queue()
        workers: set[asyncio.Task[None]] = set()
        outstanding = 0
        refill = max(1, self.parallel_limit // 2)

        def dispatch(limit: int) -> None:
            nonlocal outstanding
            for _ in range(min(limit, len(pending))):
                task = pending.popleft()
                worker = asyncio.create_task(self._work(task, completions))
                workers.add(worker)
                worker.add_done_callback(workers.discard)
                outstanding += 1

        self.logger.info(
            "Sending %s %s file(s) with parallel_limit=%s",
            len(tasks),
            data_type.value,
            self.parallel_limit,
        )

        with UploadProgress(total=len(tasks), enabled=self.show_progress) as progress:
            try:
                if not stop_event.is_set():
                    dispatch(self.parallel_limit)

                while outstanding and not stop_event.is_set():
                    outcome = await completions.get()
                    outstanding -= 1
                    self._harvest(outcome, result, progress)

                    if pending and self.parallel_limit - outstanding > self.parallel_limit // 2:
                        self.cache.sync_file()
                        result.checkpoints += 1
                        dispatch(refill)

                if stop_event.is_set():
                    self.logger.warning(
                        "Upload interrupted; waiting for %s in-flight upload(s).", outstanding
                    )
                    result.unresolved = len(pending)
                    result.aborted = True
            finally:
                # drain started uploads so their links reach the final sync
                while outstanding:
                    outcome = await completions.get()
                    outstanding -= 1
                    self._harvest(outcome, result, progress)
                self.cache.sync_file()

            if result.aborted:
                result.errors.append(
                    UploadError(
                        UploadErrorKind.ABORTED,
                        f"Upload aborted; {result.unresolved} file(s) were not uploaded.",
                    )
                )
            progress.finish(result.status)

        self.logger.info(
            "Upload %s: %s/%s %s file(s) uploaded, %s error(s), %s checkpoint(s)",
            result.status,
            result.uploaded,
            result.total,
            data_type.value,
            len(result.errors),
            result.checkpoints,
        )
        return result

    def _harvest(
        self, outcome: UploadOutcome, result: UploadResult, progress: UploadProgress
    ) -> None:
        task = outcome.task
        if outcome.error is not None or outcome.tx_id is None:
            kind = error_kind_for(outcome.error)
            message = f"Bundlr upload error: {outcome.error!r}"
            self.logger.warning(
                "Upload of %s %s failed: %s", task.data_type.value, task.asset_id, outcome.error
            )
            result.errors.append(
                UploadError(kind, message, asset_id=task.asset_id)
            )
            return

        self.cache.items[task.asset_id].set_link(task.data_type, arweave_link(outcome.tx_id))
        result.uploaded += 1
        progress.advance()

    async def _work(self, task: UploadTask, completions: asyncio.Queue[UploadOutcome]) -> None:
        try:
            tx_id = await self.uploader.send(task)
        except Exception as exc:  # pylint: disable=broad-except
            await completions.put(UploadOutcome(task=task, error=exc))
            return
        await completions.put(UploadOutcome(task=task, tx_id=tx_id))
