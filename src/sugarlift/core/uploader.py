"""Single-file upload: payload preparation, signing and submission with retries."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from sugarlift.config import UploadSettings
from sugarlift.core.assets import DataType, updated_metadata
from sugarlift.core.errors import ContentTypeMismatchError
from sugarlift.network.bundlr import BundlrClient, TransientBundlrError
from sugarlift.network.dataitem import DataItemSigner, Tag


@dataclass(slots=True)
class UploadTask:
    """One file to upload, owned by a single in-flight worker."""

    asset_id: str
    file_path: Path
    image_link: str
    animation_link: str | None
    data_type: DataType
    tags: list[Tag]


class Uploader(Protocol):
    async def send(self, task: UploadTask) -> str:
        """Upload the task's payload and return the storage transaction id."""


def check_content_type(task: UploadTask) -> None:
    """Raise when the file extension disagrees with the task's Content-Type tag."""

    content_type = next((tag.value for tag in task.tags if tag.name == "Content-Type"), None)
    if content_type is None:
        return
    expected = "json" if content_type == "application/json" else content_type.partition("/")[2]
    if task.file_path.suffix.lstrip(".").lower() != expected.lower():
        raise ContentTypeMismatchError(str(task.file_path), content_type)


def read_payload(task: UploadTask) -> bytes:
    """Return the bytes to upload; metadata gets the current links substituted in memory."""

    if task.data_type is DataType.METADATA:
        return updated_metadata(task.file_path, task.image_link, task.animation_link).encode(
            "utf-8"
        )
    return task.file_path.read_bytes()


@dataclass(slots=True)
class BundlrUploader:
    client: BundlrClient
    signer: DataItemSigner
    settings: UploadSettings
    logger: logging.Logger

    async def send(self, task: UploadTask) -> str:
        check_content_type(task)
        data = await asyncio.to_thread(read_payload, task)
        data_item = self.signer.create_data_item(data, task.tags)

        retry_policy = AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_retries),
            wait=wait_exponential_jitter(
                initial=self.settings.backoff_min_seconds,
                max=self.settings.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(TransientBundlrError),
            reraise=False,
        )
        try:
            async for attempt in retry_policy:
                with attempt:
                    tx_id = await self.client.send_transaction(data_item)
        except RetryError as exc:
            last = exc.last_attempt
            error = last.exception() if last else None
            if isinstance(error, Exception):
                raise error from exc
            raise

        self.logger.debug("Uploaded %s %s as %s", task.data_type.value, task.asset_id, tx_id)
        return tx_id
