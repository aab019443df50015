"""Concurrent multi-file upload: Cloudinary first, then one metadata row per file."""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Optional

from starlette.concurrency import run_in_threadpool

from app.core.exceptions import GENERIC_ERROR_MESSAGE, UnexpectedError
from app.core.metrics import metrics
from app.db import session_scope
from app.models import File as FileModel
from app.services.cloudinary_store import MediaStoreError
from app.storage import classify_file, requested_resource_type, user_folder

logger = logging.getLogger("printshelf.uploads")

# The simulated indicator stops short of 100 until the real call has resolved.
PROGRESS_CEILING = 95.0


class UploadStatus(str, enum.Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class UploadItem:
    index: int
    filename: str
    content_type: str
    data: bytes = field(repr=False)
    status: UploadStatus = UploadStatus.PENDING
    progress: float = 0.0
    error: Optional[str] = None
    record: Optional[dict[str, Any]] = None

    @property
    def size(self) -> int:
        return len(self.data)

    def start(self) -> None:
        self.status = UploadStatus.UPLOADING
        self.progress = 0.0

    def advance(self, step: float) -> None:
        if self.status is UploadStatus.UPLOADING:
            self.progress = min(self.progress + step, PROGRESS_CEILING)

    def succeed(self, record: dict[str, Any]) -> None:
        self.status = UploadStatus.SUCCESS
        self.progress = 100.0
        self.record = record

    def fail(self, message: str) -> None:
        self.status = UploadStatus.ERROR
        self.error = message


class UploadBatchError(UnexpectedError):
    """At least one file of a batch failed; the first failure's message is surfaced.

    Only remote-host errors reach the caller verbatim; anything else becomes
    the generic message.
    """

    def __init__(self, failures: list[tuple[UploadItem, BaseException]]):
        self.failures = failures
        item, _ = failures[0]
        super().__init__(
            item.error or GENERIC_ERROR_MESSAGE,
            errors={f"files.{failed.index}": failed.error or GENERIC_ERROR_MESSAGE for failed, _ in failures},
        )


def _client_message(exc: BaseException) -> str:
    if isinstance(exc, MediaStoreError):
        return str(exc) or GENERIC_ERROR_MESSAGE
    return GENERIC_ERROR_MESSAGE


async def _drive_progress(item: UploadItem, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        item.advance(random.uniform(5, 20))


def _persist(user_id: str, item: UploadItem, response: dict[str, Any]) -> dict[str, Any]:
    resource_type = response.get("resource_type") or requested_resource_type(item.content_type)
    fmt = response.get("format")
    record = FileModel(
        name=item.filename,
        public_id=response["public_id"],
        url=response.get("secure_url") or response.get("url", ""),
        size_bytes=int(response.get("bytes") or item.size),
        file_type=classify_file(item.filename, fmt, resource_type),
        format=fmt,
        resource_type=resource_type,
        width=response.get("width"),
        height=response.get("height"),
        user_id=user_id,
    )
    with session_scope() as session:
        session.add(record)
        session.commit()
        session.refresh(record)
        return {
            "id": record.id,
            "url": record.url,
            "public_id": record.public_id,
            "format": record.format,
            "bytes": record.size_bytes,
            "file_type": record.file_type,
        }


async def _upload_one(user_id: str, item: UploadItem, store, progress_interval: float) -> dict[str, Any]:
    item.start()
    ticker = asyncio.create_task(_drive_progress(item, progress_interval)) if progress_interval > 0 else None
    try:
        response = await run_in_threadpool(
            store.upload,
            item.data,
            user_folder(user_id),
            PurePath(item.filename).stem or item.filename,
            requested_resource_type(item.content_type),
        )
        record = await run_in_threadpool(_persist, user_id, item, response)
    except Exception as exc:
        item.fail(_client_message(exc))
        metrics.record_upload_failure()
        logger.error(
            "event=upload_failed index=%s filename=%s content_type=%s error=%s",
            item.index,
            item.filename,
            item.content_type,
            exc,
            exc_info=exc,
        )
        raise
    finally:
        if ticker is not None:
            ticker.cancel()

    item.succeed(record)
    metrics.record_upload(record["bytes"])
    logger.info(
        "event=upload_success index=%s file_id=%s public_id=%s size_bytes=%s",
        item.index,
        record["id"],
        record["public_id"],
        record["bytes"],
    )
    return record


async def run_upload_batch(
    user_id: str,
    items: list[UploadItem],
    store,
    *,
    progress_interval: float = 0.0,
) -> list[UploadItem]:
    """Upload every item concurrently and wait for all of them.

    Siblings of a failed file still run to completion; afterwards the batch
    raises `UploadBatchError` if any file failed. Remote objects of the
    successful siblings are kept.
    """
    results = await asyncio.gather(
        *(_upload_one(user_id, item, store, progress_interval) for item in items),
        return_exceptions=True,
    )
    failures = [(item, result) for item, result in zip(items, results) if isinstance(result, BaseException)]
    logger.info(
        "event=upload_batch_done user_id=%s files=%s failed=%s progress=%s",
        user_id,
        len(items),
        len(failures),
        ",".join(f"{item.index}:{item.status.value}:{item.progress:.0f}" for item in items),
    )
    if failures:
        raise UploadBatchError(failures)
    return items
