from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlmodel import Session

from app.config import (
    MAX_FILE_SIZE,
    RATE_LIMIT_PER_MINUTE,
    RECENTS_DEFAULT_LIMIT,
    RECENTS_MAX_LIMIT,
    UPLOAD_PROGRESS_INTERVAL_SECONDS,
)
from app.api.auth import require_user
from app.core.exceptions import (
    AuthenticationError,
    PayloadTooLargeError,
    UnexpectedError,
    ValidationError,
)
from app.core.metrics import metrics
from app.core.rate_limit import RateLimiter, rate_limit_dependency
from app.core.security import read_session_user_id
from app.db import get_session
from app.models import User
from app.services.accounts import get_user, user_projection
from app.services.cloudinary_store import MediaStoreError
from app.services.deletion import delete_file
from app.services.recents import group_by_month, list_provider_files, list_recent_files
from app.services.stats import count_users, fetch_storage_totals
from app.services.uploads import UploadItem, run_upload_batch
from app.storage import get_media_store, human_bytes

router = APIRouter()

logger = logging.getLogger("printshelf")

upload_rate_limiter = RateLimiter(RATE_LIMIT_PER_MINUTE, namespace="upload")
enforce_upload_rate_limit = rate_limit_dependency(upload_rate_limiter)
MAX_FILE_SIZE_MB = MAX_FILE_SIZE / (1024 * 1024)
RECENT_SOURCES = {"database", "provider"}


class DeleteFileRequest(BaseModel):
    file_id: Optional[str] = Field(default=None, alias="fileId")
    public_id: Optional[str] = Field(default=None, alias="publicId")
    resource_type: Optional[str] = Field(default=None, alias="resourceType")


def _media_store():
    try:
        return get_media_store()
    except ValueError as exc:
        logger.error("event=media_store_unconfigured error=%s", exc)
        raise UnexpectedError("File storage is not configured")


@router.get("/", include_in_schema=False)
def home(request: Request):
    return {
        "name": "Printshelf API",
        "authenticated": read_session_user_id(request) is not None,
    }


@router.get("/dashboard")
def dashboard(user: User = Depends(require_user), session: Session = Depends(get_session)):
    totals = fetch_storage_totals(session, user.id)
    return {
        "success": True,
        "data": {
            "user": user_projection(user),
            "storage": {
                "files": totals["total_files"],
                "bytes": totals["total_bytes"],
                "human": human_bytes(totals["total_bytes"]),
            },
        },
    }


@router.post("/upload", dependencies=[Depends(enforce_upload_rate_limit)])
async def upload(
    request: Request,
    files: Optional[List[UploadFile]] = File(default=None),
    user_id: Optional[str] = Form(default=None, alias="userId"),
    session: Session = Depends(get_session),
):
    user_id = (user_id or "").strip() or read_session_user_id(request)
    if not user_id:
        raise ValidationError("Missing userId", errors={"userId": "User id is required"})

    uploads = [file for file in files or [] if file.filename]
    if not uploads:
        raise ValidationError("No files provided", errors={"files": "At least one file is required"})

    if get_user(session, user_id) is None:
        raise AuthenticationError("No account found for this user")

    items = []
    for index, file in enumerate(uploads):
        data = await file.read()
        if len(data) > MAX_FILE_SIZE:
            logger.warning(
                "event=upload_rejected reason=max_size filename=%s size_bytes=%s limit_bytes=%s",
                file.filename,
                len(data),
                MAX_FILE_SIZE,
            )
            raise PayloadTooLargeError(
                f"File too large. Maximum allowed size is {MAX_FILE_SIZE_MB:.1f} MB.",
                errors={f"files.{index}": file.filename},
            )
        items.append(
            UploadItem(
                index=index,
                filename=file.filename,
                content_type=file.content_type or "application/octet-stream",
                data=data,
            )
        )

    batch = await run_upload_batch(
        user_id,
        items,
        _media_store(),
        progress_interval=UPLOAD_PROGRESS_INTERVAL_SECONDS,
    )
    return {
        "success": True,
        "data": {
            "files": [
                {
                    "url": item.record["url"],
                    "public_id": item.record["public_id"],
                    "format": item.record["format"],
                    "bytes": item.record["bytes"],
                    "status": item.status.value,
                }
                for item in batch
            ]
        },
    }


@router.get("/files/recent")
def recent_files(
    request: Request,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    cursor: Optional[str] = Query(default=None),
    limit: int = Query(default=RECENTS_DEFAULT_LIMIT),
    source: str = Query(default="database"),
    resource_type: str = Query(default="image", alias="resourceType"),
    group: bool = Query(default=False),
    session: Session = Depends(get_session),
):
    user_id = (user_id or "").strip() or read_session_user_id(request)
    if not user_id:
        raise ValidationError("Missing userId", errors={"userId": "User id is required"})
    if source not in RECENT_SOURCES:
        raise ValidationError("Unknown source", errors={"source": "Use 'database' or 'provider'"})

    limit = max(1, min(limit, RECENTS_MAX_LIMIT))
    if source == "provider":
        try:
            payload = list_provider_files(_media_store(), user_id, cursor or None, limit, resource_type)
        except MediaStoreError as exc:
            logger.error("event=provider_listing_failed user_id=%s error=%s", user_id, exc)
            raise UnexpectedError("Failed to fetch files")
    else:
        payload = list_recent_files(session, user_id, cursor or None, limit)

    if group:
        payload["groups"] = group_by_month(payload["files"])
    return payload


@router.delete("/files/delete")
def delete(payload: DeleteFileRequest, session: Session = Depends(get_session)):
    return delete_file(session, get_media_store, payload.file_id, payload.public_id, payload.resource_type)


@router.get("/metrics")
def metrics_snapshot(session: Session = Depends(get_session)):
    stats = metrics.snapshot()
    totals = fetch_storage_totals(session)
    payload = {
        **stats,
        "users": count_users(session),
        "files": totals["total_files"],
        "storage_bytes": totals["total_bytes"],
    }
    response = JSONResponse(payload)
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return response
