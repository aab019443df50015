"""Reverse-chronological, cursor-paginated listing of a user's uploads."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.exceptions import UnexpectedError, ValidationError
from app.models import File as FileModel
from app.models import as_utc
from app.services.stats import fetch_storage_totals
from app.storage import classify_file, human_bytes, user_folder

logger = logging.getLogger("printshelf.recents")

THIS_MONTH = "This Month"


def _iso(value: datetime | str | None) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return as_utc(value).isoformat()


def display_record(file: FileModel) -> dict[str, Any]:
    return {
        "id": file.id,
        "name": file.name,
        "publicId": file.public_id,
        "type": file.file_type,
        "size": human_bytes(file.size_bytes),
        "modified": _iso(file.uploaded_at),
        "url": file.url,
        "resourceType": file.resource_type,
        "format": file.format,
        "width": file.width,
        "height": file.height,
    }


def _page(files: list[dict[str, Any]], next_cursor: Optional[str], total: int) -> dict[str, Any]:
    return {
        "files": files,
        "nextCursor": next_cursor,
        "hasMore": next_cursor is not None,
        "total": total,
    }


def list_recent_files(session: Session, user_id: str, cursor: Optional[str] = None, limit: int = 20) -> dict[str, Any]:
    """One page of the user's files, newest first, resuming strictly after `cursor`."""
    try:
        stmt = select(FileModel).where(FileModel.user_id == user_id)
        if cursor:
            anchor = session.get(FileModel, cursor)
            if anchor is None or anchor.user_id != user_id:
                raise ValidationError("Invalid cursor", errors={"cursor": "Invalid cursor"})
            stmt = stmt.where(
                or_(
                    FileModel.uploaded_at < anchor.uploaded_at,
                    and_(FileModel.uploaded_at == anchor.uploaded_at, FileModel.id < anchor.id),
                )
            )
        stmt = stmt.order_by(FileModel.uploaded_at.desc(), FileModel.id.desc()).limit(limit)
        rows = session.exec(stmt).all()
        total = fetch_storage_totals(session, user_id)["total_files"]
    except SQLAlchemyError:
        logger.exception("event=recents_failed user_id=%s cursor=%s", user_id, cursor)
        raise UnexpectedError("Failed to fetch files")

    next_cursor = rows[-1].id if len(rows) == limit else None
    return _page([display_record(row) for row in rows], next_cursor, total)


def list_provider_files(
    store,
    user_id: str,
    cursor: Optional[str] = None,
    limit: int = 20,
    resource_type: str = "image",
) -> dict[str, Any]:
    """Same page shape, read straight from the user's Cloudinary folder."""
    result = store.list_resources(f"{user_folder(user_id)}/", resource_type=resource_type, limit=limit, cursor=cursor)
    files = []
    for resource in result.get("resources", []):
        public_id = resource.get("public_id", "")
        files.append(
            {
                "id": public_id,
                "name": resource.get("display_name") or public_id.split("/")[-1] or public_id,
                "publicId": public_id,
                "type": classify_file(None, resource.get("format"), resource.get("resource_type")),
                "size": human_bytes(resource.get("bytes")),
                "modified": _iso(resource.get("created_at")),
                "url": resource.get("secure_url"),
                "resourceType": resource.get("resource_type"),
                "format": resource.get("format"),
                "width": resource.get("width"),
                "height": resource.get("height"),
            }
        )
    files.sort(key=lambda item: item["modified"] or "", reverse=True)
    return _page(files, result.get("next_cursor") or None, int(result.get("total_count") or len(files)))


def group_by_month(files: Iterable[dict[str, Any]], now: Optional[datetime] = None) -> list[dict[str, Any]]:
    """Bucket display records into "This Month" and "Month Year" groups.

    "This Month" comes first, the rest newest month first; every bucket is
    sorted newest-first.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    buckets: dict[tuple[int, int], list[tuple[datetime, dict[str, Any]]]] = {}
    for file in files:
        modified = datetime.fromisoformat(_iso(file["modified"]))
        buckets.setdefault((modified.year, modified.month), []).append((modified, file))

    current = (now.year, now.month)
    ordered = sorted(buckets, key=lambda key: (key != current, -key[0], -key[1]))
    groups = []
    for key in ordered:
        entries = sorted(buckets[key], key=lambda entry: entry[0], reverse=True)
        label = THIS_MONTH if key == current else entries[0][0].strftime("%B %Y")
        groups.append({"label": label, "files": [file for _, file in entries]})
    return groups
