from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session

from app.core.exceptions import UnexpectedError, ValidationError
from app.core.metrics import metrics
from app.models import File as FileModel

logger = logging.getLogger("printshelf.deletion")

ALREADY_DELETED_MESSAGE = "File already deleted from database."


def delete_file(
    session: Session,
    get_store: Callable[[], object],
    file_id: Optional[str],
    public_id: Optional[str],
    resource_type: Optional[str],
) -> dict:
    """Remove the Cloudinary asset (best effort), then the metadata row."""
    if not file_id or not public_id or not resource_type:
        raise ValidationError("Missing required file information for deletion")

    try:
        result = get_store().delete(public_id, resource_type)
        logger.info("event=remote_delete public_id=%s resource_type=%s result=%s", public_id, resource_type, result)
    except Exception as exc:
        # The asset may already be gone; the row removal below decides the outcome.
        logger.warning(
            "event=remote_delete_failed public_id=%s resource_type=%s error=%s",
            public_id,
            resource_type,
            exc,
        )

    try:
        record = session.get(FileModel, file_id)
        if record is None:
            logger.info("event=file_already_deleted file_id=%s", file_id)
            return {"success": True, "message": ALREADY_DELETED_MESSAGE}
        session.delete(record)
        session.commit()
    except StaleDataError:
        session.rollback()
        logger.info("event=file_already_deleted file_id=%s source=concurrent", file_id)
        return {"success": True, "message": ALREADY_DELETED_MESSAGE}
    except SQLAlchemyError:
        session.rollback()
        logger.exception("event=file_delete_failed file_id=%s", file_id)
        raise UnexpectedError("Failed to delete file")

    metrics.record_deletions(1)
    logger.info("event=file_deleted file_id=%s public_id=%s", file_id, public_id)
    return {"success": True, "message": "File deleted successfully"}
