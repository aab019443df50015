from __future__ import annotations

import logging
from typing import Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.exceptions import UnexpectedError, ValidationError
from app.core.validation import FIELD_CHECKS, IDENTIFYING_FIELDS
from app.models import User

logger = logging.getLogger("printshelf.availability")


def check_availability(
    session: Session,
    values: Mapping[str, Optional[str]],
    *,
    collect_errors: bool = False,
) -> dict:
    """Report, per identifying field, whether an account already uses the value.

    With ``collect_errors`` every malformed field is reported at once;
    otherwise the first malformed field short-circuits the check.
    """
    provided = {field: values[field] for field in IDENTIFYING_FIELDS if values.get(field)}
    if not provided:
        raise ValidationError("At least one field (email, username, or phone) is required")

    errors: dict[str, str] = {}
    for field, value in provided.items():
        message = FIELD_CHECKS[field](value)
        if not message:
            continue
        if not collect_errors:
            raise ValidationError(message, errors={field: message})
        errors[field] = message
    if errors:
        raise ValidationError("Validation errors occurred", errors=errors)

    checks: dict[str, bool] = {}
    try:
        for field, value in provided.items():
            column = getattr(User, field)
            checks[field] = session.exec(select(User.id).where(column == value)).first() is not None
    except SQLAlchemyError:
        logger.exception("event=availability_failed fields=%s", ",".join(provided))
        raise UnexpectedError("An unexpected error occurred while checking user data")

    taken = any(checks.values())
    return {
        "success": True,
        "available": not taken,
        "checks": checks,
        "message": "One or more fields are already taken" if taken else "All fields are available",
    }
