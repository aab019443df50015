"""Account registration, login and session lookups."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.exceptions import AuthenticationError, ConflictError, UnexpectedError, ValidationError
from app.core.metrics import metrics
from app.core.security import get_password_hash, verify_password
from app.core.validation import IDENTIFYING_FIELDS, validate_login, validate_registration
from app.models import User, as_utc

logger = logging.getLogger("printshelf.accounts")

_FIELD_LABELS = {"email": "email", "username": "username", "phone": "phone number"}


def user_projection(user: User) -> dict[str, Any]:
    """Public view of a user; the password hash never leaves this module."""
    return {
        "id": user.id,
        "firstname": user.firstname,
        "lastname": user.lastname,
        "email": user.email,
        "username": user.username,
        "phone": user.phone,
        "createdAt": as_utc(user.created_at).isoformat() if user.created_at else None,
    }


def find_conflicting_field(session: Session, values: Mapping[str, Optional[str]]) -> Optional[str]:
    """Return the first identifying field (email, username, phone) already taken."""
    provided = {field: values.get(field) for field in IDENTIFYING_FIELDS if values.get(field)}
    if not provided:
        return None
    clauses = [getattr(User, field) == value for field, value in provided.items()]
    matches = session.exec(select(User).where(or_(*clauses))).all()
    for field, value in provided.items():
        if any(getattr(match, field) == value for match in matches):
            return field
    return None


def _conflict(field: str) -> ConflictError:
    message = f"User already exists with this {_FIELD_LABELS.get(field, field)}"
    return ConflictError(message, errors={field: message})


def register_user(session: Session, data: Mapping[str, Optional[str]]) -> User:
    errors = validate_registration(data)
    if errors:
        raise ValidationError("Validation failed", errors=errors)

    try:
        field = find_conflicting_field(session, data)
        if field:
            raise _conflict(field)

        user = User(
            firstname=data["firstname"],
            lastname=data["lastname"],
            email=data["email"],
            username=data.get("username") or None,
            phone=data["phone"],
            password=get_password_hash(data["password"]),
        )
        session.add(user)
        session.commit()
        session.refresh(user)
    except IntegrityError:
        # Lost the race against a concurrent registration: the unique
        # constraint is the authoritative guard.
        session.rollback()
        field = find_conflicting_field(session, data) or "email"
        logger.warning("event=register_conflict source=constraint field=%s", field)
        raise _conflict(field)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("event=register_failed")
        raise UnexpectedError()

    metrics.record_registration()
    logger.info("event=register_success user_id=%s", user.id)
    return user


def authenticate(session: Session, identifier: Optional[str], password: Optional[str]) -> User:
    errors = validate_login(identifier, password)
    if errors:
        raise ValidationError("Validation failed", errors=errors)

    identifier = identifier.strip()
    try:
        user = session.exec(
            select(User).where(
                or_(User.email == identifier, User.username == identifier, User.phone == identifier)
            )
        ).first()
    except SQLAlchemyError:
        logger.exception("event=login_failed reason=database")
        raise UnexpectedError()

    if user is None:
        message = "No account found with this email, username or phone number"
        raise AuthenticationError(message, errors={"identifier": message})

    if not verify_password(password, user.password):
        logger.info("event=login_rejected reason=password user_id=%s", user.id)
        raise AuthenticationError("Incorrect password", errors={"password": "Incorrect password"})

    metrics.record_login()
    logger.info("event=login_success user_id=%s", user.id)
    return user


def get_user(session: Session, user_id: Optional[str]) -> Optional[User]:
    if not user_id:
        return None
    try:
        return session.get(User, user_id)
    except SQLAlchemyError:
        logger.exception("event=user_lookup_failed user_id=%s", user_id)
        raise UnexpectedError()
