from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands stored timestamps back without tzinfo; they were written as UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _new_id() -> str:
    return uuid4().hex


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=_new_id, primary_key=True)
    firstname: str
    lastname: str
    email: str = Field(unique=True, index=True)
    username: Optional[str] = Field(default=None, unique=True, index=True, nullable=True)
    phone: str = Field(unique=True, index=True)
    password: str  # bcrypt hash, never the raw password
    created_at: datetime = Field(default_factory=_utcnow)


class File(SQLModel, table=True):
    __tablename__ = "files"

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str                      # Original filename, as the user uploaded it
    public_id: str = Field(index=True)  # Cloudinary identifier
    url: str
    size_bytes: int
    file_type: str                 # image, video, document, spreadsheet, presentation, ...
    format: Optional[str] = Field(default=None, nullable=True)
    resource_type: str             # image, video or raw
    width: Optional[int] = Field(default=None, nullable=True)
    height: Optional[int] = Field(default=None, nullable=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    uploaded_at: datetime = Field(default_factory=_utcnow, index=True)
