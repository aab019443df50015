from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from app.models import File as FileModel
from app.models import User


def fetch_storage_totals(session: Session, user_id: Optional[str] = None) -> dict[str, int]:
    files_stmt = select(func.count(FileModel.id))
    bytes_stmt = select(func.coalesce(func.sum(FileModel.size_bytes), 0))
    if user_id is not None:
        files_stmt = files_stmt.where(FileModel.user_id == user_id)
        bytes_stmt = bytes_stmt.where(FileModel.user_id == user_id)

    total_files = session.exec(files_stmt).one()
    total_bytes = session.exec(bytes_stmt).one()

    return {
        "total_files": int(total_files or 0),
        "total_bytes": int(total_bytes or 0),
    }


def count_users(session: Session) -> int:
    return int(session.exec(select(func.count(User.id))).one() or 0)
