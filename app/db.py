from collections.abc import Iterator
from contextlib import contextmanager
import logging

from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.pool import QueuePool

from app.config import DB_CONNECT_ARGS, DB_URL

logger = logging.getLogger("printshelf.db")

# Upload batches write from several worker threads at once, so keep a pool
# large enough for one connection per concurrent file.
engine = create_engine(
    DB_URL,
    connect_args=DB_CONNECT_ARGS,
    poolclass=QueuePool,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,  # Verify connections before use
    pool_recycle=3600,   # Recycle connections after 1 hour
    echo=False           # Set to True for debugging SQL queries
)


def init_db() -> None:
    # Register the tables on SQLModel.metadata before creating them.
    from app import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("event=schema_ready url=%s", engine.url.render_as_string(hide_password=True))


def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session


session_scope = contextmanager(get_session)
