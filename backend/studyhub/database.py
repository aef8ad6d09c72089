import logging
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from studyhub.config import settings

logger = logging.getLogger(__name__)


_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

_engine_kwargs: dict = (
    {"connect_args": {"check_same_thread": False}}
    if _is_sqlite
    else {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}
)

engine = create_engine(settings.DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create any missing tables.

    Only used for local SQLite development; deployed databases are managed
    by the Alembic revisions under backend/alembic.
    """
    if not _is_sqlite:
        return
    # Models must be imported so their tables are registered on Base.metadata
    from studyhub.models import message, study_session  # noqa: F401

    logger.info("Creating SQLite tables if missing")
    Base.metadata.create_all(bind=engine)
