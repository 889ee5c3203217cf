"""Database configuration and session management."""

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, declarative_base

from config.settings import get_settings


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    For file-based SQLite the parent directory is created on demand.
    """
    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False  # SQLite specific
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args)


engine = create_db_engine(get_settings().database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every stored datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db(bind: Engine | None = None):
    """Initialize database tables."""
    from db import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
