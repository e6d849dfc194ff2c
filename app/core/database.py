"""
Database engine, session factory and declarative base.
"""
import logging
from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections get foreign keys enforced."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        db_path = database_url.partition("///")[2]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine_kwargs = {}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection so every session sees the same in-memory database
        engine_kwargs["poolclass"] = StaticPool

    db_engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)
    if database_url.startswith("sqlite"):
        event.listen(db_engine, "connect", _enable_sqlite_foreign_keys)
    return db_engine


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(db_engine: Engine = engine) -> None:
    """Create all tables from ORM metadata."""
    # Import models so they register on Base.metadata
    from ..models import document, query  # noqa: F401

    Base.metadata.create_all(bind=db_engine)


def check_connection(session_factory=SessionLocal) -> bool:
    """Return True if a trivial query succeeds."""
    try:
        with session_factory() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False
