"""Database session and metadata configuration."""

from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_settings

settings = get_settings()

# lock_not_available, serialization_failure, deadlock_detected
TRANSIENT_SQLSTATES = frozenset({"55P03", "40001", "40P01"})


def _configure_sqlite(engine: Engine, busy_timeout_ms: int) -> None:
    """SQLite has no row locks; take the write lock up front instead.

    Every transaction, read-only ones included, holds the database write lock
    until it ends, so readers queue behind writers for up to the busy timeout.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):
        # Let SQLAlchemy own BEGIN so the "begin" hook below controls it.
        dbapi_conn.isolation_level = None
        cur = dbapi_conn.cursor()
        try:
            cur.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)};")
            cur.execute("PRAGMA foreign_keys=ON;")
        finally:
            cur.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str) -> Engine:
    """Create an engine, applying SQLite transaction settings when needed."""

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            future=True,
        )
        _configure_sqlite(engine, settings.sqlite_busy_timeout_ms)
        return engine
    return create_engine(database_url, pool_pre_ping=True, future=True)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db() -> Generator:
    """Yield a database session for request lifetime."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def is_transient_db_error(exc: DBAPIError) -> bool:
    """Return True for lock timeouts and serialization conflicts worth retrying."""

    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True
    message = str(orig or exc).lower()
    return "database is locked" in message or "database table is locked" in message
