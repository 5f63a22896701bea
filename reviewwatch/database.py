"""Database connection, session factory and conflict-aware inserts.

All naive datetimes loaded from the database are tagged as UTC via event
listener to prevent naive-vs-aware comparison errors.

Conflict-aware inserts (INSERT ... ON CONFLICT) go through dialect_insert()
so the same statement runs on PostgreSQL in production and SQLite in tests.
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker

from .config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "connect_args": {"connect_timeout": 10},
    }


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@event.listens_for(engine, "connect")
def _set_timezone(dbapi_conn, connection_record):
    if engine.dialect.name != "postgresql":
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("SET timezone = 'UTC'")
    cursor.close()


@event.listens_for(SessionLocal, "loaded_as_persistent")
def _make_datetimes_aware(session, instance):
    for key in instance.__class__.__table__.columns.keys():
        val = getattr(instance, key, None)
        if isinstance(val, datetime) and val.tzinfo is None:
            setattr(instance, key, val.replace(tzinfo=timezone.utc))


def dialect_insert(db: Session, model):
    """Return an insert() construct that supports on_conflict_do_*.

    Both the PostgreSQL and SQLite dialects expose the same
    on_conflict_do_update / on_conflict_do_nothing API.
    """
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
