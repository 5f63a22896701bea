"""
conftest.py — Shared Test Fixtures for reviewwatch

Provides an in-memory SQLite database, a FastAPI TestClient with tenant
and DB overrides, factory fixtures for places and alert settings, and
fake connector / notification sender doubles.

Business Rules:
- All tests run against an isolated in-memory DB
- Tenant auth is overridden so tests don't need a signed session
- No test touches the network: connector and sender are always faked

Called by: all test files via pytest autodiscovery
Depends on: reviewwatch.models (Base), reviewwatch.database (get_db), reviewwatch.dependencies
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing reviewwatch modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CRON_SECRET"] = ""

import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from reviewwatch.errors import ConnectorError
from reviewwatch.models import AlertSettings, Base, Place

TENANT = "tenant-a"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def run(coro):
    """Run an async coroutine synchronously in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ── Test doubles ─────────────────────────────────────────────────────


class FakeConnector:
    """Returns canned reviews per place; raises for places in `failing`."""

    def __init__(self, reviews_by_place: dict | None = None, failing: set | None = None):
        self.reviews_by_place = reviews_by_place or {}
        self.failing = failing or set()
        self.calls: list[tuple[str, int]] = []

    async def fetch(self, place_id: str, limit: int) -> list[dict]:
        self.calls.append((place_id, limit))
        if place_id in self.failing:
            raise ConnectorError(place_id, "HTTP 503")
        return [dict(r) for r in self.reviews_by_place.get(place_id, [])]


class FakeSender:
    """Records every send; returns `result` or raises `error`."""

    def __init__(self, result: dict | None = None, error: Exception | None = None):
        self.result = result or {"status": "sent", "provider": "fake"}
        self.error = error
        self.calls: list[dict] = []

    async def send(self, to: str, subject: str, body: str) -> dict:
        self.calls.append({"to": to, "subject": subject, "body": body})
        if self.error:
            raise self.error
        return self.result


def make_raw(external_id: str, rating: int = 5, comment: str | None = "ok", author: str = "Ana") -> dict:
    return {
        "external_review_id": external_id,
        "author_name": author,
        "rating": rating,
        "comment": comment,
        "review_published_at": datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
        "raw_payload": {"id": external_id},
    }


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def make_place(db_session: Session):
    def _make(place_id: str, tenant_id: str = TENANT, is_active: bool = True) -> Place:
        place = Place(tenant_id=tenant_id, place_id=place_id, display_name=place_id.upper(), is_active=is_active)
        db_session.add(place)
        db_session.commit()
        db_session.refresh(place)
        return place

    return _make


@pytest.fixture()
def alert_settings(db_session: Session) -> AlertSettings:
    row = AlertSettings(tenant_id=TENANT, enabled=True, rating_max=3, notify_email="a@x.com", cooldown_minutes=60)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture()
def client(db_session: Session) -> TestClient:
    """FastAPI TestClient with tenant auth and DB overridden."""
    from reviewwatch.database import get_db
    from reviewwatch.dependencies import get_actor, require_tenant
    from reviewwatch.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[require_tenant] = lambda: TENANT
    app.dependency_overrides[get_actor] = lambda: "manager@example.com"

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
