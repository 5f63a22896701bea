"""
test_scheduler.py — Tests for the APScheduler ingestion job

Covers configure_scheduler registration and the _job_ingest_reviews tick.
The job opens SessionLocal() itself, so we patch reviewwatch.database.SessionLocal
to return the test DB session with close() disabled.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from conftest import FakeConnector, make_raw, run
from reviewwatch.config import settings
from reviewwatch.models import Review
from reviewwatch.scheduler import JOB_ID, _job_ingest_reviews, configure_scheduler, scheduler


@pytest.fixture()
def scheduler_db(db_session: Session):
    original_close = db_session.close
    db_session.close = lambda: None
    with patch("reviewwatch.database.SessionLocal", return_value=db_session):
        yield db_session
    db_session.close = original_close


@pytest.fixture(autouse=True)
def _clear_jobs():
    scheduler.remove_all_jobs()
    yield
    scheduler.remove_all_jobs()


class TestConfigureScheduler:
    def test_registers_interval_job(self):
        with patch.object(settings, "ingest_interval_minutes", 15):
            configure_scheduler()
        job = scheduler.get_job(JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(minutes=15)
        assert job.max_instances == 1
        assert job.coalesce is True

    def test_disabled_registers_nothing(self):
        with patch.object(settings, "scheduled_ingest_enabled", False):
            configure_scheduler()
        assert scheduler.get_jobs() == []


class TestIngestJob:
    def test_runs_all_tenants(self, scheduler_db: Session, make_place):
        make_place("p1", tenant_id="t1")
        make_place("p2", tenant_id="t2")
        connector = FakeConnector({"p1": [make_raw("a", rating=2)], "p2": [make_raw("b")]})

        with patch("reviewwatch.services.ingestion_service.get_connector", return_value=connector):
            summary = run(_job_ingest_reviews())

        assert summary["succeeded"] == 2
        assert summary["ingested"] == 2
        assert summary["critical_new"] == 1
        assert scheduler_db.query(Review).count() == 2

    def test_failure_does_not_raise(self, scheduler_db: Session):
        with patch(
            "reviewwatch.services.ingestion_service.run_scheduled_ingestion",
            side_effect=RuntimeError("db down"),
        ):
            assert run(_job_ingest_reviews()) is None

    def test_session_closed(self, db_session: Session):
        with patch("reviewwatch.database.SessionLocal", return_value=db_session), patch.object(
            db_session, "close"
        ) as close:
            run(_job_ingest_reviews())
        close.assert_called_once()
