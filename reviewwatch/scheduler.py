"""Background scheduler — periodic multi-tenant review ingestion.

One APScheduler interval job, review_ingest, every ingest_interval_minutes.
Each tick is an independent run over every tenant with an active place;
the job opens its own session and never lets a failure kill the scheduler.
"""

from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

scheduler = AsyncIOScheduler(timezone="UTC")

JOB_ID = "review_ingest"


def configure_scheduler() -> None:
    """Register jobs from settings. Safe to call more than once."""
    from .config import settings

    if not settings.scheduled_ingest_enabled:
        logger.info("Scheduled review ingestion disabled")
        return

    scheduler.add_job(
        _job_ingest_reviews,
        IntervalTrigger(minutes=settings.ingest_interval_minutes),
        id=JOB_ID,
        name="Google review ingestion (all tenants)",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )
    logger.info("Scheduled review ingestion every {} min", settings.ingest_interval_minutes)


async def _job_ingest_reviews() -> dict | None:
    from . import database
    from .services.ingestion_service import run_scheduled_ingestion

    db = database.SessionLocal()
    try:
        summary = await run_scheduled_ingestion(db)
        logger.info(
            "Scheduled ingestion: {} tenants ok, {} failed, {} reviews, {} new critical",
            summary["succeeded"], summary["failed"], summary["ingested"], summary["critical_new"],
        )
        return summary
    except Exception as e:
        logger.error("Scheduled ingestion tick failed: {}", e)
        return None
    finally:
        db.close()
