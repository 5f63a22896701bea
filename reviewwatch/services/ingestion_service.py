"""Ingestion engine — fetch, merge, version, audit, alert for one tenant run.

A run is bounded by run_started_at, recorded before any connector call and
passed explicitly down the call chain. Reviews whose ingested_at is at or
after that instant were inserted (not merely updated) by this run.

Business Rules:
- Places are processed sequentially; a connector failure or timeout skips
  that place only and is reported in failed_places
- The merge is a single INSERT ... ON CONFLICT DO UPDATE keyed on
  (tenant_id, place_id, external_review_id); the update never touches
  ingested_at or is_critical
- Every merged review is passed through versioning
- Newly inserted critical reviews get one ingested_critical action each
- Storage failures abort the tenant run as PersistenceError(stage, ...)
- The scheduled trigger isolates each tenant's failure from the others

Usage:
    from reviewwatch.services.ingestion_service import run_ingestion
    result = await run_ingestion(tenant_id, db)

Called by: routers/ingestion.py, scheduler.py
Depends on: connectors/, services/classifier.py, services/versioning.py,
            services/audit_service.py, services/alert_service.py
"""

import asyncio
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import dialect_insert
from ..errors import ConnectorError, PersistenceError, ValidationError
from ..models import Place, Review
from .audit_service import record_actions
from .classifier import is_critical
from .review_normalizer import normalize_review
from .versioning import record_versions

# Columns refreshed when an existing review is seen again
_MERGE_UPDATE_COLUMNS = (
    "author_name",
    "rating",
    "comment",
    "review_published_at",
    "raw_payload",
    "last_seen_at",
)


def get_connector():
    """Build the configured review source."""
    from ..config import settings
    from ..connectors.google_maps import GoogleMapsReviewsConnector

    return GoogleMapsReviewsConnector(
        hl=settings.scraper_hl,
        gl=settings.scraper_gl,
        timeout=settings.connector_timeout_seconds,
        max_retries=settings.connector_max_retries,
    )


def merge_reviews(
    db: Session,
    tenant_id: str,
    place_id: str,
    reviews: list[dict],
    *,
    source: str = "scraping",
) -> list[Review]:
    """Upsert reviews for one place and record their versions.

    Returns the merged Review rows. Raises SQLAlchemyError; does not commit.
    """
    if not reviews:
        return []

    now = datetime.now(timezone.utc)
    # One row per external id: ON CONFLICT cannot touch the same row twice in one statement
    by_external_id: dict[str, dict] = {}
    for r in reviews:
        by_external_id[r["external_review_id"]] = {
            "tenant_id": tenant_id,
            "place_id": place_id,
            "external_review_id": r["external_review_id"],
            "author_name": r.get("author_name"),
            "rating": r["rating"],
            "comment": r.get("comment"),
            "review_published_at": r.get("review_published_at"),
            "source": source,
            "raw_payload": r.get("raw_payload"),
            "is_critical": is_critical(r["rating"]),
            "status": "new",
            "ingested_at": now,
            "last_seen_at": now,
        }

    stmt = dialect_insert(db, Review).values(list(by_external_id.values()))
    stmt = stmt.on_conflict_do_update(
        index_elements=["tenant_id", "place_id", "external_review_id"],
        set_={col: getattr(stmt.excluded, col) for col in _MERGE_UPDATE_COLUMNS},
    )
    db.execute(stmt)

    merged = (
        db.query(Review)
        .filter(
            Review.tenant_id == tenant_id,
            Review.place_id == place_id,
            Review.external_review_id.in_(list(by_external_id)),
        )
        .execution_options(populate_existing=True)
        .all()
    )
    record_versions(db, merged)
    return merged


async def _fetch_place(connector, place_id: str, limit: int, timeout: float) -> list[dict]:
    try:
        return await asyncio.wait_for(connector.fetch(place_id, limit), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ConnectorError(place_id, f"timed out after {timeout:g}s") from e
    except ConnectorError:
        raise
    except Exception as e:
        raise ConnectorError(place_id, str(e) or e.__class__.__name__) from e


async def run_ingestion(
    tenant_id: str,
    db: Session,
    *,
    connector=None,
    sender=None,
    evaluate_alerts: bool = True,
) -> dict:
    """One ingestion run for a tenant. See module docstring for the rules."""
    from ..config import settings
    from .alert_service import evaluate_and_alert

    run_started_at = datetime.now(timezone.utc)
    connector = connector or get_connector()

    try:
        places = (
            db.query(Place)
            .filter(Place.tenant_id == tenant_id, Place.is_active.is_(True))
            .order_by(Place.id)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("load_places", tenant_id, cause=e) from e

    place_ids = [p.place_id for p in places if p.place_id]
    result = {
        "tenant_id": tenant_id,
        "ingested": 0,
        "critical_new": 0,
        "places": len(place_ids),
        "failed_places": [],
        "alerts": None,
    }
    if not place_ids:
        return result

    for place_id in place_ids:
        try:
            raw = await _fetch_place(
                connector, place_id, settings.review_fetch_limit, settings.connector_timeout_seconds
            )
        except ConnectorError as e:
            logger.warning("Connector failed for tenant {} place {}: {}", tenant_id, place_id, e.message)
            result["failed_places"].append({"place_id": place_id, "error": e.message})
            continue
        if not raw:
            continue

        try:
            merged = merge_reviews(db, tenant_id, place_id, raw)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError("upsert_reviews", tenant_id, place_id, cause=e) from e
        result["ingested"] += len(merged)
        logger.debug("Merged {} reviews for tenant {} place {}", len(merged), tenant_id, place_id)

    try:
        new_critical = (
            db.query(Review)
            .filter(
                Review.tenant_id == tenant_id,
                Review.is_critical.is_(True),
                Review.ingested_at >= run_started_at,
            )
            .order_by(Review.ingested_at.desc())
            .all()
        )
        if new_critical:
            record_actions(
                db,
                tenant_id,
                "ingested_critical",
                [
                    (r.id, {"place_id": r.place_id, "external_review_id": r.external_review_id})
                    for r in new_critical
                ],
            )
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("audit_critical", tenant_id, cause=e) from e
    result["critical_new"] = len(new_critical)

    if evaluate_alerts:
        result["alerts"] = await evaluate_and_alert(tenant_id, run_started_at, db, sender=sender)

    logger.info(
        "Ingestion run for tenant {}: {} reviews, {} new critical, {}/{} places failed",
        tenant_id, result["ingested"], result["critical_new"], len(result["failed_places"]), result["places"],
    )
    return result


def ingest_batch(
    db: Session,
    tenant_id: str,
    place_id: str,
    raw_reviews: list,
    *,
    actor: str | None = None,
) -> dict:
    """Manual backfill: validate each item, merge the valid subset.

    Raises ValidationError when no item is valid, PersistenceError on
    storage failure.
    """
    valid, rejected = [], []
    for index, raw in enumerate(raw_reviews or []):
        try:
            review = normalize_review(place_id, raw)
        except ValidationError as e:
            rejected.append({"index": index, "error": e.message})
            continue
        valid.append(
            {
                "external_review_id": review.external_review_id,
                "author_name": review.author_name,
                "rating": review.rating,
                "comment": review.comment,
                "review_published_at": review.review_published_at,
                "raw_payload": review.raw_payload,
            }
        )

    if not valid:
        raise ValidationError("No valid reviews")

    try:
        merged = merge_reviews(db, tenant_id, place_id, valid, source="manual")
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("upsert_reviews", tenant_id, place_id, cause=e) from e

    logger.info(
        "Manual backfill by {} for tenant {} place {}: {} merged, {} rejected",
        actor or "unknown", tenant_id, place_id, len(merged), len(rejected),
    )
    return {"ingested": len(merged), "rejected": rejected}


def active_tenant_ids(db: Session) -> list[str]:
    rows = (
        db.query(Place.tenant_id)
        .filter(Place.is_active.is_(True))
        .distinct()
        .order_by(Place.tenant_id)
        .all()
    )
    return [r[0] for r in rows if r[0]]


async def run_scheduled_ingestion(
    db: Session,
    *,
    tenant_id: str | None = None,
    connector=None,
    sender=None,
) -> dict:
    """Run one tenant, or every tenant with an active place, sequentially."""
    if tenant_id:
        tenant_ids = [tenant_id]
    else:
        try:
            tenant_ids = active_tenant_ids(db)
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError("list_tenants", "*", cause=e) from e

    summary = {"ingested": 0, "critical_new": 0, "tenants": [], "succeeded": 0, "failed": 0, "errors": []}
    for tid in tenant_ids:
        try:
            r = await run_ingestion(tid, db, connector=connector, sender=sender)
        except PersistenceError as e:
            logger.error("Ingestion run failed for tenant {}: {}", tid, e)
            summary["failed"] += 1
            summary["errors"].append({**e.to_dict(), "error": str(e)})
            continue
        summary["succeeded"] += 1
        summary["ingested"] += r["ingested"]
        summary["critical_new"] += r["critical_new"]
        summary["tenants"].append(r)

    return summary
