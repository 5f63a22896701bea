"""Alert evaluator — new low-rating review notifications.

Runs after each ingestion pass with that run's explicit start time:
  1. Load the tenant's AlertSettings (defaults when absent); stop if disabled.
  2. Candidates: reviews first ingested at/after run_started_at with
     rating <= settings.rating_max.
  3. Dedup-insert one alert_log row per candidate (ON CONFLICT DO NOTHING
     on tenant_id + alert_type + review_id). Repeated or concurrent
     evaluations over overlapping windows never create a second row.
  4. Re-read the rows still in an eligible status; only those are sent.
  5. Send, then conditionally move the row pending → sent | error.

Business Rules:
- One recipient: first non-empty entry of notify_email split on ; or ,
- A "skipped" send result counts as sent (the decision to send was made once)
- Rows in "error" are terminal unless settings.alert_retry_errors is on
- cooldown_minutes is stored but not enforced; the dedup key is permanent

Called by: services/ingestion_service.py (end of every tenant run)
Depends on: models, services/notification_service.py
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import dialect_insert
from ..errors import PersistenceError
from ..models import AlertLogEntry, AlertSettings, Review

ALERT_TYPE = "new_low_rating_review"


@dataclass
class AlertConfig:
    enabled: bool = True
    rating_max: int = 3
    notify_email: str | None = None
    cooldown_minutes: int = 60


def load_alert_settings(db: Session, tenant_id: str) -> AlertConfig:
    row = db.get(AlertSettings, tenant_id)
    if row is None:
        return AlertConfig()
    return AlertConfig(
        enabled=bool(row.enabled),
        rating_max=int(row.rating_max or 3),
        notify_email=row.notify_email,
        cooldown_minutes=row.cooldown_minutes if row.cooldown_minutes is not None else 60,
    )


def resolve_recipient(notify_email: str | None) -> str | None:
    for part in re.split(r"[;,]+", notify_email or ""):
        if part.strip():
            return part.strip()
    return None


def build_alert_message(review: Review, rating_max: int) -> tuple[str, str]:
    subject = f"New {review.rating}★ Google review (≤ {rating_max}★)"
    lines = ["New Google review", f"Rating: {review.rating}★"]
    if review.author_name:
        lines.append(f"Author: {review.author_name}")
    if review.place_id:
        lines.append(f"Place: {review.place_id}")
    if review.review_published_at:
        lines.append(f"Date: {review.review_published_at.strftime('%Y-%m-%d %H:%M UTC')}")
    lines.append(f"Comment: {review.comment}" if review.comment else "Comment: (no comment)")
    lines += ["", "Open the dashboard to follow up: Alerts • Google Reviews"]
    return subject, "\n".join(lines)


def _eligible_statuses() -> tuple[str, ...]:
    from ..config import settings

    return ("pending", "error") if settings.alert_retry_errors else ("pending",)


def _finalize(db: Session, entry: AlertLogEntry, eligible: tuple[str, ...], values: dict) -> bool:
    """Move one row out of an eligible status. False if another run got there first."""
    updated = (
        db.query(AlertLogEntry)
        .filter(AlertLogEntry.id == entry.id, AlertLogEntry.send_status.in_(eligible))
        .update(values, synchronize_session="fetch")
    )
    db.commit()
    return updated > 0


async def evaluate_and_alert(tenant_id: str, run_started_at: datetime, db: Session, *, sender=None) -> dict:
    stage = "load_alert_settings"
    try:
        cfg = load_alert_settings(db, tenant_id)
        if not cfg.enabled:
            logger.debug("Alerts disabled for tenant {}", tenant_id)
            return {"skipped": "disabled"}

        stage = "select_alert_candidates"
        candidates = (
            db.query(Review)
            .filter(
                Review.tenant_id == tenant_id,
                Review.ingested_at >= run_started_at,
                Review.rating <= cfg.rating_max,
            )
            .order_by(Review.ingested_at.desc())
            .all()
        )
        stats = {"candidates": len(candidates), "registered": 0, "eligible": 0, "sent": 0, "errors": 0}
        if not candidates:
            return stats

        recipient = resolve_recipient(cfg.notify_email)
        if not recipient:
            logger.warning("Tenant {} has {} alert candidates but no notify_email", tenant_id, len(candidates))
            return {"skipped": "no_recipient", "candidates": len(candidates)}

        stage = "register_alerts"
        now = datetime.now(timezone.utc)
        stmt = (
            dialect_insert(db, AlertLogEntry)
            .values(
                [
                    {
                        "tenant_id": tenant_id,
                        "alert_type": ALERT_TYPE,
                        "review_id": r.id,
                        "payload": {"rating": r.rating, "place_id": r.place_id, "author_name": r.author_name},
                        "send_status": "pending",
                        "created_at": now,
                    }
                    for r in candidates
                ]
            )
            .on_conflict_do_nothing(index_elements=["tenant_id", "alert_type", "review_id"])
        )
        result = db.execute(stmt)
        db.commit()
        stats["registered"] = max(result.rowcount or 0, 0)

        stage = "select_pending_alerts"
        eligible = _eligible_statuses()
        rows = (
            db.query(AlertLogEntry)
            .filter(
                AlertLogEntry.tenant_id == tenant_id,
                AlertLogEntry.alert_type == ALERT_TYPE,
                AlertLogEntry.send_status.in_(eligible),
                AlertLogEntry.review_id.in_([r.id for r in candidates]),
            )
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(stage, tenant_id, cause=e) from e

    by_review = {row.review_id: row for row in rows}
    stats["eligible"] = len(by_review)
    if not by_review:
        return stats

    if sender is None:
        from .notification_service import get_notification_sender

        sender = get_notification_sender()

    for review in candidates:
        entry = by_review.get(review.id)
        if entry is None:
            continue
        subject, body = build_alert_message(review, cfg.rating_max)
        try:
            outcome = await sender.send(recipient, subject, body)
            values = {"send_status": "sent", "sent_at": datetime.now(timezone.utc), "send_error": None}
            if (outcome or {}).get("status") == "skipped":
                logger.info("Alert for review {} skipped by sender: {}", review.id, outcome.get("reason"))
        except Exception as e:
            logger.warning("Alert send failed for review {} (tenant {}): {}", review.id, tenant_id, e)
            values = {"send_status": "error", "send_error": (str(e) or "Send failed")[:1000]}

        try:
            applied = _finalize(db, entry, eligible, values)
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError("update_alert_log", tenant_id, cause=e) from e
        if not applied:
            logger.info("Alert row {} already finalized by another run", entry.id)
            continue
        if values["send_status"] == "sent":
            stats["sent"] += 1
        else:
            stats["errors"] += 1

    logger.info("Alerts for tenant {}: {}", tenant_id, stats)
    return stats
