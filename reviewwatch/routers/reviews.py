"""
routers/reviews.py — Review browsing, status, and audit timeline

Business Rules:
- Everything is scoped to the session tenant; other tenants' ids 404
- Status changes append a status_change action in the same commit
- Actions are append-only; the vocabulary is enforced by audit_service

Called by: main.py (router mount)
Depends on: models, services/audit_service.py, dependencies
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_actor, require_tenant
from ..models import Review
from ..schemas.reviews import ActionCreate, ActionOut, ReviewOut, StatusUpdate
from ..services.audit_service import list_actions, record_action
from ..utils import clamp_int

router = APIRouter(tags=["reviews"])

SUMMARY_SCAN_LIMIT = 1000


def _tenant_review(db: Session, tenant_id: str, review_id: int) -> Review:
    review = (
        db.query(Review)
        .filter(Review.tenant_id == tenant_id, Review.id == review_id)
        .first()
    )
    if not review:
        raise HTTPException(404, "Review not found")
    return review


@router.get("/api/reviews")
async def list_reviews(
    place_id: str | None = None,
    status: str | None = None,
    is_critical: bool | None = None,
    rating_min: int | None = None,
    rating_max: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(50),
    offset: int = Query(0, ge=0),
    tenant_id: str = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    query = db.query(Review).filter(Review.tenant_id == tenant_id)
    if place_id:
        query = query.filter(Review.place_id == place_id)
    if status and status != "all":
        query = query.filter(Review.status == status)
    if is_critical is not None:
        query = query.filter(Review.is_critical.is_(is_critical))
    if rating_min is not None:
        query = query.filter(Review.rating >= rating_min)
    if rating_max is not None:
        query = query.filter(Review.rating <= rating_max)
    if start:
        query = query.filter(Review.review_published_at >= start)
    if end:
        query = query.filter(Review.review_published_at <= end)

    rows = (
        query.order_by(Review.review_published_at.desc(), Review.id.desc())
        .offset(offset)
        .limit(clamp_int(limit, 1, 200, 50))
        .all()
    )
    return {"reviews": [ReviewOut.model_validate(r).model_dump(mode="json") for r in rows]}


@router.get("/api/reviews/summary")
async def review_summary(
    place_id: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(20),
    tenant_id: str = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    """Rating counts over the most recent reviews, plus recent and critical lists."""
    query = db.query(Review).filter(Review.tenant_id == tenant_id)
    if place_id:
        query = query.filter(Review.place_id == place_id)
    if start:
        query = query.filter(Review.review_published_at >= start)
    if end:
        query = query.filter(Review.review_published_at <= end)
    rows = (
        query.order_by(Review.review_published_at.desc(), Review.id.desc())
        .limit(SUMMARY_SCAN_LIMIT)
        .all()
    )

    limit = clamp_int(limit, 1, 100, 20)
    total = len(rows)
    critical = [r for r in rows if r.is_critical]
    summary = {
        "total": total,
        "avg_rating": round(sum(r.rating for r in rows) / total, 2) if total else 0,
        "counts": {
            "positive": sum(1 for r in rows if r.rating >= 4),
            "neutral": sum(1 for r in rows if r.rating == 3),
            "negative": sum(1 for r in rows if r.rating <= 2),
            "critical": len(critical),
            "critical_open": sum(1 for r in critical if r.status in ("new", "in_progress")),
        },
    }
    return {
        "summary": summary,
        "recent": [ReviewOut.model_validate(r).model_dump(mode="json") for r in rows[:limit]],
        "critical_recent": [ReviewOut.model_validate(r).model_dump(mode="json") for r in critical[:limit]],
    }


@router.post("/api/reviews/{review_id}/status")
async def update_status(
    review_id: int,
    body: StatusUpdate,
    actor: str | None = Depends(get_actor),
    tenant_id: str = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    review = _tenant_review(db, tenant_id, review_id)
    review.status = body.status
    review.status_updated_at = datetime.now(timezone.utc)
    record_action(db, tenant_id, review.id, "status_change", {"status": body.status}, actor)
    db.commit()
    db.refresh(review)
    logger.info("Review {} status -> {} (tenant {})", review.id, body.status, tenant_id)
    return {"review": ReviewOut.model_validate(review).model_dump(mode="json")}


@router.get("/api/reviews/{review_id}/actions")
async def get_actions(
    review_id: int,
    tenant_id: str = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    _tenant_review(db, tenant_id, review_id)
    actions = list_actions(db, tenant_id, review_id)
    return {"actions": [ActionOut.model_validate(a).model_dump(mode="json") for a in actions]}


@router.post("/api/reviews/{review_id}/actions")
async def add_action(
    review_id: int,
    body: ActionCreate,
    actor: str | None = Depends(get_actor),
    tenant_id: str = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    _tenant_review(db, tenant_id, review_id)
    action = record_action(db, tenant_id, review_id, body.action_type, body.payload, actor)
    db.commit()
    db.refresh(action)
    return {"action": ActionOut.model_validate(action).model_dump(mode="json")}
