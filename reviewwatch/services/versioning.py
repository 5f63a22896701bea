"""Change detection — content hashing and version snapshots.

Every ingestion pass hashes each review's content fields. A new
ReviewVersion row is written only for hashes not yet recorded for that
review, via INSERT ... ON CONFLICT (review_id, content_hash) DO NOTHING.
The row count per review therefore equals the number of distinct content
states it has had.

Usage:
    from reviewwatch.services.versioning import compute_content_hash, record_versions
"""

import hashlib
import json
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from ..database import dialect_insert
from ..models import Review, ReviewVersion


def _iso(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    return str(value)


def _rating(value):
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def compute_content_hash(
    place_id: str,
    external_review_id: str,
    author_name: str | None,
    rating,
    comment: str | None,
    published_at,
) -> str:
    """SHA-256 hex digest over the ordered content fields."""
    fields = [
        place_id,
        external_review_id,
        author_name or None,
        _rating(rating),
        comment or None,
        _iso(published_at),
    ]
    stable = json.dumps(fields, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(stable.encode("utf-8")).hexdigest()


def review_content_hash(review: Review) -> str:
    return compute_content_hash(
        review.place_id,
        review.external_review_id,
        review.author_name,
        review.rating,
        review.comment,
        review.review_published_at,
    )


def review_snapshot(review: Review) -> dict:
    """JSON-safe copy of a review's stored state."""
    return {
        "id": review.id,
        "tenant_id": review.tenant_id,
        "place_id": review.place_id,
        "external_review_id": review.external_review_id,
        "author_name": review.author_name,
        "rating": review.rating,
        "comment": review.comment,
        "review_published_at": _iso(review.review_published_at),
        "is_critical": review.is_critical,
        "ingested_at": _iso(review.ingested_at),
    }


def record_versions(db: Session, reviews: list[Review]) -> int:
    """Insert one version per review, ignoring hashes already recorded.

    Returns the number of rows attempted (not the number inserted).
    Does not commit.
    """
    if not reviews:
        return 0
    rows = [
        {
            "tenant_id": r.tenant_id,
            "review_id": r.id,
            "content_hash": review_content_hash(r),
            "snapshot": review_snapshot(r),
            "created_at": datetime.now(timezone.utc),
        }
        for r in reviews
    ]
    stmt = (
        dialect_insert(db, ReviewVersion)
        .values(rows)
        .on_conflict_do_nothing(index_elements=["review_id", "content_hash"])
    )
    db.execute(stmt)
    return len(rows)
