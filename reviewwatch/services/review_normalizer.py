"""Review normalizer — raw connector/backfill payload → validated review.

Accepts the field aliases seen in scraped Google payloads and in manual
backfill uploads. Each item is validated on its own; callers decide
whether to drop (connector) or report (backfill) a rejected item.

Business Rules:
- external_review_id is required (external_review_id | reviewId | id)
- rating must be numeric, integral, and within 1..5
- An unparseable published date becomes None, it does not reject the item
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..errors import ValidationError
from ..utils import safe_float

RATING_MIN = 1
RATING_MAX = 5


@dataclass
class NormalizedReview:
    place_id: str
    external_review_id: str
    author_name: str | None
    rating: int
    comment: str | None
    review_published_at: datetime | None
    raw_payload: dict = field(default_factory=dict)


def _first(raw: dict, *keys):
    for key in keys:
        val = raw.get(key)
        if val is not None and val != "":
            return val
    return None


def parse_published_at(value) -> datetime | None:
    """Parse ISO-8601 strings and epoch seconds/milliseconds to aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        if ts > 1e11:  # milliseconds
            ts /= 1000
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _parse_rating(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("rating must be numeric")
    rating = safe_float(value)
    if rating is None or not math.isfinite(rating):
        raise ValidationError("rating must be numeric")
    if not rating.is_integer() or not (RATING_MIN <= rating <= RATING_MAX):
        raise ValidationError(f"rating must be an integer between {RATING_MIN} and {RATING_MAX}")
    return int(rating)


def normalize_review(place_id: str, raw) -> NormalizedReview:
    if not isinstance(raw, dict):
        raise ValidationError("review must be an object")

    external_id = str(_first(raw, "external_review_id", "reviewId", "id") or "").strip()
    if not external_id:
        raise ValidationError("missing external_review_id")

    rating = _parse_rating(_first(raw, "rating", "stars", "score"))

    user = raw.get("user") if isinstance(raw.get("user"), dict) else {}
    author = _first(raw, "author_name", "authorName", "author") or user.get("name")
    comment = _first(raw, "comment", "text", "content", "snippet")
    published = _first(raw, "review_published_at", "publishedAt", "date", "timestamp")

    return NormalizedReview(
        place_id=place_id,
        external_review_id=external_id,
        author_name=str(author) if author else None,
        rating=rating,
        comment=str(comment) if comment else None,
        review_published_at=parse_published_at(published),
        raw_payload=raw,
    )
