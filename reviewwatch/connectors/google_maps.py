"""Google Maps public reviews connector (unauthenticated scraping).

Calls the listentitiesreviews preview endpoint. The response shape is
undocumented and changes, so parsing is deliberately loose: strip the
XSSI prefix, parse JSON, then collect anything object-shaped that carries
a rating-like key, or a `reviews` array at a known path.
"""

import json
import logging
from urllib.parse import quote

from ..errors import ConnectorError, ValidationError
from ..services.review_normalizer import normalize_review
from ..utils import clamp_int
from .base import ReviewSource

log = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
_RATING_KEYS = ("rating", "stars", "score")


class GoogleMapsReviewsConnector(ReviewSource):
    BASE_URL = "https://www.google.com/maps/preview/review/listentitiesreviews"

    def __init__(self, hl: str = "pt-BR", gl: str = "BR", timeout: float = 20.0, max_retries: int = 1):
        super().__init__(timeout=timeout, max_retries=max_retries)
        self.hl = hl
        self.gl = gl

    def candidate_urls(self, place_id: str, limit: int) -> list[str]:
        pid = quote(place_id, safe="")
        prefix = f"{self.BASE_URL}?hl={quote(self.hl)}&gl={quote(self.gl)}&authuser=0"
        return [
            f"{prefix}&pb=!1m2!1y{pid}!2y0!2m2!1i{limit}!2s!4m3!3b1!4b1!5b1",
            f"{prefix}&pb=!1m2!1y{pid}!2y0!2m2!1i{limit}!2s",
        ]

    async def _do_fetch(self, place_id: str, limit: int) -> list[dict]:
        from ..http_client import http

        limit = clamp_int(limit, 1, 200, 50)
        last_error = "no candidate URL"
        for url in self.candidate_urls(place_id, limit):
            try:
                r = await http.get(
                    url,
                    headers={
                        "accept": "*/*",
                        "accept-language": f"{self.hl},en;q=0.8",
                        "user-agent": _USER_AGENT,
                    },
                    timeout=self.timeout,
                )
            except Exception as e:
                last_error = str(e) or e.__class__.__name__
                continue
            if r.status_code != 200:
                last_error = f"HTTP {r.status_code}"
                continue
            parsed = parse_reviews_payload(r.text)
            if parsed is None:
                last_error = "Failed to parse Google payload"
                continue
            return self._normalize(place_id, parsed)

        raise ConnectorError(place_id, last_error)

    def _normalize(self, place_id: str, items: list) -> list[dict]:
        results = []
        for raw in items:
            try:
                review = normalize_review(place_id, raw)
            except ValidationError as e:
                log.debug(f"Dropping scraped review for {place_id}: {e}")
                continue
            results.append(
                {
                    "external_review_id": review.external_review_id,
                    "author_name": review.author_name,
                    "rating": review.rating,
                    "comment": review.comment,
                    "review_published_at": review.review_published_at,
                    "raw_payload": review.raw_payload,
                }
            )
        return results


def parse_reviews_payload(text: str) -> list | None:
    """Extract review-like objects from a Google payload, or None."""
    trimmed = (text or "").strip()
    if trimmed.startswith(")]}'"):
        trimmed = trimmed[4:].lstrip()

    try:
        extracted = _extract_reviews(json.loads(trimmed))
        if extracted is not None:
            return extracted
    except ValueError:
        pass

    first, last = trimmed.find("["), trimmed.rfind("]")
    if first >= 0 and last > first:
        try:
            return _extract_reviews(json.loads(trimmed[first:last + 1]))
        except ValueError:
            return None
    return None


def _extract_reviews(data) -> list | None:
    if isinstance(data, list):
        review_like = [o for o in _walk_objects(data) if any(k in o for k in _RATING_KEYS)]
        if review_like:
            return review_like

    if isinstance(data, dict):
        for candidate in (
            data.get("reviews"),
            (data.get("data") or {}).get("reviews") if isinstance(data.get("data"), dict) else None,
            (data.get("result") or {}).get("reviews") if isinstance(data.get("result"), dict) else None,
        ):
            if isinstance(candidate, list):
                return candidate
    return None


def _walk_objects(data) -> list[dict]:
    """Every dict nested anywhere under data, depth-first."""
    out = []
    stack = [data]
    while stack:
        cur = stack.pop()
        if isinstance(cur, list):
            stack.extend(reversed(cur))
        elif isinstance(cur, dict):
            out.append(cur)
            stack.extend(v for v in cur.values() if isinstance(v, (list, dict)))
    return out
