"""
test_routers_reviews.py — Tests for review browsing, status, and actions

Called by: pytest
Depends on: reviewwatch/routers/reviews.py, conftest.py
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from conftest import TENANT
from reviewwatch.models import Review, ReviewAction
from reviewwatch.services.classifier import is_critical

BASE = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def seed(db_session: Session):
    """Five reviews for TENANT on two places, one for another tenant."""

    def _review(ext_id, rating, days_ago, place="p1", tenant=TENANT, status="new"):
        now = datetime.now(timezone.utc)
        r = Review(
            tenant_id=tenant,
            place_id=place,
            external_review_id=ext_id,
            author_name="Ana",
            rating=rating,
            comment=f"review {ext_id}",
            review_published_at=BASE - timedelta(days=days_ago),
            is_critical=is_critical(rating),
            status=status,
            ingested_at=now,
            last_seen_at=now,
        )
        db_session.add(r)
        return r

    rows = {
        "r5": _review("r5", 5, 0),
        "r4": _review("r4", 4, 1),
        "r3": _review("r3", 3, 2, status="resolved"),
        "r2": _review("r2", 2, 3, place="p2"),
        "r1": _review("r1", 1, 4, place="p2", status="in_progress"),
        "other": _review("x1", 1, 0, tenant="tenant-b"),
    }
    db_session.commit()
    return rows


class TestListReviews:
    def test_newest_first_and_tenant_scoped(self, client: TestClient, seed):
        reviews = client.get("/api/reviews").json()["reviews"]
        assert [r["external_review_id"] for r in reviews] == ["r5", "r4", "r3", "r2", "r1"]

    def test_filters(self, client: TestClient, seed):
        def ids(**params):
            return [r["external_review_id"] for r in client.get("/api/reviews", params=params).json()["reviews"]]

        assert ids(place_id="p2") == ["r2", "r1"]
        assert ids(is_critical="true") == ["r3", "r2", "r1"]
        assert ids(status="resolved") == ["r3"]
        assert ids(status="all") == ["r5", "r4", "r3", "r2", "r1"]
        assert ids(rating_min=2, rating_max=4) == ["r4", "r3", "r2"]
        assert ids(start="2026-09-29T00:00:00Z") == ["r5", "r4", "r3"]
        assert ids(end="2026-09-28T00:00:00Z") == ["r1"]

    def test_limit_clamped(self, client: TestClient, seed):
        assert len(client.get("/api/reviews", params={"limit": 2}).json()["reviews"]) == 2
        assert len(client.get("/api/reviews", params={"limit": 0}).json()["reviews"]) == 1
        assert len(client.get("/api/reviews", params={"limit": 5000}).json()["reviews"]) == 5
        assert len(client.get("/api/reviews", params={"limit": 2, "offset": 4}).json()["reviews"]) == 1
        assert client.get("/api/reviews", params={"limit": 2, "offset": 5}).json()["reviews"] == []


class TestSummary:
    def test_counts(self, client: TestClient, seed):
        body = client.get("/api/reviews/summary").json()
        summary = body["summary"]
        assert summary["total"] == 5
        assert summary["avg_rating"] == 3.0
        assert summary["counts"] == {
            "positive": 2,
            "neutral": 1,
            "negative": 2,
            "critical": 3,
            "critical_open": 2,
        }
        assert [r["external_review_id"] for r in body["critical_recent"]] == ["r3", "r2", "r1"]

    def test_recent_limit(self, client: TestClient, seed):
        body = client.get("/api/reviews/summary", params={"limit": 2}).json()
        assert [r["external_review_id"] for r in body["recent"]] == ["r5", "r4"]
        assert len(body["critical_recent"]) == 2

    def test_empty(self, client: TestClient):
        body = client.get("/api/reviews/summary").json()
        assert body["summary"]["total"] == 0
        assert body["summary"]["avg_rating"] == 0
        assert body["recent"] == []


class TestStatus:
    def test_update_appends_action(self, client: TestClient, seed, db_session: Session):
        review = seed["r2"]
        resp = client.post(f"/api/reviews/{review.id}/status", json={"status": "resolved"})
        assert resp.status_code == 200
        assert resp.json()["review"]["status"] == "resolved"

        action = db_session.query(ReviewAction).filter_by(review_id=review.id).one()
        assert action.action_type == "status_change"
        assert action.payload == {"status": "resolved"}
        assert action.created_by == "manager@example.com"

    def test_invalid_status_422(self, client: TestClient, seed):
        resp = client.post(f"/api/reviews/{seed['r2'].id}/status", json={"status": "deleted"})
        assert resp.status_code == 422

    def test_other_tenant_404(self, client: TestClient, seed):
        resp = client.post(f"/api/reviews/{seed['other'].id}/status", json={"status": "resolved"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "Review not found"


class TestActions:
    def test_add_and_list(self, client: TestClient, seed):
        review_id = seed["r1"].id
        resp = client.post(
            f"/api/reviews/{review_id}/actions",
            json={"action_type": "phone_call", "payload": {"channel": "phone"}},
        )
        assert resp.status_code == 200
        action = resp.json()["action"]
        assert action["action_type"] == "phone_call"
        assert action["created_by"] == "manager@example.com"

        actions = client.get(f"/api/reviews/{review_id}/actions").json()["actions"]
        assert [a["action_type"] for a in actions] == ["phone_call"]

    def test_unknown_action_type_400(self, client: TestClient, seed, db_session: Session):
        resp = client.post(f"/api/reviews/{seed['r1'].id}/actions", json={"action_type": "refund"})
        assert resp.status_code == 400
        assert "Invalid action_type" in resp.json()["error"]
        assert db_session.query(ReviewAction).count() == 0

    def test_missing_review_404(self, client: TestClient):
        assert client.get("/api/reviews/999/actions").status_code == 404
        assert client.post("/api/reviews/999/actions", json={"action_type": "voucher"}).status_code == 404
