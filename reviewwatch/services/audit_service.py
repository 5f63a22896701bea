"""Audit log writer — append-only review action records.

The action vocabulary is closed. Rows are only ever inserted; there is no
update or delete path.

Usage:
    from reviewwatch.services.audit_service import record_action, record_actions
"""

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import ReviewAction
from ..models.base import utcnow

ACTION_TYPES = frozenset(
    {
        "phone_call",
        "whatsapp_action",
        "voucher",
        "internal_note",
        "google_reply",
        "status_change",
        "linked_customer",
        "created_task",
        "ingested_critical",
    }
)


def _check_type(action_type: str) -> str:
    normalized = str(action_type or "").strip()
    if normalized not in ACTION_TYPES:
        raise ValidationError(f"Invalid action_type: {action_type!r}")
    return normalized


def record_action(
    db: Session,
    tenant_id: str,
    review_id: int,
    action_type: str,
    payload: dict | None = None,
    created_by: str | None = None,
) -> ReviewAction:
    """Append one action. Flushes, does not commit."""
    action = ReviewAction(
        tenant_id=tenant_id,
        review_id=review_id,
        action_type=_check_type(action_type),
        payload=payload if isinstance(payload, dict) else None,
        created_by=created_by,
        created_at=utcnow(),
    )
    db.add(action)
    db.flush()
    return action


def record_actions(
    db: Session,
    tenant_id: str,
    action_type: str,
    rows: list[tuple[int, dict | None]],
    created_by: str | None = None,
) -> int:
    """Append one action per (review_id, payload) pair. Does not commit."""
    action_type = _check_type(action_type)
    now = utcnow()
    db.add_all(
        [
            ReviewAction(
                tenant_id=tenant_id,
                review_id=review_id,
                action_type=action_type,
                payload=payload,
                created_by=created_by,
                created_at=now,
            )
            for review_id, payload in rows
        ]
    )
    db.flush()
    return len(rows)


def list_actions(db: Session, tenant_id: str, review_id: int, limit: int = 200) -> list[ReviewAction]:
    return (
        db.query(ReviewAction)
        .filter(ReviewAction.tenant_id == tenant_id, ReviewAction.review_id == review_id)
        .order_by(ReviewAction.created_at.desc(), ReviewAction.id.desc())
        .limit(limit)
        .all()
    )
