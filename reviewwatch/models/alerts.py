"""Alert settings (one row per tenant) and the dedup'd alert log."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .base import Base, UTCDateTime, utcnow


class AlertSettings(Base):
    __tablename__ = "google_review_alert_settings"
    tenant_id = Column(String(64), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)
    rating_max = Column(Integer, nullable=False, default=3)
    notify_email = Column(String(1000))
    # Stored and returned, not enforced: the per-review dedup key is the only suppression
    cooldown_minutes = Column(Integer, nullable=False, default=60)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)


class AlertLogEntry(Base):
    """At most one row per (tenant, alert_type, review), ever."""

    __tablename__ = "google_review_alert_log"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False)
    alert_type = Column(String(50), nullable=False)
    review_id = Column(Integer, ForeignKey("google_reviews.id"), nullable=False)
    payload = Column(JSON)
    send_status = Column(String(20), nullable=False, default="pending")
    send_error = Column(Text)
    created_at = Column(UTCDateTime, default=utcnow)
    sent_at = Column(UTCDateTime)

    __table_args__ = (
        UniqueConstraint("tenant_id", "alert_type", "review_id", name="uq_alert_log_dedup"),
        Index("ix_alert_log_status", "tenant_id", "alert_type", "send_status"),
    )
