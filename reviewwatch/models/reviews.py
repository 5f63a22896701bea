"""Reviews, their content versions, and the per-review audit trail."""

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
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class Review(Base):
    """One external review, merged on (tenant_id, place_id, external_review_id).

    ingested_at and is_critical are written on first insert only; the
    ingestion upsert never includes them in its UPDATE clause.
    """

    __tablename__ = "google_reviews"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False)
    place_id = Column(String(255), nullable=False)
    external_review_id = Column(String(255), nullable=False)
    author_name = Column(String(255))
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    review_published_at = Column(UTCDateTime)
    source = Column(String(20), nullable=False, default="scraping")
    raw_payload = Column(JSON)
    is_critical = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="new")
    status_updated_at = Column(UTCDateTime)
    ingested_at = Column(UTCDateTime, nullable=False, default=utcnow)
    last_seen_at = Column(UTCDateTime, nullable=False, default=utcnow)

    versions = relationship("ReviewVersion", back_populates="review", order_by="ReviewVersion.created_at")
    actions = relationship("ReviewAction", back_populates="review", order_by="ReviewAction.created_at")

    __table_args__ = (
        UniqueConstraint("tenant_id", "place_id", "external_review_id", name="uq_reviews_natural_key"),
        Index("ix_reviews_tenant_ingested", "tenant_id", "ingested_at"),
        Index("ix_reviews_tenant_published", "tenant_id", "review_published_at"),
    )


class ReviewVersion(Base):
    """Append-only content snapshot; one row per distinct content hash."""

    __tablename__ = "google_review_versions"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False)
    review_id = Column(Integer, ForeignKey("google_reviews.id"), nullable=False)
    content_hash = Column(String(64), nullable=False)
    snapshot = Column(JSON)
    created_at = Column(UTCDateTime, default=utcnow)

    review = relationship("Review", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("review_id", "content_hash", name="uq_review_versions_hash"),
    )


class ReviewAction(Base):
    """Append-only audit record. No update or delete path exists."""

    __tablename__ = "google_review_actions"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False)
    review_id = Column(Integer, ForeignKey("google_reviews.id"), nullable=False)
    action_type = Column(String(40), nullable=False)
    payload = Column(JSON)
    created_by = Column(String(255))
    created_at = Column(UTCDateTime, default=utcnow)

    review = relationship("Review", back_populates="actions")

    __table_args__ = (
        Index("ix_review_actions_review", "tenant_id", "review_id", "created_at"),
    )
