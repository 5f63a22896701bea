"""Monitored Google listings, one row per (tenant, place)."""

from sqlalchemy import Boolean, Column, Integer, String, UniqueConstraint

from .base import Base, UTCDateTime, utcnow


class Place(Base):
    __tablename__ = "google_places"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    place_id = Column(String(255), nullable=False)
    display_name = Column(String(255))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "place_id", name="uq_places_tenant_place"),
    )
