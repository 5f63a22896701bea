"""
schemas/reviews.py — Pydantic models for review ingestion and browsing

Business Rules:
- Backfill items stay raw dicts; each is validated by the normalizer so
  one bad item does not reject the batch
- Review status is one of new, in_progress, resolved, ignored
- Action types are checked against the audit vocabulary in the service

Called by: routers/ingestion.py, routers/reviews.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ManualIngestRequest(BaseModel):
    place_id: str = Field(..., min_length=1, max_length=255)
    reviews: list = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    status: Literal["new", "in_progress", "resolved", "ignored"]


class ActionCreate(BaseModel):
    action_type: str = Field(..., min_length=1, max_length=40)
    payload: Optional[dict] = None


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    place_id: str
    external_review_id: str
    author_name: Optional[str] = None
    rating: int
    comment: Optional[str] = None
    review_published_at: Optional[datetime] = None
    is_critical: bool
    status: str
    ingested_at: datetime
    last_seen_at: datetime


class ActionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    review_id: int
    action_type: str
    payload: Optional[dict] = None
    created_by: Optional[str] = None
    created_at: datetime
