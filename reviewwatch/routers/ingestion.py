"""
routers/ingestion.py — Review ingestion triggers

Three entry points into the same ingestion engine:
  - POST /api/reviews/ingest-now     signed-in tenant, synchronous run
  - GET|POST /api/reviews/ingest     cron/public, all tenants or one
  - POST /api/reviews/ingest-manual  bulk backfill of pre-fetched reviews

Business Rules:
- Public trigger requires CRON_SECRET when configured, and is rate limited
- Public trigger reports per-tenant success/failure counts, never all-or-nothing
- Backfill rejects bad items individually; 400 only if none are valid
- PersistenceError surfaces as a structured 500 naming stage + tenant/place

Called by: main.py (router mount)
Depends on: services/ingestion_service.py, dependencies
"""

from fastapi import APIRouter, Depends, Query, Request
from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import get_actor, require_cron_secret, require_tenant
from ..rate_limit import limiter
from ..schemas.reviews import ManualIngestRequest
from ..services.ingestion_service import ingest_batch, run_ingestion, run_scheduled_ingestion

router = APIRouter(tags=["ingestion"])


@router.post("/api/reviews/ingest-now")
async def ingest_now(
    tenant_id: str = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    """Run ingestion for the caller's tenant and wait for it."""
    result = await run_ingestion(tenant_id, db)
    return {
        "tenant_id": result["tenant_id"],
        "ingested": result["ingested"],
        "critical_new": result["critical_new"],
        "places": result["places"],
        "failed_places": result["failed_places"],
    }


@router.api_route("/api/reviews/ingest", methods=["GET", "POST"])
@limiter.limit(settings.rate_limit_ingest)
async def ingest_public(
    request: Request,
    tenant_id: str | None = Query(None),
    _auth: None = Depends(require_cron_secret),
    db: Session = Depends(get_db),
):
    """Cron entry point. Without tenant_id, runs every tenant with an active place."""
    if not tenant_id and request.method == "POST":
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            tenant_id = body.get("tenant_id") or None

    summary = await run_scheduled_ingestion(db, tenant_id=tenant_id)
    if not summary["tenants"] and not summary["failed"]:
        return {"message": "No tenants with active places", **summary}
    logger.info("Public ingest: {} ok, {} failed", summary["succeeded"], summary["failed"])
    return summary


@router.post("/api/reviews/ingest-manual")
async def ingest_manual(
    body: ManualIngestRequest,
    actor: str | None = Depends(get_actor),
    tenant_id: str = Depends(require_tenant),
    db: Session = Depends(get_db),
):
    """Backfill pre-fetched reviews for one place through the normal merge path."""
    return ingest_batch(db, tenant_id, body.place_id.strip(), body.reviews, actor=actor)
