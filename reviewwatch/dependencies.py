"""
dependencies.py — Shared FastAPI Dependencies

Tenant context and trigger authorization. Sign-in itself happens upstream;
it leaves tenant_id and user_email in the signed session cookie.

Business Rules:
- require_tenant raises 401 if no session, 403 if the user has no tenant
- require_cron_secret is a no-op when CRON_SECRET is unset, otherwise the
  x-cron-secret header or cron_secret query param must match exactly

Called by: routers/
Depends on: config
"""

import hmac

from fastapi import HTTPException, Request


def get_actor(request: Request) -> str | None:
    """Email of the signed-in user, for audit created_by."""
    return request.session.get("user_email")


def require_tenant(request: Request) -> str:
    """Dependency: tenant id from the session."""
    if not request.session.get("user_email") and not request.session.get("tenant_id"):
        raise HTTPException(401, "Not authenticated")
    tenant_id = request.session.get("tenant_id")
    if not tenant_id:
        raise HTTPException(403, "User not associated with a tenant")
    return str(tenant_id)


def require_cron_secret(request: Request) -> None:
    from .config import settings

    expected = settings.cron_secret
    if not expected:
        return
    received = request.headers.get("x-cron-secret") or request.query_params.get("cron_secret") or ""
    if not received or not hmac.compare_digest(received, expected):
        raise HTTPException(403, "Forbidden")
