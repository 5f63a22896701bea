"""
reviewwatch — Google review ingestion and alerting service

App wiring only: logging, session middleware, rate limiter, error
handlers, routers, and the background scheduler lifecycle.
"""

import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.sessions import SessionMiddleware

from . import __version__
from .config import settings
from .errors import PersistenceError, ValidationError
from .http_client import close_clients
from .logging_config import setup_logging
from .rate_limit import limiter
from .routers import ingestion, reviews
from .schemas.errors import ErrorResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    run_scheduler = not os.getenv("TESTING")
    if run_scheduler:
        from .scheduler import configure_scheduler, scheduler

        configure_scheduler()
        scheduler.start()
    logger.info("reviewwatch {} started", __version__)
    yield
    if run_scheduler:
        scheduler.shutdown(wait=False)
    await close_clients()


app = FastAPI(title="reviewwatch", version=__version__, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key, https_only=False)

app.include_router(ingestion.router)
app.include_router(reviews.router)


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id") or uuid.uuid4().hex[:12]


def _error(request: Request, status_code: int, error: str, detail=None) -> JSONResponse:
    body = ErrorResponse(error=error, status_code=status_code, request_id=_request_id(request), detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(HTTPException)
async def _http_exception_handler(request: Request, exc: HTTPException):
    return _error(request, exc.status_code, str(exc.detail))


@app.exception_handler(ValidationError)
async def _validation_error_handler(request: Request, exc: ValidationError):
    return _error(request, 400, exc.message)


@app.exception_handler(PersistenceError)
async def _persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("{} {} failed: {}", request.method, request.url.path, exc)
    return _error(request, 500, f"Ingestion failed at {exc.stage}", exc.to_dict())


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
