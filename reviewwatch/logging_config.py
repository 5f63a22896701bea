"""
logging_config.py — Centralized Logging Configuration for reviewwatch

Sets up Loguru as the single logging backend. Intercepts Python's stdlib
logging module so connector modules using getLogger() route through
Loguru with the same format.

Business Rules:
- All logs go through Loguru (no direct print())
- JSON format in production for machine parsing
- Human-readable format in development
- Log level comes from LOG_LEVEL

Called by: reviewwatch/main.py (on startup)
Depends on: reviewwatch/config.py (log_level, app_url)
"""

import logging
import os
import sys

from loguru import logger


def _is_production() -> bool:
    app_url = os.getenv("APP_URL", "")
    return app_url.startswith("https://") and "localhost" not in app_url


def setup_logging() -> None:
    """Configure Loguru and intercept stdlib logging.

    Call once at app startup, before anything else logs.
    """
    logger.remove()

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    is_production = _is_production()

    if is_production:
        # JSON lines to stdout (container runtime captures these)
        logger.add(
            sys.stdout,
            level=log_level,
            format="{message}",
            serialize=True,
        )
    else:
        logger.add(
            sys.stdout,
            level=log_level,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            colorize=True,
        )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    for noisy in ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "apscheduler"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("Logging configured", level=log_level, production=is_production)


class _InterceptHandler(logging.Handler):
    """Route stdlib logging records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip frames from stdlib logging internals to find the caller
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )
