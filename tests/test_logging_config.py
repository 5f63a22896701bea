"""
test_logging_config.py — Tests for reviewwatch/logging_config.py

Verifies Loguru setup, stdlib logging interception, log level, and the
production JSON format. Uses loguru's sink capture for assertions.

Called by: pytest
Depends on: reviewwatch/logging_config.py
"""

import json
import logging
import os
from unittest.mock import patch

import pytest
from loguru import logger

from reviewwatch.logging_config import _is_production, setup_logging

DEV_ENV = {"APP_URL": "http://localhost:8000"}


@pytest.fixture(autouse=True)
def _clean_loguru():
    """Remove all handlers before/after each test for isolation."""
    logger.remove()
    yield
    logger.remove()


def test_setup_logging_adds_handler():
    assert len(logger._core.handlers) == 0
    with patch.dict(os.environ, DEV_ENV):
        setup_logging()
    assert len(logger._core.handlers) > 0


def test_stdlib_logging_intercepted():
    """Connector code using logging.getLogger() ends up in Loguru."""
    with patch.dict(os.environ, DEV_ENV):
        setup_logging()

    messages = []
    logger.add(lambda m: messages.append(str(m)), format="{message}")

    logging.getLogger("reviewwatch.test").warning("intercepted message")

    assert any("intercepted message" in m for m in messages)


def test_log_level_from_env():
    with patch.dict(os.environ, {**DEV_ENV, "LOG_LEVEL": "WARNING"}):
        setup_logging()

    messages = []
    logger.add(lambda m: messages.append(str(m)), format="{message}", level="WARNING")
    logger.info("should not appear")
    logger.warning("should appear")

    assert not any("should not appear" in m for m in messages)
    assert any("should appear" in m for m in messages)


def test_noisy_loggers_quieted():
    with patch.dict(os.environ, DEV_ENV):
        setup_logging()
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("apscheduler").level == logging.WARNING


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://reviews.example.com", True),
        ("https://localhost:8000", False),
        ("http://reviews.example.com", False),
        ("", False),
    ],
)
def test_is_production(url, expected):
    with patch.dict(os.environ, {"APP_URL": url}):
        assert _is_production() is expected


def test_production_emits_json(capsys):
    with patch.dict(os.environ, {"APP_URL": "https://reviews.example.com", "LOG_LEVEL": "INFO"}):
        setup_logging()
    logger.info("json line")

    lines = [line for line in capsys.readouterr().out.splitlines() if "json line" in line]
    assert lines
    record = json.loads(lines[-1])
    assert record["record"]["message"] == "json line"
