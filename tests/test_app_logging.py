"""Tests for logging configuration."""

import logging

from yogaageproof.app_logging import configure_logging


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("yogaageproof")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging(logging.DEBUG)
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert logger.level == logging.DEBUG
    assert logger.propagate is False


def test_configure_logging_accepts_level_names() -> None:
    configure_logging("warning")

    assert logging.getLogger("yogaageproof").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING
    configure_logging()
