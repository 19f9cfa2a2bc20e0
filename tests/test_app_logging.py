"""Tests for logging configuration."""

import logging

import pytest

from qrsync.app_logging import configure_logging


@pytest.fixture
def qrsync_logger():
    logger = logging.getLogger("qrsync")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    logger.handlers.clear()

    yield logger

    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_configure_logging_idempotent(qrsync_logger) -> None:
    configure_logging("debug")
    first_count = len(qrsync_logger.handlers)

    configure_logging("warning")
    second_count = len(qrsync_logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert qrsync_logger.level == logging.WARNING
    assert qrsync_logger.propagate is False
