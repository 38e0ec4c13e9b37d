"""Shared fixtures for capturing loguru diagnostics."""

from __future__ import annotations

from typing import Iterator

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _reset_logger() -> Iterator[None]:
    """Drop sinks added during a test so they never outlive captured streams."""
    yield
    logger.remove()


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """Collect every loguru message emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda message: messages.append(str(message).rstrip("\n")),
        level="DEBUG",
        format="{message}",
    )
    yield messages
    logger.remove(handler_id)

