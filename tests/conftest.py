"""pytest configuration for matchlog tests."""

from __future__ import annotations

import uuid

import pytest
from loguru import logger

from matchlog.identity import Allowlist

# Durable identifiers used across tests
U1 = uuid.UUID("fe3608b7-d105-4029-8800-34b3147065b6")
U2 = uuid.UUID("3c1e2a55-0b7a-4f51-9d0e-2b8f7c1a9e42")
U3 = uuid.UUID("9a7d6c3b-1f2e-4d5c-8b7a-6e5f4d3c2b1a")
UX = uuid.UUID("0b6a3f8e-5d4c-4b3a-9f8e-7d6c5b4a3f2e")
UY = uuid.UUID("7e8f9a0b-1c2d-4e3f-8a9b-0c1d2e3f4a5b")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Fake monotonic clock starting at 1000s."""
    return FakeClock()


@pytest.fixture
def allowlist():
    """Allowlist permitting UX under public ID 7."""
    return Allowlist({UX: 7})


@pytest.fixture
def allowlist_file(tmp_path):
    """Allowlist YAML with two valid and two malformed entries."""
    path = tmp_path / "permitted-players.yml"
    path.write_text(
        "permitted:\n"
        f"  {UX}: 7\n"
        f"  {U3}: -2\n"
        "  not-a-uuid: 3\n"
        f"  {UY}: seven\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)
