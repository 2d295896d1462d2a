"""Shared test fixtures for the analytics client tests."""

import uuid
from datetime import datetime, timezone

import pytest

from analytics_core.envelope import EnrichedEvent, Enricher, static_tags
from analytics_core.events import AuthLoginAttempt, TaskCompleted
from analytics_core.sinks.base import BatchSink


# =============================================================================
# Sinks
# =============================================================================

class RecordingSink(BatchSink):
    """Sink that keeps every batch it is given."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.batches: list[list[EnrichedEvent]] = []
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def send(self, batch):
        self.batches.append(list(batch))
        return self.accept

    @property
    def sizes(self) -> list[int]:
        return [len(b) for b in self.batches]

    @property
    def envelopes(self) -> list[EnrichedEvent]:
        return [e for b in self.batches for e in b]


class ExplodingSink(BatchSink):
    """Sink that breaks the no-raise contract."""

    def __init__(self):
        self.calls = 0

    async def send(self, batch):
        self.calls += 1
        raise RuntimeError("sink exploded")


class BrokenStartSink(RecordingSink):
    """Sink whose connection cannot be opened."""

    async def start(self) -> None:
        raise RuntimeError("cannot open")


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


# =============================================================================
# Events
# =============================================================================

@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.UUID("8c6f0c43-2f9e-4d55-9a51-2d7a1f1e0b11")


@pytest.fixture
def fixed_timestamp() -> datetime:
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def login_event(user_id) -> AuthLoginAttempt:
    return AuthLoginAttempt(
        user_id=user_id,
        email="test@example.com",
        success=True,
    )


@pytest.fixture
def enricher(fixed_timestamp) -> Enricher:
    return Enricher(
        tags=static_tags(hostname="test-host", environment="test"),
        clock=lambda: fixed_timestamp,
    )


def make_task_event(n: int, user_id: uuid.UUID | None = None) -> TaskCompleted:
    """A distinguishable event: ``duration_ms`` carries the sequence number."""
    return TaskCompleted(
        task_id=uuid.uuid4(),
        user_id=user_id or uuid.uuid4(),
        duration_ms=n,
        exit_code=0,
    )


def make_envelope(n: int) -> EnrichedEvent:
    return EnrichedEvent(
        timestamp=datetime.now(timezone.utc),
        event=make_task_event(n),
    )
