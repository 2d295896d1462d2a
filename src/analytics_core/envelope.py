"""Event enrichment - wraps raw events with capture metadata."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from .events import AnalyticsEvent


@dataclass(frozen=True, slots=True)
class HostTags:
    """Host and deployment-tier labels attached to every envelope."""
    hostname: str | None = None
    environment: str | None = None


TagProvider = Callable[[], HostTags]
Clock = Callable[[], datetime]


def environment_tags() -> HostTags:
    """Read the current HOSTNAME / ENVIRONMENT variables (never cached)."""
    return HostTags(
        hostname=os.environ.get("HOSTNAME"),
        environment=os.environ.get("ENVIRONMENT"),
    )


def static_tags(hostname: str | None = None, environment: str | None = None) -> TagProvider:
    """Tag provider that always returns the same labels."""
    tags = HostTags(hostname=hostname, environment=environment)
    return lambda: tags


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class EnrichedEvent:
    """
    An event plus delivery metadata.

    ``timestamp`` is the moment ``track`` was called, not the moment
    the batch containing it is sent.
    """
    timestamp: datetime
    event: AnalyticsEvent
    hostname: str | None = None
    environment: str | None = None

    @property
    def type_name(self) -> str:
        return self.event.type_name

    def to_dict(self) -> dict[str, Any]:
        """Flattened wire form: envelope keys alongside the event fields."""
        data = self.event.to_dict()
        data["timestamp"] = self.timestamp.isoformat()
        data["hostname"] = self.hostname
        data["environment"] = self.environment
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnrichedEvent:
        payload = dict(data)
        timestamp = datetime.fromisoformat(payload.pop("timestamp"))
        hostname = payload.pop("hostname", None)
        environment = payload.pop("environment", None)
        return cls(
            timestamp=timestamp,
            event=AnalyticsEvent.from_dict(payload),
            hostname=hostname,
            environment=environment,
        )


@dataclass
class Enricher:
    """
    Turns raw events into envelopes.

    The tag provider is called on every ``enrich`` so that changes to the
    process environment show up in later envelopes.
    """
    tags: TagProvider = environment_tags
    clock: Clock = utcnow

    def enrich(self, event: AnalyticsEvent) -> EnrichedEvent:
        tags = self.tags()
        return EnrichedEvent(
            timestamp=self.clock(),
            event=event,
            hostname=tags.hostname,
            environment=tags.environment,
        )
