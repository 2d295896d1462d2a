"""Analytics error types."""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base exception for analytics client errors."""
    pass


class SerializationError(AnalyticsError):
    """A batch could not be encoded as JSON."""
    pass


class ChannelClosed(AnalyticsError):
    """The ingest queue no longer accepts events."""
    pass


class WorkerNotRunning(AnalyticsError):
    """The dispatcher task is not running."""
    pass


class ConfigError(AnalyticsError):
    """Invalid client configuration."""
    pass


class UnknownEventType(AnalyticsError):
    """Raised when decoding an event with an unrecognised type tag."""
    def __init__(self, event_type: str):
        super().__init__(f"Unknown analytics event type: {event_type!r}")
        self.event_type = event_type
