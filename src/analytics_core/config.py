"""Configuration for the analytics client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields

from .errors import ConfigError


DEFAULT_ANALYTICS_URL = "http://localhost:8094"

# Deliberately unreachable endpoint used by AnalyticsClient.noop()
NOOP_ANALYTICS_URL = "http://localhost:9999"

SINK_TYPES = ("http", "console")
OVERFLOW_POLICIES = ("drop_oldest", "drop_newest")


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def _env_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number of seconds, got {raw!r}") from None


@dataclass
class ClientConfig:
    """
    Configuration for the analytics client.

    Can be set via:
    - Constructor arguments
    - Environment variables (ANALYTICS_*)
    - Config file (YAML or JSON)
    """
    # Base URL of the analytics ingestion service
    analytics_url: str = field(
        default_factory=lambda: os.environ.get("ANALYTICS_URL", DEFAULT_ANALYTICS_URL)
    )

    # Master switch - disabled clients drop every event
    enabled: bool = field(
        default_factory=lambda: _env_bool("ANALYTICS_ENABLED", "true")
    )

    # Where batches go: http | console
    sink_type: str = field(
        default_factory=lambda: os.environ.get("ANALYTICS_SINK", "http")
    )

    # Batching
    batch_size: int = 100
    flush_interval_seconds: float = 10.0

    # Restart the flush timer after every flush (size- or time-triggered)
    reset_timer_on_flush: bool = False

    # Queue (0 = unbounded)
    max_queue_size: int = 0
    # drop_oldest = ring buffer, drop_newest = refuse new events when full
    overflow_policy: str = "drop_oldest"

    # Per-request HTTP timeout (seconds)
    timeout_seconds: float = field(
        default_factory=lambda: _env_float("ANALYTICS_TIMEOUT", "5")
    )

    # How long close() waits for the final flush
    shutdown_timeout_seconds: float = 30.0

    def __post_init__(self):
        self.analytics_url = self.analytics_url.rstrip("/")

        if self.sink_type not in SINK_TYPES:
            raise ConfigError(f"sink_type must be one of {SINK_TYPES}, got {self.sink_type!r}")
        if self.overflow_policy not in OVERFLOW_POLICIES:
            raise ConfigError(
                f"overflow_policy must be one of {OVERFLOW_POLICIES}, got {self.overflow_policy!r}"
            )
        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be positive, got {self.batch_size}")
        if self.flush_interval_seconds <= 0:
            raise ConfigError(
                f"flush_interval_seconds must be positive, got {self.flush_interval_seconds}"
            )
        if self.max_queue_size < 0:
            raise ConfigError(f"max_queue_size must be >= 0, got {self.max_queue_size}")
        if self.timeout_seconds <= 0:
            raise ConfigError(f"timeout_seconds must be positive, got {self.timeout_seconds}")

    @classmethod
    def from_dict(cls, data: dict) -> ClientConfig:
        """Create config from dictionary (unknown keys are rejected)."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown analytics config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str, section: str | None = "analytics") -> ClientConfig:
        """Load config from YAML file.

        If the file has a top-level ``analytics:`` section, only that section
        is used, so the client can share a service's config file.
        """
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if section and section in data:
            data = data[section] or {}
        return cls.from_dict(data)

    @classmethod
    def from_json(cls, path: str, section: str | None = "analytics") -> ClientConfig:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        if section and section in data:
            data = data[section] or {}
        return cls.from_dict(data)
