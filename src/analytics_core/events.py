"""Analytics event catalog.

Every event is a frozen dataclass registered under a stable snake_case type
tag. The tag is the discriminant on the wire (``{"type": "task_created", ...}``).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar
from uuid import UUID

from .errors import UnknownEventType


_REGISTRY: dict[str, type[AnalyticsEvent]] = {}


class AnalyticsEvent:
    """
    Base class for analytics events covering all platform services.

    Subclasses declare ``type_name`` and their fields; they are registered
    automatically and can be decoded with ``AnalyticsEvent.from_dict``.
    """
    __slots__ = ()

    type_name: ClassVar[str]

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        tag = cls.__dict__.get("type_name")
        if tag is None:
            raise TypeError(f"{cls.__name__} must declare type_name")

        # dataclass(slots=True) rebuilds the class, so the same definition
        # may register twice
        existing = _REGISTRY.get(tag)
        if existing is not None and existing.__qualname__ != cls.__qualname__:
            raise TypeError(f"Duplicate analytics event type {tag!r}")
        _REGISTRY[tag] = cls

    @property
    def owner_id(self) -> UUID | None:
        """User the event belongs to, if any."""
        return getattr(self, "user_id", None)

    @property
    def source_service(self) -> str | None:
        """Service that generated the event (API, database and error events)."""
        return getattr(self, "service", None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a tagged dictionary for serialization."""
        data: dict[str, Any] = {"type": self.type_name}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = str(value) if isinstance(value, UUID) else value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalyticsEvent:
        """Decode a tagged dictionary into the matching event class."""
        tag = data.get("type")
        event_cls = _REGISTRY.get(tag)
        if event_cls is None:
            raise UnknownEventType(str(tag))

        kwargs = {}
        for f in fields(event_cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if value is not None and "UUID" in str(f.type):
                value = UUID(str(value))
            kwargs[f.name] = value
        return event_cls(**kwargs)


def event_types() -> list[str]:
    """All registered event type tags."""
    return sorted(_REGISTRY)


# =============================================================================
# Authentication Events
# =============================================================================

@dataclass(frozen=True, slots=True, kw_only=True)
class AuthLoginAttempt(AnalyticsEvent):
    """User requested login code."""
    type_name: ClassVar[str] = "auth_login_attempt"

    email: str
    success: bool
    user_id: UUID | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class AuthCodeVerified(AnalyticsEvent):
    """User verified login code."""
    type_name: ClassVar[str] = "auth_code_verified"

    user_id: UUID
    success: bool
    error: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class AuthTokenRefresh(AnalyticsEvent):
    type_name: ClassVar[str] = "auth_token_refresh"

    user_id: UUID
    success: bool
    error: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class AuthSessionValidated(AnalyticsEvent):
    type_name: ClassVar[str] = "auth_session_validated"

    user_id: UUID
    valid: bool


# =============================================================================
# Task Events
# =============================================================================

@dataclass(frozen=True, slots=True, kw_only=True)
class TaskCreated(AnalyticsEvent):
    type_name: ClassVar[str] = "task_created"

    task_id: UUID
    user_id: UUID
    command: str
    project_id: UUID | None = None
    cocoon_id: UUID | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class TaskStarted(AnalyticsEvent):
    type_name: ClassVar[str] = "task_started"

    task_id: UUID
    user_id: UUID
    cocoon_id: UUID | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class TaskCompleted(AnalyticsEvent):
    type_name: ClassVar[str] = "task_completed"

    task_id: UUID
    user_id: UUID
    duration_ms: int
    exit_code: int


@dataclass(frozen=True, slots=True, kw_only=True)
class TaskFailed(AnalyticsEvent):
    type_name: ClassVar[str] = "task_failed"

    task_id: UUID
    user_id: UUID
    error: str
    duration_ms: int | None = None
    exit_code: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class TaskCancelled(AnalyticsEvent):
    """Task cancelled by user."""
    type_name: ClassVar[str] = "task_cancelled"

    task_id: UUID
    user_id: UUID
    duration_ms: int | None = None


# =============================================================================
# Integration Events
# =============================================================================

@dataclass(frozen=True, slots=True, kw_only=True)
class IntegrationConnected(AnalyticsEvent):
    type_name: ClassVar[str] = "integration_connected"

    integration_id: UUID
    user_id: UUID
    provider: str
    project_id: UUID | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class IntegrationDisconnected(AnalyticsEvent):
    type_name: ClassVar[str] = "integration_disconnected"

    integration_id: UUID
    user_id: UUID
    provider: str
    reason: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class IntegrationUsed(AnalyticsEvent):
    type_name: ClassVar[str] = "integration_used"

    integration_id: UUID
    user_id: UUID
    provider: str
    action: str


@dataclass(frozen=True, slots=True, kw_only=True)
class IntegrationError(AnalyticsEvent):
    type_name: ClassVar[str] = "integration_error"

    integration_id: UUID
    user_id: UUID
    provider: str
    error: str


@dataclass(frozen=True, slots=True, kw_only=True)
class OAuthFlowStarted(AnalyticsEvent):
    type_name: ClassVar[str] = "oauth_flow_started"

    user_id: UUID
    provider: str
    state: str


@dataclass(frozen=True, slots=True, kw_only=True)
class OAuthFlowCompleted(AnalyticsEvent):
    type_name: ClassVar[str] = "oauth_flow_completed"

    user_id: UUID
    provider: str
    success: bool
    error: str | None = None


# =============================================================================
# Webhook Events
# =============================================================================

@dataclass(frozen=True, slots=True, kw_only=True)
class WebhookReceived(AnalyticsEvent):
    type_name: ClassVar[str] = "webhook_received"

    provider: str
    event_type: str
    delivery_id: str
    integration_id: UUID | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class WebhookProcessed(AnalyticsEvent):
    """Webhook processing completed."""
    type_name: ClassVar[str] = "webhook_processed"

    provider: str
    event_type: str
    delivery_id: str
    success: bool
    duration_ms: int
    integration_id: UUID | None = None
    error: str | None = None


# =============================================================================
# Cocoon (device) Events
# =============================================================================

@dataclass(frozen=True, slots=True, kw_only=True)
class CocoonRegistered(AnalyticsEvent):
    type_name: ClassVar[str] = "cocoon_registered"

    cocoon_id: UUID
    user_id: UUID
    device_name: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CocoonConnected(AnalyticsEvent):
    """Cocoon connected to signaling server."""
    type_name: ClassVar[str] = "cocoon_connected"

    cocoon_id: UUID
    user_id: UUID | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CocoonDisconnected(AnalyticsEvent):
    type_name: ClassVar[str] = "cocoon_disconnected"

    cocoon_id: UUID
    duration_seconds: int
    user_id: UUID | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CocoonClaimed(AnalyticsEvent):
    type_name: ClassVar[str] = "cocoon_claimed"

    cocoon_id: UUID
    user_id: UUID
    via_setup_token: bool


@dataclass(frozen=True, slots=True, kw_only=True)
class CocoonSetupTokenCreated(AnalyticsEvent):
    type_name: ClassVar[str] = "cocoon_setup_token_created"

    token_id: UUID
    user_id: UUID
    cocoon_name: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CocoonSetupTokenUsed(AnalyticsEvent):
    type_name: ClassVar[str] = "cocoon_setup_token_used"

    token_id: UUID
    cocoon_id: UUID
    user_id: UUID


# =============================================================================
# Project Events
# =============================================================================

@dataclass(frozen=True, slots=True, kw_only=True)
class ProjectCreated(AnalyticsEvent):
    type_name: ClassVar[str] = "project_created"

    project_id: UUID
    user_id: UUID
    name: str


@dataclass(frozen=True, slots=True, kw_only=True)
class ProjectUpdated(AnalyticsEvent):
    type_name: ClassVar[str] = "project_updated"

    project_id: UUID
    user_id: UUID


@dataclass(frozen=True, slots=True, kw_only=True)
class ProjectDeleted(AnalyticsEvent):
    type_name: ClassVar[str] = "project_deleted"

    project_id: UUID
    user_id: UUID


# =============================================================================
# Service Events (API requests, database queries, errors)
# =============================================================================

@dataclass(frozen=True, slots=True, kw_only=True)
class ApiRequest(AnalyticsEvent):
    type_name: ClassVar[str] = "api_request"

    service: str
    endpoint: str
    method: str
    status_code: int
    duration_ms: int
    user_id: UUID | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class DatabaseQuery(AnalyticsEvent):
    type_name: ClassVar[str] = "database_query"

    service: str
    query_type: str
    duration_ms: int
    rows_affected: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ApplicationError(AnalyticsEvent):
    """Application error occurred.

    ``context`` is free-form JSON attached by the reporting service.
    """
    type_name: ClassVar[str] = "application_error"

    service: str
    error_type: str
    error_message: str
    user_id: UUID | None = None
    context: Any = None

