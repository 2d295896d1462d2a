"""
Analytics Core - event tracking client

Application code anywhere in the platform tracks structured domain events;
the client enriches them and delivers them in batches to the analytics
ingestion service without ever blocking or failing the caller.

Usage:
    from analytics_core import AnalyticsClient, AuthLoginAttempt

    client = AnalyticsClient(os.environ.get("ANALYTICS_URL", "http://localhost:8094"))

    # Non-blocking, batched automatically
    client.track(AuthLoginAttempt(email="user@example.com", success=True))
"""

from .client import AnalyticsClient, create_sink
from .config import ClientConfig
from .envelope import EnrichedEvent, Enricher, HostTags, environment_tags, static_tags
from .errors import (
    AnalyticsError,
    ChannelClosed,
    ConfigError,
    SerializationError,
    UnknownEventType,
    WorkerNotRunning,
)
from .events import (
    AnalyticsEvent,
    event_types,
    AuthLoginAttempt,
    AuthCodeVerified,
    AuthTokenRefresh,
    AuthSessionValidated,
    TaskCreated,
    TaskStarted,
    TaskCompleted,
    TaskFailed,
    TaskCancelled,
    IntegrationConnected,
    IntegrationDisconnected,
    IntegrationUsed,
    IntegrationError,
    OAuthFlowStarted,
    OAuthFlowCompleted,
    WebhookReceived,
    WebhookProcessed,
    CocoonRegistered,
    CocoonConnected,
    CocoonDisconnected,
    CocoonClaimed,
    CocoonSetupTokenCreated,
    CocoonSetupTokenUsed,
    ProjectCreated,
    ProjectUpdated,
    ProjectDeleted,
    ApiRequest,
    DatabaseQuery,
    ApplicationError,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "AnalyticsClient",
    "ClientConfig",
    "create_sink",
    # Events
    "AnalyticsEvent",
    "EnrichedEvent",
    "Enricher",
    "HostTags",
    "environment_tags",
    "static_tags",
    "event_types",
    "AuthLoginAttempt",
    "AuthCodeVerified",
    "AuthTokenRefresh",
    "AuthSessionValidated",
    "TaskCreated",
    "TaskStarted",
    "TaskCompleted",
    "TaskFailed",
    "TaskCancelled",
    "IntegrationConnected",
    "IntegrationDisconnected",
    "IntegrationUsed",
    "IntegrationError",
    "OAuthFlowStarted",
    "OAuthFlowCompleted",
    "WebhookReceived",
    "WebhookProcessed",
    "CocoonRegistered",
    "CocoonConnected",
    "CocoonDisconnected",
    "CocoonClaimed",
    "CocoonSetupTokenCreated",
    "CocoonSetupTokenUsed",
    "ProjectCreated",
    "ProjectUpdated",
    "ProjectDeleted",
    "ApiRequest",
    "DatabaseQuery",
    "ApplicationError",
    # Exceptions
    "AnalyticsError",
    "ChannelClosed",
    "ConfigError",
    "SerializationError",
    "UnknownEventType",
    "WorkerNotRunning",
]
