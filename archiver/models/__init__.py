"""Data models for the push archiver."""

from .api_response import WebhookAccepted, WebhookError
from .archive import (
    Archive,
    ArchiveOutcome,
    ArchiveStatus,
    PipelineResult,
    PipelineState,
    ProvenanceRecord,
    StoredVersion,
)
from .credentials import SSHKeyPair
from .error import ErrorRecord
from .notification import (
    EventType,
    Notification,
    NotificationContent,
    Project,
    RepositoryRef,
    User,
)
from .repository import RepositoryConfig

__all__ = [
    # Notification models
    "EventType",
    "Notification",
    "NotificationContent",
    "Project",
    "RepositoryRef",
    "User",
    # Repository policy
    "RepositoryConfig",
    # Archive models
    "Archive",
    "ArchiveOutcome",
    "ArchiveStatus",
    "PipelineResult",
    "PipelineState",
    "ProvenanceRecord",
    "StoredVersion",
    # Credentials
    "SSHKeyPair",
    # Error models
    "ErrorRecord",
    # API response models
    "WebhookAccepted",
    "WebhookError",
]
