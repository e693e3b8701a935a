"""Webhook notification data models."""

from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

BRANCH_REF_PREFIX = "refs/heads/"


class EventType(IntEnum):
    """Notification kinds emitted by the VCS host."""

    GIT_PUSHED = 12
    PULL_REQUEST_CREATED = 18
    PULL_REQUEST_UPDATED = 19


class Project(BaseModel):
    """Project the notification belongs to."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: Optional[int] = None
    project_key: str = Field(alias="projectKey")
    name: Optional[str] = None


class User(BaseModel):
    """User who triggered the notification."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: Optional[int] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    name: str = ""


class RepositoryRef(BaseModel):
    """Repository the notification refers to."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: Optional[int] = None
    name: str
    description: Optional[Any] = None


class NotificationContent(BaseModel):
    """
    Event-specific content.

    Push events carry ``ref`` and ``revisions``; pull request events carry
    ``branch``/``base`` instead and are kept as extra fields.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    repository: Optional[RepositoryRef] = None
    ref: Optional[str] = None
    change_type: Optional[str] = None
    revision_type: Optional[str] = None
    revision_count: Optional[int] = None
    revisions: List[Dict[str, Any]] = []


class Notification(BaseModel):
    """Immutable inbound event describing a push or other VCS action."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[int] = None
    project: Project
    type: int
    content: NotificationContent
    created_user: Optional[User] = Field(default=None, alias="createdUser")
    created: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Notification":
        """Parse a webhook JSON object, keeping the original payload verbatim."""
        return cls.model_validate({**payload, "payload": payload})

    @property
    def kind(self) -> Optional[EventType]:
        """Event kind, or None for kinds this service does not know."""
        try:
            return EventType(self.type)
        except ValueError:
            return None

    @property
    def project_key(self) -> str:
        return self.project.project_key

    @property
    def repository_name(self) -> str:
        return self.content.repository.name if self.content.repository else ""

    @property
    def ref(self) -> str:
        return self.content.ref or ""

    @property
    def branch(self) -> str:
        """Branch name with the ``refs/heads/`` prefix removed."""
        ref = self.ref
        if ref.startswith(BRANCH_REF_PREFIX):
            return ref[len(BRANCH_REF_PREFIX):]
        return ref

    @property
    def revisions(self) -> List[Dict[str, Any]]:
        return self.content.revisions

    @property
    def user_name(self) -> str:
        return self.created_user.name if self.created_user else ""
