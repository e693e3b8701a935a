"""Archive, stored version and provenance data models."""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .error import ErrorRecord


class PipelineState(str, Enum):
    """States of one pipeline run."""

    IDLE = "idle"
    CONFIG_LOADED = "config_loaded"
    FILTERED = "filtered"
    CREDENTIALS_READY = "credentials_ready"
    SYNCED = "synced"
    ARCHIVED = "archived"
    DONE = "done"
    FAILED = "failed"


class ArchiveStatus(str, Enum):
    """Final outcome of one archive within a run."""

    UPLOADED = "uploaded"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class Archive(BaseModel):
    """Ephemeral zip snapshot of the tree or one subtree at HEAD."""

    model_config = ConfigDict(frozen=True)

    object_key: str
    file_path: Path
    subdirectory: Optional[str] = None


class StoredVersion(BaseModel):
    """One versioned write of an object key."""

    model_config = ConfigDict(frozen=True)

    object_key: str
    version_id: str


class ProvenanceRecord(BaseModel):
    """Metadata row linking a stored version to its triggering notification."""

    model_config = ConfigDict(frozen=True)

    version_id: str
    object_key: str
    project_key: str
    repository_name: str
    branch_name: str
    user: str
    revisions: str  # JSON serialized revision list
    notification: str  # JSON serialized original payload
    expires_at: int  # epoch seconds


class ArchiveOutcome(BaseModel):
    """Result of the per-archive compare/upload/record sequence."""

    object_key: str
    status: ArchiveStatus
    version_id: Optional[str] = None
    error: Optional[ErrorRecord] = None


class PipelineResult(BaseModel):
    """Result of one pipeline run."""

    state: PipelineState
    skipped: bool = False
    outcomes: List[ArchiveOutcome] = []

    @property
    def uploaded(self) -> List[ArchiveOutcome]:
        return [o for o in self.outcomes if o.status == ArchiveStatus.UPLOADED]

    @property
    def failed(self) -> List[ArchiveOutcome]:
        return [o for o in self.outcomes if o.status == ArchiveStatus.FAILED]
