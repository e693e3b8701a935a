"""
Exception taxonomy for the archival pipeline.

Whole-run errors (configuration, credentials, sync, archive creation) abort a
run before any archive is stored. StorageError is scoped to a single archive
and never cancels its siblings; the run then fails with a PipelineError once
every sibling has finished.
"""

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from archiver.models.archive import ArchiveOutcome


class ArchiverError(Exception):
    """Base exception for archiver errors."""
    pass


class ConfigurationError(ArchiverError):
    """Raised when a required setting is missing."""
    pass


class CredentialError(ArchiverError):
    """Raised when the VCS credential secret is missing or malformed."""
    pass


class VersionControlError(ArchiverError):
    """Raised when a git clone/fetch/reset/archive command fails."""

    def __init__(self, message: str, command: str = "", stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class ArchiveError(ArchiverError):
    """Raised when an archive cannot be produced or decompressed."""
    pass


class StorageError(ArchiverError):
    """Raised when an object or metadata store write fails."""
    pass


class PipelineError(ArchiverError):
    """Raised when one or more archives of a run failed."""

    def __init__(self, message: str, outcomes: List["ArchiveOutcome"]):
        super().__init__(message)
        self.outcomes = outcomes


class InvalidNotificationError(ArchiverError):
    """Raised when a notification cannot identify a safe (project, repository, branch)."""
    pass
