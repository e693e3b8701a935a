"""
Application configuration management.
"""

import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic_settings import BaseSettings

from archiver.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # AWS
    aws_region: Optional[str] = None
    aws_profile: Optional[str] = None  # Named/SSO profile for local runs

    # Object store
    s3_bucket_name: Optional[str] = None

    # Credential store
    ssh_secret_name: Optional[str] = None

    # Git server, e.g. "space@space.git.backlog.com"
    git_server_url: Optional[str] = None
    git_remote_url_template: str = "ssh://{server}:/{project_key}/{repository}.git"

    # Queue
    sqs_queue_url: Optional[str] = None
    worker_wait_seconds: int = 20

    # Metadata store
    redis_url: str = "redis://localhost:6379/0"
    provenance_ttl_days: int = 365

    # Archiving
    archive_configs_dir: Path = Path("archive-configs")
    work_dir: Path = Path(tempfile.gettempdir())
    clone_depth: int = 5

    # Application
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def require(self, name: str) -> Any:
        """
        Return a setting that must be present for the calling component.

        Raises:
            ConfigurationError: If the setting is unset or empty
        """
        value = getattr(self, name)
        if value is None or value == "":
            raise ConfigurationError(f"env {name.upper()} is not configured")
        return value


# Global settings instance
settings = Settings()
