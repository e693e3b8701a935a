"""
Repository configuration service for per-repository archive policies.

Policies are JSON files laid out as::

    {configs_dir}/default.json
    {configs_dir}/{projectKey}/{repositoryName}.json

A repository file overrides the default; a missing or unreadable file falls
back to the default, and a missing default falls back to the built-in policy.
Loading never raises.
"""

import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from archiver.models.repository import RepositoryConfig
from archiver.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = "default.json"


class RepositoryConfigService:
    """Loads the archive policy for a (project, repository)."""

    def __init__(self, configs_dir: Optional[Path] = None):
        """
        Initialize the repository configuration service.

        Args:
            configs_dir: Directory holding policy files. If None, will load from settings.
        """
        if configs_dir is None:
            from archiver.config import settings
            configs_dir = settings.archive_configs_dir
        self.configs_dir = Path(configs_dir)

    def config_path(self, project_key: str, repository_name: str) -> Path:
        return self.configs_dir / project_key / f"{repository_name}.json"

    def _read(self, path: Path) -> Optional[RepositoryConfig]:
        if not path.is_file():
            return None

        try:
            with path.open(encoding="utf-8") as f:
                return RepositoryConfig.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable archive config {path}: {e}")
            return None

    def get_default(self) -> RepositoryConfig:
        """Return the process-wide default policy."""
        return self._read(self.configs_dir / DEFAULT_CONFIG_FILE) or RepositoryConfig()

    def load(self, project_key: str, repository_name: str) -> RepositoryConfig:
        """
        Load the archive policy for a repository.

        Args:
            project_key: Project key
            repository_name: Repository name

        Returns:
            The repository override when present, the default otherwise
        """
        override = self._read(self.config_path(project_key, repository_name))
        if override is not None:
            logger.info(
                "Loaded custom archive config",
                extra={
                    "project_key": project_key,
                    "repository": repository_name,
                    "archive_config": override.model_dump(),
                }
            )
            return override

        return self.get_default()
