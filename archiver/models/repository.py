"""Per-repository archive policy models."""

from typing import List

from pydantic import BaseModel, ConfigDict, field_validator


class RepositoryConfig(BaseModel):
    """
    Archive policy for one (project, repository).

    An empty ``archive_by_subfolders`` archives the whole tree.
    """

    model_config = ConfigDict(frozen=True)

    git_branch_pushed_trigger: List[str] = ["main", "master"]
    archive_by_subfolders: List[str] = []

    @field_validator("archive_by_subfolders")
    @classmethod
    def normalize_subfolders(cls, value: List[str]) -> List[str]:
        """Strip surrounding slashes, drop blanks and duplicates, keep order."""
        normalized: List[str] = []
        for entry in value:
            entry = entry.strip().strip("/")
            if entry and entry not in normalized:
                normalized.append(entry)
        return normalized

    def triggers_on(self, branch: str) -> bool:
        return branch in self.git_branch_pushed_trigger
