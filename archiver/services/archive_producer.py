"""
Archive producer.

Turns a synced working copy and a repository's archive policy into the list
of archives to store, each with its logical object key.
"""

from pathlib import Path
from typing import List, Optional

from archiver.errors import ArchiveError
from archiver.models.archive import Archive
from archiver.models.repository import RepositoryConfig
from archiver.services.git_client import GitClient
from archiver.utils.logging import get_logger


logger = get_logger(__name__)


def build_object_key(
    project_key: str,
    repository_name: str,
    branch: str,
    subdirectory: Optional[str] = None
) -> str:
    """
    Build the object key of an archive.

    ``{project}/{repository}/{branch}.zip`` for the whole tree,
    ``{project}/{repository}/{branch}/{subdirectory}.zip`` for a subtree.
    """
    if subdirectory:
        return f"{project_key}/{repository_name}/{branch}/{subdirectory}.zip"
    return f"{project_key}/{repository_name}/{branch}.zip"


class ArchiveProducer:
    """Produces whole-tree or per-subdirectory archives of a working copy."""

    def __init__(self, git_client: GitClient):
        self.git_client = git_client

    def produce(
        self,
        working_copy: Path,
        config: RepositoryConfig,
        project_key: str,
        repository_name: str,
        branch: str,
        output_dir: Path,
    ) -> List[Archive]:
        """
        Produce the archives for one run.

        Subdirectories missing from the tree are skipped with a notice.

        Raises:
            ArchiveError: If an archive cannot be written, or if subdirectories
                are configured and none of them exist
        """
        run_logger = logger.with_context(
            project_key=project_key, repository=repository_name, branch=branch
        )

        if not config.archive_by_subfolders:
            archive_file = self.git_client.archive(working_copy, output_dir=output_dir)
            return [
                Archive(
                    object_key=build_object_key(project_key, repository_name, branch),
                    file_path=archive_file,
                )
            ]

        archives: List[Archive] = []
        missing: List[str] = []

        for subdirectory in config.archive_by_subfolders:
            if not self.git_client.has_subtree(working_copy, subdirectory):
                run_logger.info(
                    f"Subdirectory '{subdirectory}' not found in tree, skipping",
                    extra={"subdirectory": subdirectory}
                )
                missing.append(subdirectory)
                continue

            archive_file = self.git_client.archive(
                working_copy, subpath=subdirectory, output_dir=output_dir
            )
            archives.append(
                Archive(
                    object_key=build_object_key(project_key, repository_name, branch, subdirectory),
                    file_path=archive_file,
                    subdirectory=subdirectory,
                )
            )

        if not archives:
            raise ArchiveError(
                f"None of the configured subdirectories exist in "
                f"{project_key}/{repository_name}@{branch}: {', '.join(missing)}"
            )

        return archives
