"""
Version control client wrapping the git command line.

Each method operates on a single local working copy path. The working copy
is not safe for concurrent mutation; exclusivity per path is provided by the
queue's per-branch message grouping.
"""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from archiver.errors import ArchiveError, VersionControlError
from archiver.models.credentials import SSHKeyPair
from archiver.utils.logging import get_logger


logger = get_logger(__name__)


class GitClient:
    """
    Runs clone/clean/fetch/reset/archive against a local working copy.

    Remote operations authenticate with the SSH key pair passed to sync;
    commands never prompt.
    """

    def __init__(
        self,
        clone_depth: int = 5,
        git_binary: str = "git",
    ):
        """
        Initialize the git client.

        Args:
            clone_depth: History depth of the initial shallow clone
            git_binary: git executable to run
        """
        self.clone_depth = clone_depth
        self.git_binary = git_binary

    def _env(self, ssh_keys: Optional[SSHKeyPair] = None) -> dict:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        if ssh_keys:
            env["GIT_SSH_COMMAND"] = ssh_keys.ssh_command
        return env

    def _run(self, args: List[str], ssh_keys: Optional[SSHKeyPair] = None) -> str:
        """
        Run a git command and return its stdout.

        Raises:
            VersionControlError: If the command exits non-zero or git is missing
        """
        command = [self.git_binary, *args]
        printable = " ".join(command)
        logger.info(f"$ {printable}")

        try:
            completed = subprocess.run(
                command,
                env=self._env(ssh_keys),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise VersionControlError(f"Unable to run git: {e}", command=printable) from e

        if completed.returncode != 0:
            stderr = completed.stderr.strip()
            raise VersionControlError(
                f"Command failed with exit code {completed.returncode}: {printable}: {stderr}",
                command=printable,
                stderr=stderr,
            )

        return completed.stdout

    def sync(self, ssh_keys: Optional[SSHKeyPair], remote_url: str, branch: str, local_path: Path) -> Path:
        """
        Bring the working copy at ``local_path`` to the remote tip of ``branch``.

        A missing path is shallow-cloned. An existing checkout is cleaned of
        untracked and ignored files, fetched, and hard-reset, which also
        repairs a working copy left inconsistent by an earlier failed run.

        Args:
            ssh_keys: Key pair for the remote, or None for unauthenticated remotes
            remote_url: Repository URL
            branch: Branch to check out
            local_path: Working copy location

        Returns:
            The working copy path

        Raises:
            VersionControlError: On credential, network or missing-branch failures
        """
        local_path = Path(local_path)

        if (local_path / ".git").is_dir():
            self.clean(local_path)
            self.fetch(local_path, ssh_keys)
            self.reset(local_path, branch)
            return local_path

        if local_path.exists():
            # Leftover of an interrupted clone
            logger.warning(f"Removing incomplete working copy at {local_path}")
            shutil.rmtree(local_path)

        local_path.parent.mkdir(parents=True, exist_ok=True)
        self.clone(remote_url, branch, local_path, ssh_keys)
        return local_path

    def clone(self, remote_url: str, branch: str, local_path: Path, ssh_keys: Optional[SSHKeyPair] = None) -> None:
        self._run([
            "clone",
            "--depth", str(self.clone_depth),
            "--single-branch",
            "--branch", branch,
            remote_url,
            str(local_path),
        ], ssh_keys)

    def clean(self, local_path: Path) -> None:
        self._run(["-C", str(local_path), "clean", "-fdx"])

    def fetch(self, local_path: Path, ssh_keys: Optional[SSHKeyPair] = None) -> None:
        self._run(["-C", str(local_path), "fetch", "--depth", str(self.clone_depth), "origin"], ssh_keys)

    def reset(self, local_path: Path, branch: str) -> None:
        self._run(["-C", str(local_path), "reset", "--hard", f"origin/{branch}"])

    def has_subtree(self, local_path: Path, subpath: str) -> bool:
        """Return True if ``HEAD:{subpath}`` names a directory."""
        try:
            object_type = self._run(["-C", str(local_path), "cat-file", "-t", f"HEAD:{subpath}"])
        except VersionControlError:
            return False
        return object_type.strip() == "tree"

    def archive(self, local_path: Path, subpath: Optional[str] = None, output_dir: Optional[Path] = None) -> Path:
        """
        Write a zip of ``HEAD`` (or ``HEAD:{subpath}``) without touching the working copy.

        Args:
            local_path: Working copy
            subpath: Subdirectory to archive; None archives the whole tree
            output_dir: Directory for the zip file; a fresh temp dir when None

        Returns:
            Path of the written zip file

        Raises:
            ArchiveError: If git cannot produce the archive
        """
        if output_dir is None:
            output_dir = Path(tempfile.mkdtemp(prefix="archiver-out-"))
        output_dir.mkdir(parents=True, exist_ok=True)

        # One unique file per call; distinct subpaths may flatten to the same name
        prefix = subpath.replace("/", "__") if subpath else "archive"
        fd, name = tempfile.mkstemp(prefix=f"{prefix}-", suffix=".zip", dir=output_dir)
        os.close(fd)
        archive_file = Path(name)
        treeish = f"HEAD:{subpath}" if subpath else "HEAD"

        try:
            self._run(["-C", str(local_path), "archive", "--format=zip", "-o", str(archive_file), treeish])
        except VersionControlError as e:
            archive_file.unlink(missing_ok=True)
            raise ArchiveError(f"Unable to archive {treeish} of {local_path}: {e.stderr or e}") from e

        return archive_file
