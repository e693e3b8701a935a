"""
Shared fixtures: webhook payloads, local git remotes and in-memory stores.
"""

import copy
import shutil
import subprocess
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

from archiver.models.credentials import SSHKeyPair

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


SAMPLE_PUSH_PAYLOAD = {
    "id": 3153,
    "project": {
        "id": 92,
        "projectKey": "PROJ",
        "name": "Sample project",
        "archived": False,
    },
    "type": 12,
    "content": {
        "change_type": "update",
        "ref": "refs/heads/main",
        "repository": {"id": 7, "name": "web-app", "description": None},
        "revision_count": 1,
        "revision_type": "commit",
        "revisions": [
            {"rev": "3b4e1c2d", "comment": "Fix login redirect"},
        ],
    },
    "notifications": [],
    "createdUser": {
        "id": 1,
        "userId": "alice",
        "name": "Alice",
        "roleType": 1,
        "lang": "en",
        "mailAddress": "alice@example.com",
    },
    "created": "2024-05-01T10:00:00Z",
}


def make_push_payload(
    branch: str = "main",
    project_key: str = "PROJ",
    repository: str = "web-app",
    event_type: int = 12,
) -> dict:
    payload = copy.deepcopy(SAMPLE_PUSH_PAYLOAD)
    payload["type"] = event_type
    payload["project"]["projectKey"] = project_key
    payload["content"]["ref"] = f"refs/heads/{branch}"
    payload["content"]["repository"]["name"] = repository
    return payload


@pytest.fixture
def push_payload() -> dict:
    return make_push_payload()


class GitRemote:
    """A local repository used as the clone source in tests."""

    def __init__(self, path: Path, branch: str = "main"):
        self.path = path
        self.branch = branch
        path.mkdir(parents=True, exist_ok=True)
        self._git("init", "-q")
        self._git("symbolic-ref", "HEAD", f"refs/heads/{branch}")

    @property
    def url(self) -> str:
        return f"file://{self.path}"

    def _git(self, *args: str) -> str:
        completed = subprocess.run(
            ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
            cwd=self.path,
            capture_output=True,
            text=True,
            check=True,
        )
        return completed.stdout

    def commit(self, files: Dict[str, Optional[Union[str, bytes]]], message: str = "update") -> str:
        """Write (or delete, for None) files and commit them."""
        for name, content in files.items():
            target = self.path / name
            if content is None:
                target.unlink(missing_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content)
        self._git("add", "-A")
        self._git("commit", "-q", "--allow-empty", "-m", message)
        return self._git("rev-parse", "HEAD").strip()


@pytest.fixture
def git_remote_factory(tmp_path):
    """Create remotes under ``tmp_path/remotes/{project}/{repository}``."""
    root = tmp_path / "remotes"

    def _factory(project_key: str = "PROJ", repository: str = "web-app", branch: str = "main") -> GitRemote:
        return GitRemote(root / project_key / repository, branch=branch)

    _factory.root = root
    return _factory


class InMemoryObjectStore:
    """Versioned object store keeping every version in memory."""

    def __init__(self):
        self.versions: Dict[str, List[tuple]] = {}
        self.put_calls: List[str] = []
        self.download_calls: List[str] = []
        self.fail_put_for: set = set()
        self.return_version_id = True

    def download_latest(self, object_key: str, destination: Path) -> Optional[Path]:
        self.download_calls.append(object_key)
        if object_key not in self.versions:
            return None
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(self.versions[object_key][-1][1])
        return destination

    def put(self, object_key: str, source: Path) -> Optional[str]:
        from archiver.errors import StorageError

        self.put_calls.append(object_key)
        if object_key in self.fail_put_for:
            raise StorageError(f"simulated upload failure for {object_key}")
        version_id = uuid.uuid4().hex
        self.versions.setdefault(object_key, []).append((version_id, source.read_bytes()))
        return version_id if self.return_version_id else None

    @property
    def total_versions(self) -> int:
        return sum(len(v) for v in self.versions.values())


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


class StaticCredentialProvider:
    """Credential provider returning fixed key paths."""

    secret_name = "test/ssh-key"

    def __init__(self, key_dir: Path):
        self.key_dir = key_dir
        self.calls = 0

    def fetch(self) -> SSHKeyPair:
        self.calls += 1
        return SSHKeyPair(
            private_key_path=self.key_dir / "id_ed25519",
            public_key_path=self.key_dir / "id_ed25519.pub",
        )


@pytest.fixture
def credential_provider(tmp_path) -> StaticCredentialProvider:
    return StaticCredentialProvider(tmp_path / "keys")
