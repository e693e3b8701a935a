"""
Unit tests for archive production from a working copy.
"""

import zipfile

import pytest

from conftest import requires_git
from archiver.errors import ArchiveError
from archiver.models.repository import RepositoryConfig
from archiver.services.archive_producer import ArchiveProducer, build_object_key
from archiver.services.git_client import GitClient


@pytest.mark.parametrize("subdirectory,expected", [
    (None, "PROJ/web-app/main.zip"),
    ("web", "PROJ/web-app/main/web.zip"),
    ("docs/guide", "PROJ/web-app/main/docs/guide.zip"),
])
def test_build_object_key(subdirectory, expected):
    assert build_object_key("PROJ", "web-app", "main", subdirectory) == expected


def test_build_object_key_branch_with_slash():
    assert build_object_key("PROJ", "web-app", "feature/x") == "PROJ/web-app/feature/x.zip"


@requires_git
class TestProduce:
    """Archives produced for each policy."""

    @pytest.fixture
    def working_copy(self, tmp_path, git_remote_factory):
        remote = git_remote_factory()
        remote.commit({
            "README.md": "root\n",
            "web/index.html": "<html/>",
            "docs/guide/intro.md": "intro",
        })
        path = tmp_path / "work"
        GitClient().sync(None, remote.url, "main", path)
        return path

    @pytest.fixture
    def producer(self):
        return ArchiveProducer(GitClient())

    def test_whole_tree(self, tmp_path, working_copy, producer):
        archives = producer.produce(
            working_copy, RepositoryConfig(), "PROJ", "web-app", "main", tmp_path / "out"
        )

        assert len(archives) == 1
        assert archives[0].object_key == "PROJ/web-app/main.zip"
        assert archives[0].subdirectory is None
        with zipfile.ZipFile(archives[0].file_path) as archive:
            assert "README.md" in archive.namelist()

    def test_missing_subdirectory_is_skipped(self, tmp_path, working_copy, producer):
        config = RepositoryConfig(archive_by_subfolders=["api", "web"])

        archives = producer.produce(working_copy, config, "PROJ", "web-app", "main", tmp_path / "out")

        assert [a.object_key for a in archives] == ["PROJ/web-app/main/web.zip"]
        with zipfile.ZipFile(archives[0].file_path) as archive:
            assert archive.namelist() == ["index.html"]

    def test_nested_subdirectory(self, tmp_path, working_copy, producer):
        config = RepositoryConfig(archive_by_subfolders=["docs/guide"])

        archives = producer.produce(working_copy, config, "PROJ", "web-app", "main", tmp_path / "out")

        assert archives[0].object_key == "PROJ/web-app/main/docs/guide.zip"
        assert archives[0].subdirectory == "docs/guide"

    def test_no_configured_subdirectory_exists(self, tmp_path, working_copy, producer):
        config = RepositoryConfig(archive_by_subfolders=["api", "mobile"])

        with pytest.raises(ArchiveError, match="api, mobile"):
            producer.produce(working_copy, config, "PROJ", "web-app", "main", tmp_path / "out")

    def test_subdirectories_with_same_flattened_name(self, tmp_path, git_remote_factory, producer):
        remote = git_remote_factory(repository="flat")
        remote.commit({"a/b/x.txt": "nested", "a__b/x.txt": "flat"})
        path = tmp_path / "flat-work"
        GitClient().sync(None, remote.url, "main", path)
        config = RepositoryConfig(archive_by_subfolders=["a/b", "a__b"])

        archives = producer.produce(path, config, "PROJ", "flat", "main", tmp_path / "out")

        assert [a.object_key for a in archives] == ["PROJ/flat/main/a/b.zip", "PROJ/flat/main/a__b.zip"]
        assert archives[0].file_path != archives[1].file_path
        contents = []
        for archive in archives:
            with zipfile.ZipFile(archive.file_path) as zf:
                contents.append(zf.read("x.txt"))
        assert contents == [b"nested", b"flat"]
