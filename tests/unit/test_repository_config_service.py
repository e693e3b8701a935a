"""
Unit tests for RepositoryConfigService.

Tests policy lookup, override precedence and fallback on bad files.
"""

import json

import pytest

from archiver.models.repository import RepositoryConfig
from archiver.services.repository_config import RepositoryConfigService


@pytest.fixture
def configs_dir(tmp_path):
    return tmp_path / "archive-configs"


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data if isinstance(data, str) else json.dumps(data))


class TestDefaultPolicy:
    """Default policy resolution."""

    def test_builtin_default_when_directory_missing(self, configs_dir):
        service = RepositoryConfigService(configs_dir)

        config = service.load("PROJ", "web-app")

        assert config.git_branch_pushed_trigger == ["main", "master"]
        assert config.archive_by_subfolders == []

    def test_default_file(self, configs_dir):
        write_json(configs_dir / "default.json", {
            "git_branch_pushed_trigger": ["release"],
            "archive_by_subfolders": [],
        })
        service = RepositoryConfigService(configs_dir)

        assert service.load("PROJ", "web-app").git_branch_pushed_trigger == ["release"]

    def test_unreadable_default_falls_back_to_builtin(self, configs_dir):
        write_json(configs_dir / "default.json", "{not json")
        service = RepositoryConfigService(configs_dir)

        assert service.get_default() == RepositoryConfig()


class TestRepositoryOverride:
    """Per-repository override files."""

    def test_override_replaces_default(self, configs_dir):
        write_json(configs_dir / "default.json", {"git_branch_pushed_trigger": ["main"]})
        write_json(configs_dir / "PROJ" / "web-app.json", {
            "git_branch_pushed_trigger": ["develop", "main"],
            "archive_by_subfolders": ["api", "web"],
        })
        service = RepositoryConfigService(configs_dir)

        config = service.load("PROJ", "web-app")

        assert config.git_branch_pushed_trigger == ["develop", "main"]
        assert config.archive_by_subfolders == ["api", "web"]

    def test_override_is_scoped_to_repository(self, configs_dir):
        write_json(configs_dir / "PROJ" / "web-app.json", {"archive_by_subfolders": ["api"]})
        service = RepositoryConfigService(configs_dir)

        assert service.load("PROJ", "other-repo").archive_by_subfolders == []
        assert service.load("OTHER", "web-app").archive_by_subfolders == []

    def test_partial_override_uses_builtin_field_defaults(self, configs_dir):
        write_json(configs_dir / "PROJ" / "web-app.json", {"archive_by_subfolders": ["web"]})
        service = RepositoryConfigService(configs_dir)

        config = service.load("PROJ", "web-app")

        assert config.git_branch_pushed_trigger == ["main", "master"]
        assert config.archive_by_subfolders == ["web"]

    @pytest.mark.parametrize("content", [
        "{broken",
        json.dumps(["main"]),
        json.dumps({"git_branch_pushed_trigger": "main"}),
    ])
    def test_invalid_override_falls_back_to_default(self, configs_dir, content):
        write_json(configs_dir / "default.json", {"git_branch_pushed_trigger": ["trunk"]})
        write_json(configs_dir / "PROJ" / "web-app.json", content)
        service = RepositoryConfigService(configs_dir)

        assert service.load("PROJ", "web-app").git_branch_pushed_trigger == ["trunk"]


def test_config_path(configs_dir):
    service = RepositoryConfigService(configs_dir)

    assert service.config_path("PROJ", "web-app") == configs_dir / "PROJ" / "web-app.json"
