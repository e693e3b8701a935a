"""
Unit tests for notification and policy models.
"""

import pytest
from pydantic import ValidationError

from conftest import make_push_payload
from archiver.models.archive import ArchiveOutcome, ArchiveStatus, PipelineResult, PipelineState
from archiver.models.notification import EventType, Notification
from archiver.models.repository import RepositoryConfig


class TestNotification:
    """Webhook payload parsing."""

    def test_push_fields(self, push_payload):
        notification = Notification.from_payload(push_payload)

        assert notification.kind == EventType.GIT_PUSHED
        assert notification.project_key == "PROJ"
        assert notification.repository_name == "web-app"
        assert notification.ref == "refs/heads/main"
        assert notification.branch == "main"
        assert notification.user_name == "Alice"
        assert notification.revisions == [{"rev": "3b4e1c2d", "comment": "Fix login redirect"}]

    def test_payload_is_kept_verbatim(self, push_payload):
        notification = Notification.from_payload(push_payload)

        assert notification.payload == push_payload
        assert "payload" not in notification.model_dump()

    def test_branch_with_slashes(self):
        notification = Notification.from_payload(make_push_payload(branch="feature/login/form"))

        assert notification.branch == "feature/login/form"

    def test_ref_without_heads_prefix(self, push_payload):
        push_payload["content"]["ref"] = "main"

        assert Notification.from_payload(push_payload).branch == "main"

    @pytest.mark.parametrize("event_type,kind", [
        (12, EventType.GIT_PUSHED),
        (18, EventType.PULL_REQUEST_CREATED),
        (19, EventType.PULL_REQUEST_UPDATED),
        (1, None),
    ])
    def test_kind(self, event_type, kind):
        notification = Notification.from_payload(make_push_payload(event_type=event_type))

        assert notification.kind == kind

    def test_missing_project_is_rejected(self, push_payload):
        del push_payload["project"]

        with pytest.raises(ValidationError):
            Notification.from_payload(push_payload)

    def test_notification_is_immutable(self, push_payload):
        notification = Notification.from_payload(push_payload)

        with pytest.raises(ValidationError):
            notification.type = 18


class TestRepositoryConfig:
    """Archive policy model."""

    def test_defaults(self):
        config = RepositoryConfig()

        assert config.git_branch_pushed_trigger == ["main", "master"]
        assert config.archive_by_subfolders == []

    def test_triggers_on_exact_match(self):
        config = RepositoryConfig(git_branch_pushed_trigger=["main", "release/1.0"])

        assert config.triggers_on("main") is True
        assert config.triggers_on("release/1.0") is True
        assert config.triggers_on("release") is False
        assert config.triggers_on("Main") is False

    def test_subfolders_are_normalized(self):
        config = RepositoryConfig(archive_by_subfolders=["/api/", "web", " ", "api", "docs/guide/"])

        assert config.archive_by_subfolders == ["api", "web", "docs/guide"]


def test_pipeline_result_partitions_outcomes():
    result = PipelineResult(
        state=PipelineState.DONE,
        outcomes=[
            ArchiveOutcome(object_key="a.zip", status=ArchiveStatus.UPLOADED, version_id="v1"),
            ArchiveOutcome(object_key="b.zip", status=ArchiveStatus.UNCHANGED),
            ArchiveOutcome(object_key="c.zip", status=ArchiveStatus.FAILED),
        ],
    )

    assert [o.object_key for o in result.uploaded] == ["a.zip"]
    assert [o.object_key for o in result.failed] == ["c.zip"]
