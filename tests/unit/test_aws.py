"""
Unit tests for AWS session construction.
"""

from unittest.mock import patch

from archiver.services.aws import create_session


def test_session_uses_region():
    session = create_session("ap-northeast-1")

    assert session.region_name == "ap-northeast-1"


def test_named_profile_is_passed_through():
    with patch("archiver.services.aws.boto3.session.Session") as session_cls:
        create_session("ap-northeast-1", "backlog-sso")

    session_cls.assert_called_once_with(profile_name="backlog-sso", region_name="ap-northeast-1")
