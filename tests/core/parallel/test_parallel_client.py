"""
tests/core/parallel/test_parallel_client.py - boto3 session/client 헬퍼 테스트
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from conftest import create_mock_client_error
from core.exceptions import APICallError
from core.parallel.client import ROLE_SESSION_NAME, build_session, get_client


class TestGetClient:
    """get_client 테스트"""

    def test_retry_config(self):
        session = MagicMock()

        get_client(session, "cloudwatch", region_name="eu-west-1", max_pool_connections=40)

        args, kwargs = session.client.call_args
        assert args == ("cloudwatch",)
        assert kwargs["region_name"] == "eu-west-1"
        config = kwargs["config"]
        assert config.retries == {"max_attempts": 5, "mode": "adaptive"}
        assert config.max_pool_connections == 40

    def test_merge_existing_config(self):
        from botocore.config import Config

        session = MagicMock()
        get_client(session, "cloudwatch", config=Config(read_timeout=99))

        config = session.client.call_args.kwargs["config"]
        assert config.read_timeout == 99
        assert config.retries["mode"] == "adaptive"


class TestBuildSession:
    """build_session 테스트"""

    def test_without_role(self):
        with patch("boto3.Session") as session_cls:
            session = build_session(region="eu-west-1")

        session_cls.assert_called_once_with(region_name="eu-west-1")
        assert session is session_cls.return_value

    def test_assume_role(self):
        base_session = MagicMock()
        sts = base_session.client.return_value
        sts.assume_role.return_value = {
            "Credentials": {
                "AccessKeyId": "AKIA",
                "SecretAccessKey": "secret",
                "SessionToken": "token",
                "Expiration": datetime(2024, 1, 1, tzinfo=timezone.utc),
            }
        }
        assumed_session = MagicMock()

        with patch("boto3.Session", side_effect=[base_session, assumed_session]) as session_cls:
            session = build_session(region="us-east-1", role_arn="arn:aws:iam::123:role/exporter")

        assert session is assumed_session
        sts.assume_role.assert_called_once_with(
            RoleArn="arn:aws:iam::123:role/exporter", RoleSessionName=ROLE_SESSION_NAME
        )
        assert session_cls.call_args.kwargs == {
            "aws_access_key_id": "AKIA",
            "aws_secret_access_key": "secret",
            "aws_session_token": "token",
            "region_name": "us-east-1",
        }

    def test_assume_role_failure(self):
        base_session = MagicMock()
        base_session.client.return_value.assume_role.side_effect = create_mock_client_error(
            "AccessDenied", "not authorized", "AssumeRole"
        )

        with patch("boto3.Session", return_value=base_session):
            with pytest.raises(APICallError) as exc_info:
                build_session(role_arn="arn:aws:iam::123:role/exporter")

        assert exc_info.value.error_code == "AccessDenied"
        assert exc_info.value.service == "sts"
