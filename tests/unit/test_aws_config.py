"""Tests for stratus.aws."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from stratus.aws import (
    AWSConfig,
    create_client,
    get_aws_config,
    get_boto3_session,
    session_region,
)

# ===================================================================
# get_aws_config(): region resolution
# ===================================================================


class TestGetAwsConfigRegion:
    """Region precedence: STRATUS_AWS_REGION > AWS_DEFAULT_REGION > AWS_REGION > us-east-1."""

    def test_defaults_to_us_east_1(self) -> None:
        assert get_aws_config().region == "us-east-1"

    def test_aws_region_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        assert get_aws_config().region == "eu-west-1"

    def test_aws_default_region_takes_precedence_over_aws_region(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        monkeypatch.setenv("AWS_DEFAULT_REGION", "ap-south-1")
        assert get_aws_config().region == "ap-south-1"

    def test_stratus_aws_region_takes_precedence_over_all(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        monkeypatch.setenv("AWS_DEFAULT_REGION", "ap-south-1")
        monkeypatch.setenv("STRATUS_AWS_REGION", "us-west-2")
        assert get_aws_config().region == "us-west-2"


# ===================================================================
# get_aws_config(): profile and endpoint
# ===================================================================


class TestGetAwsConfigEndpoint:
    """Endpoint URL for LocalStack/testing."""

    def test_no_endpoint_returns_none(self) -> None:
        assert get_aws_config().endpoint_url is None

    def test_stratus_endpoint_takes_precedence(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AWS_ENDPOINT_URL", "http://localhost:4567")
        monkeypatch.setenv("STRATUS_AWS_ENDPOINT_URL", "http://localhost:4566")
        assert get_aws_config().endpoint_url == "http://localhost:4566"

    def test_profile(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AWS_PROFILE", "default")
        monkeypatch.setenv("STRATUS_AWS_PROFILE", "deploy")
        assert get_aws_config().profile == "deploy"

    def test_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_aws_config()
        monkeypatch.setenv("STRATUS_AWS_REGION", "eu-north-1")
        assert get_aws_config() is first

        get_aws_config.cache_clear()
        assert get_aws_config().region == "eu-north-1"


# ===================================================================
# Sessions and clients
# ===================================================================


class TestGetBoto3Session:
    def test_passes_configured_credentials(self) -> None:
        config = AWSConfig(
            region="eu-west-1",
            access_key_id="AKID",
            secret_access_key="SECRET",
            profile="deploy",
        )
        with patch("stratus.aws.boto3.Session") as session_cls:
            get_boto3_session(config)

        session_cls.assert_called_once_with(
            region_name="eu-west-1",
            profile_name="deploy",
            aws_access_key_id="AKID",
            aws_secret_access_key="SECRET",
        )

    def test_region_only(self) -> None:
        with patch("stratus.aws.boto3.Session") as session_cls:
            get_boto3_session(AWSConfig(region="us-east-1"))

        session_cls.assert_called_once_with(region_name="us-east-1")


class TestCreateClient:
    def test_plain_client(self) -> None:
        session = MagicMock()
        create_client(session, "s3", AWSConfig(region="us-east-1"))
        session.client.assert_called_once_with("s3")

    def test_custom_endpoint(self) -> None:
        session = MagicMock()
        config = AWSConfig(region="us-east-1", endpoint_url="http://localhost:4566")
        create_client(session, "cloudformation", config)
        session.client.assert_called_once_with(
            "cloudformation", endpoint_url="http://localhost:4566"
        )


class TestSessionRegion:
    def test_session_region_wins(self) -> None:
        session = MagicMock(region_name="ap-northeast-1")
        assert session_region(session) == "ap-northeast-1"

    def test_falls_back_to_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATUS_AWS_REGION", "eu-central-1")
        session = MagicMock(region_name=None)
        assert session_region(session) == "eu-central-1"
