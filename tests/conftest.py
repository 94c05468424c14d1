"""Shared pytest fixtures for Stratus tests."""

from __future__ import annotations

import logging
from collections import defaultdict
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from stratus.aws import get_aws_config
from stratus.provision.context import S3SiteContext, WorkflowContext
from stratus.provision.stack import PollPolicy
from stratus.service import IAMPrivilege, IAMRoleDefinition, LambdaFunction

_AWS_ENV_VARS = (
    "STRATUS_AWS_REGION",
    "AWS_DEFAULT_REGION",
    "AWS_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "STRATUS_AWS_PROFILE",
    "AWS_PROFILE",
    "STRATUS_AWS_ENDPOINT_URL",
    "AWS_ENDPOINT_URL",
)


@pytest.fixture(autouse=True)
def _isolate_aws_env(monkeypatch: pytest.MonkeyPatch):
    """Remove AWS env vars and clear the cached config around each test."""
    for var in _AWS_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    get_aws_config.cache_clear()
    yield
    get_aws_config.cache_clear()


@pytest.fixture
def client_error():
    """Factory for botocore ClientErrors."""

    def make(code: str, message: str = "", operation: str = "Operation") -> ClientError:
        return ClientError({"Error": {"Code": code, "Message": message}}, operation)

    return make


@pytest.fixture
def clients() -> defaultdict[str, MagicMock]:
    """One MagicMock client per AWS service name."""
    return defaultdict(MagicMock)


@pytest.fixture
def session(clients: defaultdict[str, MagicMock]) -> MagicMock:
    """A boto3 session stand-in whose clients come from ``clients``."""
    mock = MagicMock(name="session")
    mock.region_name = "us-west-2"
    mock.client.side_effect = lambda service_name, **kwargs: clients[service_name]
    return mock


@pytest.fixture
def log() -> logging.Logger:
    return logging.getLogger("stratus.tests")


@pytest.fixture
def hello_function() -> LambdaFunction:
    """A function with a role created as part of the stack."""
    return LambdaFunction(
        name="hello",
        description="Says hello",
        role_definition=IAMRoleDefinition(privileges=[IAMPrivilege(["s3:GetObject"])]),
    )


@pytest.fixture
def no_sleep() -> PollPolicy:
    """Poll policy that never actually sleeps."""
    return PollPolicy(sleep=lambda seconds: None)


@pytest.fixture
def make_context(session: MagicMock, log: logging.Logger, no_sleep: PollPolicy):
    """Factory for WorkflowContexts backed by the mock session."""

    def make(functions: list[LambdaFunction], **overrides) -> WorkflowContext:
        params = {
            "noop": False,
            "service_name": "demo",
            "service_description": "Demo service",
            "lambda_functions": functions,
            "s3_bucket": "artifacts",
            "session": session,
            "logger": log,
            "site_context": S3SiteContext(),
            "poll_policy": no_sleep,
        }
        params.update(overrides)
        return WorkflowContext(**params)

    return make
