"""
Centralized AWS configuration for Stratus.

Single source of truth for AWS credentials, region, and session management.
Every provisioning client (IAM, S3, CloudFormation) is created from the
session returned by get_boto3_session().
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import cache
from typing import Any

import boto3


@dataclass(frozen=True)
class AWSConfig:
    """AWS configuration from environment variables.

    Attributes:
        region: AWS region (from STRATUS_AWS_REGION or AWS_DEFAULT_REGION)
        access_key_id: AWS access key ID (optional if using IAM roles)
        secret_access_key: AWS secret access key (optional if using IAM roles)
        profile: Named profile from the shared credentials file
        endpoint_url: Custom endpoint for LocalStack/testing
    """

    region: str
    access_key_id: str | None = None
    secret_access_key: str | None = None
    profile: str | None = None
    endpoint_url: str | None = None


@cache
def get_aws_config() -> AWSConfig:
    """Load AWS configuration from environment variables.

    Environment variables (checked in order):
        - STRATUS_AWS_REGION / AWS_DEFAULT_REGION / AWS_REGION → region
        - AWS_ACCESS_KEY_ID → access_key_id
        - AWS_SECRET_ACCESS_KEY → secret_access_key
        - STRATUS_AWS_PROFILE / AWS_PROFILE → profile
        - STRATUS_AWS_ENDPOINT_URL / AWS_ENDPOINT_URL → endpoint_url (for LocalStack)

    Returns:
        AWSConfig with validated settings.
    """
    region = (
        os.environ.get("STRATUS_AWS_REGION")
        or os.environ.get("AWS_DEFAULT_REGION")
        or os.environ.get("AWS_REGION")
        or "us-east-1"
    )

    return AWSConfig(
        region=region,
        access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
        secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
        profile=os.environ.get("STRATUS_AWS_PROFILE") or os.environ.get("AWS_PROFILE"),
        endpoint_url=os.environ.get("STRATUS_AWS_ENDPOINT_URL")
        or os.environ.get("AWS_ENDPOINT_URL"),
    )


def get_boto3_session(config: AWSConfig | None = None) -> boto3.Session:
    """Create a boto3 Session with credentials from config.

    Args:
        config: AWS config (uses get_aws_config() if None)

    Returns:
        boto3.Session instance
    """
    if config is None:
        config = get_aws_config()

    kwargs: dict[str, str] = {"region_name": config.region}
    if config.profile:
        kwargs["profile_name"] = config.profile
    if config.access_key_id:
        kwargs["aws_access_key_id"] = config.access_key_id
    if config.secret_access_key:
        kwargs["aws_secret_access_key"] = config.secret_access_key

    return boto3.Session(**kwargs)


def create_client(session: Any, service_name: str, config: AWSConfig | None = None) -> Any:
    """Create a service client from a session, honouring a custom endpoint URL."""
    if config is None:
        config = get_aws_config()
    kwargs: dict[str, Any] = {}
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    return session.client(service_name, **kwargs)


def session_region(session: Any) -> str:
    """Region of a session, falling back to the configured default."""
    region = getattr(session, "region_name", None)
    if isinstance(region, str) and region:
        return region
    return get_aws_config().region
