"""
Error types for the provisioning workflow.
"""

from __future__ import annotations

from enum import StrEnum

from botocore.exceptions import ClientError


class ProvisionError(Exception):
    """Base exception for all provisioning errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(ProvisionError):
    """
    Raised when the service definition is invalid.

    Examples:
    - No Lambda functions supplied
    - Both a role name and a role definition on one function
    - Missing or unreadable stratus.toml
    """

    pass


class RemoteLookupError(ProvisionError):
    """Raised when a read-only AWS lookup fails (IAM role, stack description)."""

    pass


class BuildError(ProvisionError):
    """
    Raised when the service binary cannot be built or packaged.

    Examples:
    - Toolchain missing or compilation failed
    - Build output missing after a successful build
    """

    pass


class UploadError(ProvisionError):
    """Raised when one or more artifact uploads fail.

    Concurrent upload failures are aggregated into a single error whose
    message lists every individual failure.
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def aggregate(cls, errors: list[str]) -> UploadError:
        """Build a single error describing every failed upload."""
        text = "Encountered multiple errors during upload:\n" + "\n".join(errors)
        return cls(text, errors)


class ExportError(ProvisionError):
    """Raised when a resource cannot be exported into the template."""

    pass


class StackProvisionError(ProvisionError):
    """Raised when the CloudFormation stack reaches a failed terminal state."""

    def __init__(self, message: str, stack_id: str | None = None):
        self.stack_id = stack_id
        super().__init__(message)


# =============================================================================
# Remote Error Classification
# =============================================================================


class RemoteErrorKind(StrEnum):
    """Coarse classification of an AWS API error."""

    NOT_FOUND = "not_found"
    POLICY_ABSENT = "policy_absent"
    NO_CHANGES = "no_changes"
    OTHER = "other"


_POLICY_ABSENT_CODES = {"NoSuchLifecycleConfiguration"}
_NOT_FOUND_CODES = {"NoSuchEntity", "NoSuchBucket", "NoSuchKey", "StackNotFoundException"}


def classify_remote_error(error: BaseException) -> RemoteErrorKind:
    """
    Classify an AWS API error.

    The structured botocore error code is checked first. CloudFormation
    reports a missing stack as a generic ValidationError, so the message
    text is used as a fallback. Anything unrecognized is OTHER.
    """
    code = ""
    message = str(error)
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        code = details.get("Code", "")
        message = details.get("Message", "") or message

    if code in _POLICY_ABSENT_CODES:
        return RemoteErrorKind.POLICY_ABSENT
    if code in _NOT_FOUND_CODES:
        return RemoteErrorKind.NOT_FOUND

    if "NoSuchLifecycleConfiguration" in message:
        return RemoteErrorKind.POLICY_ABSENT
    if "does not exist" in message:
        return RemoteErrorKind.NOT_FOUND
    if "No updates are to be performed" in message:
        return RemoteErrorKind.NO_CHANGES
    return RemoteErrorKind.OTHER
