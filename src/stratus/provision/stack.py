"""
CloudFormation stack convergence.

Creates or updates the service stack from an uploaded template, then polls
until the stack reaches a terminal status.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from stratus.template import Template

from .errors import (
    RemoteErrorKind,
    RemoteLookupError,
    StackProvisionError,
    classify_remote_error,
)

logger = logging.getLogger(__name__)

IAM_CAPABILITY = "CAPABILITY_IAM"
IAM_ROLE_TYPE = "AWS::IAM::Role"
CREATE_TIMEOUT_MINUTES = 5


class StackStatusClass(StrEnum):
    """Outcome implied by a stack status."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"


SUCCESS_STATUSES = frozenset({"CREATE_COMPLETE", "UPDATE_COMPLETE"})

# DELETE_COMPLETE is terminal because failed creates are deleted (OnFailure=DELETE).
FAILURE_STATUSES = frozenset(
    {
        "DELETE_COMPLETE",
        "CREATE_FAILED",
        "DELETE_FAILED",
        "ROLLBACK_FAILED",
        "ROLLBACK_COMPLETE",
    }
)

FAILED_RESOURCE_STATUSES = frozenset({"CREATE_FAILED", "DELETE_FAILED", "UPDATE_FAILED"})


def classify_stack_status(status: str) -> StackStatusClass:
    """Classify a stack status as success, failure or still converging."""
    if status in SUCCESS_STATUSES:
        return StackStatusClass.SUCCEEDED
    if status in FAILURE_STATUSES:
        return StackStatusClass.FAILED
    return StackStatusClass.IN_PROGRESS


def stack_capabilities(template: Template) -> list[str]:
    """Capabilities to acknowledge: CAPABILITY_IAM iff the template creates roles."""
    if template.resources_of_type(IAM_ROLE_TYPE):
        return [IAM_CAPABILITY]
    return []


@dataclass
class PollPolicy:
    """Interval between stack status checks: uniform random in [min, max] seconds."""

    min_seconds: float = 11.0
    max_seconds: float = 24.0
    sleep: Callable[[float], None] = time.sleep
    rng: random.Random = field(default_factory=random.Random)

    def next_interval(self) -> float:
        return self.rng.uniform(self.min_seconds, self.max_seconds)

    def wait(self) -> float:
        interval = self.next_interval()
        self.sleep(interval)
        return interval


@dataclass
class StackDescription:
    """Terminal description of a converged stack."""

    stack_id: str
    stack_name: str
    status: str
    outputs: list[dict[str, Any]] = field(default_factory=list)
    creation_time: datetime | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> StackDescription:
        return cls(
            stack_id=data.get("StackId", ""),
            stack_name=data.get("StackName", ""),
            status=data.get("StackStatus", ""),
            outputs=list(data.get("Outputs", [])),
            creation_time=data.get("CreationTime"),
        )

    def output_map(self) -> dict[str, str]:
        return {output["OutputKey"]: output.get("OutputValue", "") for output in self.outputs}


# =============================================================================
# Stack Queries
# =============================================================================


def stack_exists(cloudformation: Any, stack_name: str, log: logging.Logger | None = None) -> bool:
    """
    Check whether a stack exists.

    Raises:
        RemoteLookupError: for any describe failure other than "not found"
    """
    log = log or logger
    try:
        response = cloudformation.describe_stacks(StackName=stack_name)
    except (ClientError, BotoCoreError) as e:
        log.debug(f"DescribeStacks({stack_name}) error: {e}")
        if classify_remote_error(e) is RemoteErrorKind.NOT_FOUND:
            return False
        raise RemoteLookupError(f"Failed to describe stack {stack_name}: {e}") from e
    log.debug(f"DescribeStacks({stack_name}) response: {response.get('Stacks')}")
    return True


def stack_events(cloudformation: Any, stack_id: str) -> list[dict[str, Any]]:
    """Return the complete event history of a stack, following NextToken."""
    events: list[dict[str, Any]] = []
    params: dict[str, Any] = {"StackName": stack_id}
    while True:
        response = cloudformation.describe_stack_events(**params)
        events.extend(response.get("StackEvents", []))
        next_token = response.get("NextToken")
        if not next_token:
            return events
        params["NextToken"] = next_token


def log_failed_events(events: list[dict[str, Any]], log: logging.Logger | None = None) -> int:
    """Log every failed resource event. Returns the number logged."""
    log = log or logger
    count = 0
    for event in events:
        if event.get("ResourceStatus") in FAILED_RESOURCE_STATUSES:
            log.error(
                f"\tError ensuring {event.get('ResourceType')} "
                f"({event.get('LogicalResourceId')}): {event.get('ResourceStatusReason')}"
            )
            count += 1
    return count


def describe_stack(cloudformation: Any, stack_id: str) -> StackDescription:
    try:
        response = cloudformation.describe_stacks(StackName=stack_id)
    except (ClientError, BotoCoreError) as e:
        raise RemoteLookupError(f"Failed to describe stack {stack_id}: {e}") from e
    stacks = response.get("Stacks", [])
    if not stacks:
        raise RemoteLookupError(f"Failed to enumerate stack info: {stack_id}")
    return StackDescription.from_response(stacks[0])


# =============================================================================
# Convergence
# =============================================================================


def converge_stack_state(
    cloudformation: Any,
    template: Template,
    service_name: str,
    template_url: str,
    poll_policy: PollPolicy | None = None,
    log: logging.Logger | None = None,
) -> StackDescription:
    """
    Create or update the service stack and wait for a terminal status.

    Args:
        cloudformation: CloudFormation client
        template: Synthesized template (used to compute capabilities)
        service_name: Stack name
        template_url: S3 URL of the uploaded template

    Returns:
        The terminal stack description

    Raises:
        StackProvisionError: if the stack ends in a failure status
        RemoteLookupError: if the stack can't be described
    """
    log = log or logger
    poll_policy = poll_policy or PollPolicy()
    exists = stack_exists(cloudformation, service_name, log)
    capabilities = stack_capabilities(template)

    try:
        if exists:
            response = cloudformation.update_stack(
                StackName=service_name,
                TemplateURL=template_url,
                Capabilities=capabilities,
            )
            log.info(f"Issued stack update request: {response['StackId']}")
        else:
            response = cloudformation.create_stack(
                StackName=service_name,
                TemplateURL=template_url,
                TimeoutInMinutes=CREATE_TIMEOUT_MINUTES,
                OnFailure="DELETE",
                Capabilities=capabilities,
            )
            log.info(f"Creating stack: {response['StackId']}")
    except (ClientError, BotoCoreError) as e:
        if exists and classify_remote_error(e) is RemoteErrorKind.NO_CHANGES:
            log.info(f"Stack {service_name} is already up to date")
            return describe_stack(cloudformation, service_name)
        raise StackProvisionError(f"Failed to converge stack {service_name}: {e}") from e

    stack_id = response["StackId"]
    while True:
        poll_policy.wait()
        stack = describe_stack(cloudformation, stack_id)

        outcome = classify_stack_status(stack.status)
        if outcome is not StackStatusClass.IN_PROGRESS:
            break
        if exists:
            log.info("Waiting for UpdateStack to complete")
        else:
            log.info("Waiting for CreateStack to complete")

    if outcome is StackStatusClass.FAILED:
        log.error(f"Stack provisioning error ({stack.status})")
        try:
            log_failed_events(stack_events(cloudformation, stack_id), log)
        except (ClientError, BotoCoreError) as e:
            log.warning(f"Failed to fetch stack events for {stack_id}: {e}")
        raise StackProvisionError(f"Failed to provision: {service_name}", stack_id=stack_id)

    for output in stack.outputs:
        log.info(
            f"Stack output {output.get('OutputKey')}: {output.get('OutputValue')} "
            f"({output.get('Description', '')})"
        )
    return stack
