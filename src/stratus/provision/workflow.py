"""
Provisioning workflow engine.

Runs the step registered for each workflow state until a step reports
completion. Any failure runs the registered rollback functions and is
re-raised to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TextIO

from stratus.aws import get_boto3_session
from stratus.template import Template

from .context import S3SiteContext, WorkflowContext
from .errors import ConfigurationError
from .package import BuildConfig
from .stack import PollPolicy, StackDescription
from .steps import (
    BuildPackageStep,
    ConvergeStackStep,
    ExportResourcesStep,
    StepResult,
    StepStatus,
    UploadStep,
    VerifyRolesStep,
    WorkflowState,
    WorkflowStep,
)

if TYPE_CHECKING:
    from stratus.service import API, LambdaFunction, S3Site

logger = logging.getLogger(__name__)

STEPS: dict[WorkflowState, type[WorkflowStep]] = {
    WorkflowState.VERIFY_ROLES: VerifyRolesStep,
    WorkflowState.BUILD_PACKAGE: BuildPackageStep,
    WorkflowState.UPLOAD: UploadStep,
    WorkflowState.EXPORT_RESOURCES: ExportResourcesStep,
    WorkflowState.CONVERGE_STACK: ConvergeStackStep,
}


@dataclass
class ProvisionResult:
    """Outcome of a completed provisioning run.

    Only built when every step passed; a failed run raises instead.
    """

    service_name: str
    noop: bool
    steps: list[StepResult] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    stack: StackDescription | None = None
    template: Template | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "service_name": self.service_name,
            "noop": self.noop,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "steps": [step.to_dict() for step in self.steps],
            "stack_id": self.stack.stack_id if self.stack else None,
            "stack_status": self.stack.status if self.stack else None,
        }


def run_workflow(
    ctx: WorkflowContext,
    initial: WorkflowState = WorkflowState.VERIFY_ROLES,
    results: list[StepResult] | None = None,
) -> list[StepResult]:
    """
    Drive the state machine from ``initial`` to completion.

    Args:
        ctx: Context shared by every step of the run
        initial: First state to execute
        results: Optional list to record step results into

    Returns:
        One StepResult per executed step

    Raises:
        Whatever the failing step raised, after rollback has run
    """
    results = results if results is not None else []
    started = time.monotonic()
    state: WorkflowState | None = initial

    while state is not None:
        step = STEPS[state](ctx)
        step_started = time.monotonic()
        ctx.logger.debug(f"Entering workflow state: {state}")
        try:
            next_state = step.execute()
        except Exception as e:
            results.append(
                StepResult(
                    state=state,
                    status=StepStatus.FAILED,
                    duration_ms=_elapsed_ms(step_started),
                    error_message=str(e),
                )
            )
            ctx.logger.error(f"Workflow step {state} failed: {e}")
            ctx.execute_rollback()
            raise
        results.append(
            StepResult(state=state, status=StepStatus.PASSED, duration_ms=_elapsed_ms(step_started))
        )
        state = next_state

    ctx.logger.info(f"Elapsed time: {time.monotonic() - started:.2f} seconds")
    return results


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def provision(
    noop: bool,
    service_name: str,
    service_description: str,
    lambda_functions: list[LambdaFunction],
    s3_bucket: str,
    api: API | None = None,
    site: S3Site | None = None,
    template_writer: TextIO | None = None,
    logger: logging.Logger | None = None,
    session: Any = None,
    build: BuildConfig | None = None,
    poll_policy: PollPolicy | None = None,
) -> ProvisionResult:
    """
    Provision a service: verify roles, build, upload, synthesize and converge.

    Args:
        noop: Skip every mutating AWS call; the template is still synthesized
        service_name: Service name, also used as the stack name
        service_description: Template description
        lambda_functions: Functions to deploy; at least one is required
        s3_bucket: Bucket receiving the code bundle and template
        api: Optional API Gateway definition
        site: Optional S3 static site
        template_writer: Optional sink for the pretty-printed template
        logger: Logger for the run (defaults to the ``stratus`` logger)
        session: boto3 session (defaults to one built from the environment)
        build: How to compile the service binary
        poll_policy: Stack status polling interval

    Returns:
        ProvisionResult describing the run

    Raises:
        ProvisionError: if any step fails; rollback has already run
    """
    log = logger or logging.getLogger("stratus")
    if not lambda_functions:
        raise ConfigurationError("No lambda functions provided to Stratus.Provision")

    ctx = WorkflowContext(
        noop=noop,
        service_name=service_name,
        service_description=service_description,
        lambda_functions=list(lambda_functions),
        s3_bucket=s3_bucket,
        session=session if session is not None else get_boto3_session(),
        logger=log,
        api=api,
        site_context=S3SiteContext(site=site),
        template_writer=template_writer,
        build=build or BuildConfig(),
        poll_policy=poll_policy or PollPolicy(),
    )

    log.info(
        f"Provisioning service: {service_name} "
        f"(bucket={s3_bucket}, functions={len(ctx.lambda_functions)}, noop={noop})"
    )
    started = time.monotonic()
    steps = run_workflow(ctx)
    return ProvisionResult(
        service_name=service_name,
        noop=noop,
        steps=steps,
        elapsed_seconds=time.monotonic() - started,
        stack=ctx.stack,
        template=ctx.template,
    )
