"""
Provisioning workflow.

Verifies IAM roles, builds and packages the service, uploads artifacts,
synthesizes the CloudFormation template and converges the stack.

Usage:
    from stratus.provision import provision

    result = provision(
        noop=True,
        service_name="demo",
        service_description="Demo service",
        lambda_functions=functions,
        s3_bucket="my-artifacts",
    )
"""

from .context import S3SiteContext, WorkflowContext
from .errors import (
    BuildError,
    ConfigurationError,
    ExportError,
    ProvisionError,
    RemoteErrorKind,
    RemoteLookupError,
    StackProvisionError,
    UploadError,
    classify_remote_error,
)
from .package import BuildConfig
from .rollback import RollbackRegistry
from .stack import PollPolicy, StackDescription
from .steps import StepResult, StepStatus, WorkflowState
from .workflow import STEPS, ProvisionResult, provision, run_workflow

__all__ = [
    # Entry points
    "provision",
    "run_workflow",
    "ProvisionResult",
    "STEPS",
    # Context
    "WorkflowContext",
    "S3SiteContext",
    "WorkflowState",
    "StepResult",
    "StepStatus",
    "BuildConfig",
    "PollPolicy",
    "RollbackRegistry",
    "StackDescription",
    # Errors
    "ProvisionError",
    "ConfigurationError",
    "RemoteLookupError",
    "BuildError",
    "UploadError",
    "ExportError",
    "StackProvisionError",
    "RemoteErrorKind",
    "classify_remote_error",
]
