"""
Provisioning workflow steps.

Each step handles one workflow state and returns the state that follows it.
"""

from .base import StepResult, StepStatus, WorkflowState, WorkflowStep
from .converge import ConvergeStackStep
from .package import BuildPackageStep
from .roles import VerifyRolesStep
from .synthesis import ExportResourcesStep
from .upload import UploadStep

__all__ = [
    "WorkflowState",
    "WorkflowStep",
    "StepResult",
    "StepStatus",
    "VerifyRolesStep",
    "BuildPackageStep",
    "UploadStep",
    "ExportResourcesStep",
    "ConvergeStackStep",
]
