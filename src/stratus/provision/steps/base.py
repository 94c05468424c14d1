"""
Base class for provisioning workflow steps.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from ..context import WorkflowContext


class WorkflowState(StrEnum):
    """States of the provisioning workflow, in execution order."""

    VERIFY_ROLES = "verify_roles"
    BUILD_PACKAGE = "build_package"
    UPLOAD = "upload"
    EXPORT_RESOURCES = "export_resources"
    CONVERGE_STACK = "converge_stack"


class StepStatus(StrEnum):
    """Outcome of an executed step."""

    PASSED = "passed"
    FAILED = "failed"


@dataclass
class StepResult:
    """Record of one executed step."""

    state: WorkflowState
    status: StepStatus
    duration_ms: int = 0
    error_message: str | None = None

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "state": self.state.value,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "error_message": self.error_message,
        }


class WorkflowStep(ABC):
    """A unit of work operating on the shared context.

    ``execute`` returns the next state, or None when the workflow is
    complete. Failures are raised; the engine rolls back and stops.
    """

    state: ClassVar[WorkflowState]

    def __init__(self, context: WorkflowContext):
        self.context = context

    @property
    def logger(self):
        return self.context.logger

    @abstractmethod
    def execute(self) -> WorkflowState | None:
        """Run the step and return the next state."""
        ...
