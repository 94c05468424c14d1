"""
Workflow context.

The single mutable object threaded through every provisioning step. It is
created once per provision() call and discarded when the run ends.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

from stratus.template import Template

from .assets import AssetTable
from .package import BuildConfig
from .rollback import RollbackFunction, RollbackRegistry
from .stack import PollPolicy, StackDescription

if TYPE_CHECKING:
    from stratus.service import API, LambdaFunction, RoleReference, S3Site


@dataclass
class S3SiteContext:
    """Static site descriptor and, once uploaded, the key of its archive."""

    site: S3Site | None = None
    archive_key: str = ""


@dataclass
class WorkflowContext:
    """Shared state for one provisioning run."""

    noop: bool
    service_name: str
    service_description: str
    lambda_functions: list[LambdaFunction]
    s3_bucket: str
    session: Any
    logger: logging.Logger
    api: API | None = None
    site_context: S3SiteContext = field(default_factory=S3SiteContext)
    template: Template = field(default_factory=Template)
    role_map: dict[str, RoleReference] = field(default_factory=dict)
    code_key: str = ""
    package_path: Path | None = None
    template_writer: TextIO | None = None
    build: BuildConfig = field(default_factory=BuildConfig)
    poll_policy: PollPolicy = field(default_factory=PollPolicy)
    rollback: RollbackRegistry = field(default_factory=RollbackRegistry)
    assets: AssetTable = field(default_factory=AssetTable)
    stack: StackDescription | None = None

    def __post_init__(self) -> None:
        if not self.template.description:
            self.template.description = self.service_description

    def register_rollback(self, function: RollbackFunction) -> None:
        """Register a compensating action for a side effect of this run."""
        self.rollback.register(function)

    def execute_rollback(self) -> int:
        """Run every registered compensating action; returns the failure count."""
        return self.rollback.execute(self.logger)
