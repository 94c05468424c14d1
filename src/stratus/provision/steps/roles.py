"""
Step 1: IAM role verification.

Resolves every function's execution role into the shared role map.
"""

from __future__ import annotations

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from stratus.aws import create_client
from stratus.service import RoleReference

from ..errors import ConfigurationError, RemoteLookupError
from .base import WorkflowState, WorkflowStep


class VerifyRolesStep(WorkflowStep):
    """
    Pre-existing role names are checked with IAM GetRole; role definitions
    are added to the template. Each role is resolved once per run.
    """

    state = WorkflowState.VERIFY_ROLES

    def execute(self) -> WorkflowState | None:
        ctx = self.context
        self.logger.info("Verifying IAM Lambda execution roles")
        self._validate()

        ctx.role_map = {}
        iam: Any = None
        for function in ctx.lambda_functions:
            if function.role_name:
                if function.role_name in ctx.role_map:
                    continue
                if iam is None:
                    iam = create_client(ctx.session, "iam")
                self.logger.debug(f"Checking IAM RoleName: {function.role_name}")
                try:
                    response = iam.get_role(RoleName=function.role_name)
                except (ClientError, BotoCoreError) as e:
                    self.logger.error(f"IAM role lookup failed for {function.role_name}: {e}")
                    raise RemoteLookupError(
                        f"Failed to verify IAM role {function.role_name}: {e}"
                    ) from e
                ctx.role_map[function.role_name] = RoleReference.existing(response["Role"]["Arn"])
            else:
                definition = function.role_definition
                logical_name = definition.logical_name()
                if logical_name in ctx.role_map:
                    continue
                ctx.template.add_resource(
                    logical_name, definition.to_resource(function.event_source_mappings)
                )
                ctx.role_map[logical_name] = RoleReference.created(logical_name)

        self.logger.info(f"IAM roles verified (count={len(ctx.role_map)})")
        return WorkflowState.BUILD_PACKAGE

    def _validate(self) -> None:
        """Reject conflicting role declarations before touching the template."""
        for function in self.context.lambda_functions:
            if function.role_name and function.role_definition is not None:
                raise ConfigurationError(
                    f"Both RoleName and RoleDefinition defined for lambda: {function.name}"
                )
            if not function.role_name and function.role_definition is None:
                raise ConfigurationError(
                    f"Neither RoleName nor RoleDefinition defined for lambda: {function.name}"
                )
