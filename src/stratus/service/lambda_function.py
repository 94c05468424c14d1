"""
Lambda function descriptor.

Each LambdaFunction is exported as an AWS::Lambda::Function whose code is
the packaged archive and whose handler is the generated Node.js forwarder
for that function.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from stratus.naming import resource_name, sanitized_name
from stratus.provision.errors import ExportError
from stratus.template import Resource, Template, ref

from .iam import IAMRoleDefinition, RoleReference

logger = logging.getLogger(__name__)

DEFAULT_RUNTIME = "nodejs20.x"


@dataclass
class LambdaOptions:
    """Runtime settings for a function."""

    memory_size: int = 128
    timeout: int = 3
    runtime: str = DEFAULT_RUNTIME


@dataclass
class EventSourceMapping:
    """A stream or queue that invokes the function."""

    event_source_arn: Any
    starting_position: str = "TRIM_HORIZON"
    batch_size: int = 100
    enabled: bool = True


@dataclass
class LambdaFunction:
    """A deployable function of the service."""

    name: str
    description: str = ""
    role_name: str = ""
    role_definition: IAMRoleDefinition | None = None
    options: LambdaOptions = field(default_factory=LambdaOptions)
    depends_on: list[str] = field(default_factory=list)
    event_source_mappings: list[EventSourceMapping] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)

    @property
    def handler_name(self) -> str:
        """Name of the export in the generated index.js."""
        return sanitized_name(self.name)

    @property
    def logical_name(self) -> str:
        return resource_name("Lambda", self.name)

    def role_key(self) -> str:
        """Key of this function's role in the resolved role map."""
        if self.role_name:
            return self.role_name
        if self.role_definition is not None:
            return self.role_definition.logical_name()
        return ""

    def export(
        self,
        service_name: str,
        s3_bucket: str,
        s3_key: str,
        role_map: dict[str, RoleReference],
        template: Template,
        log: logging.Logger | None = None,
    ) -> None:
        """
        Add the resources for this function to the template.

        Raises:
            ExportError: if the function's role was never resolved
        """
        log = log or logger
        role = role_map.get(self.role_key())
        if role is None:
            raise ExportError(f"No IAM role resolved for function: {self.name}")

        properties: dict[str, Any] = {
            "Code": {"S3Bucket": s3_bucket, "S3Key": s3_key},
            "Description": self.description or f"{service_name}: {self.name}",
            "Handler": f"index.{self.handler_name}",
            "MemorySize": self.options.memory_size,
            "Role": role.to_template_value(),
            "Runtime": self.options.runtime,
            "Timeout": self.options.timeout,
        }
        if self.environment:
            properties["Environment"] = {"Variables": dict(self.environment)}

        template.add_resource(
            self.logical_name,
            Resource(
                type="AWS::Lambda::Function",
                properties=properties,
                depends_on=list(self.depends_on),
            ),
        )
        log.debug(f"Exported function {self.name} as {self.logical_name}")

        for mapping in self.event_source_mappings:
            source = json.dumps(mapping.event_source_arn, sort_keys=True)
            mapping_id = resource_name("LambdaES", self.logical_name, source)
            template.add_resource(
                mapping_id,
                Resource(
                    type="AWS::Lambda::EventSourceMapping",
                    properties={
                        "EventSourceArn": mapping.event_source_arn,
                        "FunctionName": ref(self.logical_name),
                        "StartingPosition": mapping.starting_position,
                        "BatchSize": mapping.batch_size,
                        "Enabled": mapping.enabled,
                    },
                    depends_on=[self.logical_name],
                ),
            )
