"""
CloudFormation template model.

A deliberately small object model: the provisioning workflow only needs to
add resources, read and write outputs, merge two templates and serialize the
result to JSON.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

TEMPLATE_FORMAT_VERSION = "2010-09-09"


class TemplateMergeError(Exception):
    """Raised when two templates cannot be merged without losing data."""

    def __init__(self, message: str, conflicts: list[str] | None = None):
        self.message = message
        self.conflicts = conflicts or []
        super().__init__(message)


# =============================================================================
# Intrinsic Functions
# =============================================================================


def ref(logical_id: str) -> dict[str, Any]:
    """Return a ``Ref`` to a resource or pseudo parameter."""
    return {"Ref": logical_id}


def get_att(logical_id: str, attribute: str) -> dict[str, Any]:
    """Return an ``Fn::GetAtt`` for a resource attribute."""
    return {"Fn::GetAtt": [logical_id, attribute]}


def join(delimiter: str, values: list[Any]) -> dict[str, Any]:
    """Return an ``Fn::Join`` expression."""
    return {"Fn::Join": [delimiter, values]}


# =============================================================================
# Template Elements
# =============================================================================


@dataclass
class Resource:
    """A single template resource."""

    type: str
    properties: dict[str, Any] = field(default_factory=dict)
    depends_on: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the CloudFormation JSON shape."""
        data: dict[str, Any] = {"Type": self.type}
        if self.properties:
            data["Properties"] = self.properties
        if self.depends_on:
            data["DependsOn"] = list(self.depends_on)
        if self.metadata:
            data["Metadata"] = self.metadata
        return data


@dataclass
class Output:
    """A stack output."""

    value: Any
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to the CloudFormation JSON shape."""
        data: dict[str, Any] = {"Value": self.value}
        if self.description:
            data["Description"] = self.description
        return data


@dataclass
class Template:
    """An in-progress CloudFormation template."""

    description: str = ""
    resources: dict[str, Resource] = field(default_factory=dict)
    outputs: dict[str, Output] = field(default_factory=dict)

    def add_resource(self, logical_id: str, resource: Resource) -> Resource:
        """Add (or replace) a resource under the given logical id."""
        self.resources[logical_id] = resource
        return resource

    def resources_of_type(self, resource_type: str) -> dict[str, Resource]:
        """Return all resources with the given type tag."""
        return {
            logical_id: resource
            for logical_id, resource in self.resources.items()
            if resource.type == resource_type
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to the CloudFormation JSON document."""
        data: dict[str, Any] = {"AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION}
        if self.description:
            data["Description"] = self.description
        data["Resources"] = {
            logical_id: resource.to_dict() for logical_id, resource in self.resources.items()
        }
        if self.outputs:
            data["Outputs"] = {name: output.to_dict() for name, output in self.outputs.items()}
        return data

    def to_json(self, indent: int | None = None) -> str:
        """Serialize the template.

        Without an indent the output is canonical (sorted keys, compact
        separators) so identical templates hash identically.
        """
        if indent is None:
            return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent)


# =============================================================================
# Template Operations
# =============================================================================


def safe_merge_templates(source: Template, dest: Template) -> None:
    """
    Merge the resources and outputs of ``source`` into ``dest``.

    Identical duplicates are tolerated. A logical id or output name that
    maps to different content in the two templates is a conflict.

    Raises:
        TemplateMergeError: if any conflict was found; ``dest`` is unchanged
    """
    conflicts: list[str] = []

    for logical_id, resource in source.resources.items():
        existing = dest.resources.get(logical_id)
        if existing is not None and existing.to_dict() != resource.to_dict():
            conflicts.append(f"Duplicate resource: {logical_id}")

    for name, output in source.outputs.items():
        existing_output = dest.outputs.get(name)
        if existing_output is not None and existing_output.to_dict() != output.to_dict():
            conflicts.append(f"Duplicate output: {name}")

    if conflicts:
        raise TemplateMergeError("Failed to merge templates: " + "; ".join(conflicts), conflicts)

    dest.resources.update(source.resources)
    dest.outputs.update(source.outputs)
    logger.debug(
        f"Merged {len(source.resources)} resources and {len(source.outputs)} outputs"
    )


def safe_metadata_insert(resource: Resource, key: str, value: Any) -> bool:
    """Insert a metadata entry without replacing an existing key.

    Returns:
        True if the value was inserted
    """
    if key in resource.metadata:
        return False
    resource.metadata[key] = value
    return True


# Fn::GetAtt attributes exposed per resource type, in addition to Ref.
RESOURCE_ATTRIBUTES: dict[str, list[str]] = {
    "AWS::DynamoDB::Table": ["StreamArn"],
    "AWS::IAM::Role": ["Arn"],
    "AWS::Kinesis::Stream": ["Arn"],
    "AWS::Lambda::Function": ["Arn"],
    "AWS::S3::Bucket": ["Arn", "DomainName", "WebsiteURL"],
    "AWS::SNS::Topic": ["TopicName"],
    "AWS::SQS::Queue": ["Arn", "QueueName"],
}


def outputs_for_resource(template: Template, logical_id: str) -> dict[str, Any] | None:
    """
    Return the attribute references a dependent resource can discover.

    Args:
        template: Template holding the resource
        logical_id: Logical id of the depended-on resource

    Returns:
        Mapping of attribute name to intrinsic reference, or None when the
        resource is missing or its type exposes no known outputs
    """
    resource = template.resources.get(logical_id)
    if resource is None:
        logger.debug(f"No resource {logical_id} in template; skipping outputs")
        return None

    attributes = RESOURCE_ATTRIBUTES.get(resource.type)
    if attributes is None:
        return None

    outputs: dict[str, Any] = {"Type": resource.type, "Ref": ref(logical_id)}
    for attribute in attributes:
        outputs[attribute] = get_att(logical_id, attribute)
    return outputs
