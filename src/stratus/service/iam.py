"""
IAM role descriptors.

A Lambda function either names a pre-existing role (verified to exist at
provisioning time) or carries an IAMRoleDefinition that is added to the
template as a new AWS::IAM::Role.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stratus.naming import resource_name
from stratus.template import Resource, get_att

if TYPE_CHECKING:
    from .lambda_function import EventSourceMapping


ASSUME_ROLE_POLICY_DOCUMENT: dict[str, Any] = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": ["lambda.amazonaws.com"]},
            "Action": ["sts:AssumeRole"],
        }
    ],
}

# Every function role may write its own CloudWatch logs.
CLOUDWATCH_LOGS_ACTIONS = [
    "logs:CreateLogGroup",
    "logs:CreateLogStream",
    "logs:PutLogEvents",
]

KINESIS_STREAM_ACTIONS = [
    "kinesis:GetRecords",
    "kinesis:GetShardIterator",
    "kinesis:DescribeStream",
    "kinesis:ListStreams",
]

DYNAMODB_STREAM_ACTIONS = [
    "dynamodb:DescribeStream",
    "dynamodb:GetRecords",
    "dynamodb:GetShardIterator",
    "dynamodb:ListStreams",
]


@dataclass
class IAMPrivilege:
    """An Allow statement granted to a role."""

    actions: list[str]
    resource: Any = "*"

    def to_statement(self) -> dict[str, Any]:
        return {"Effect": "Allow", "Action": list(self.actions), "Resource": self.resource}


@dataclass
class IAMRoleDefinition:
    """A role to be created as part of the stack."""

    privileges: list[IAMPrivilege] = field(default_factory=list)

    def logical_name(self) -> str:
        """Logical id derived from the privilege set.

        Two definitions granting the same privileges share one role.
        """
        statements = json.dumps([p.to_statement() for p in self.privileges], sort_keys=True)
        return resource_name("IAMRole", statements)

    def to_resource(
        self, event_source_mappings: list[EventSourceMapping] | None = None
    ) -> Resource:
        """Build the AWS::IAM::Role resource.

        Stream-based event sources need read access to the stream, so the
        matching privileges are added for each mapping.
        """
        statements = [
            IAMPrivilege(CLOUDWATCH_LOGS_ACTIONS, "arn:aws:logs:*:*:*").to_statement()
        ]
        statements.extend(p.to_statement() for p in self.privileges)

        for mapping in event_source_mappings or []:
            actions = stream_actions_for(mapping.event_source_arn)
            if actions:
                statements.append(IAMPrivilege(actions, mapping.event_source_arn).to_statement())

        return Resource(
            type="AWS::IAM::Role",
            properties={
                "AssumeRolePolicyDocument": ASSUME_ROLE_POLICY_DOCUMENT,
                "Policies": [
                    {
                        "PolicyName": self.logical_name() + "Policy",
                        "PolicyDocument": {"Version": "2012-10-17", "Statement": statements},
                    }
                ],
            },
        )


def stream_actions_for(event_source_arn: Any) -> list[str]:
    """Privileges needed to poll a stream event source, if it is one."""
    if not isinstance(event_source_arn, str):
        return []
    if event_source_arn.startswith("arn:aws:kinesis:"):
        return KINESIS_STREAM_ACTIONS
    if event_source_arn.startswith("arn:aws:dynamodb:"):
        return DYNAMODB_STREAM_ACTIONS
    return []


@dataclass(frozen=True)
class RoleReference:
    """Resolved execution role for a function.

    Either the literal ARN of a pre-existing role or a symbolic reference to
    a role resource that will be created with the stack.
    """

    arn: str | None = None
    logical_id: str | None = None

    @classmethod
    def existing(cls, arn: str) -> RoleReference:
        return cls(arn=arn)

    @classmethod
    def created(cls, logical_id: str) -> RoleReference:
        return cls(logical_id=logical_id)

    @property
    def is_existing(self) -> bool:
        return self.arn is not None

    def to_template_value(self) -> Any:
        """Value for a resource's Role property."""
        if self.arn is not None:
            return self.arn
        return get_att(self.logical_id or "", "Arn")
