"""
S3 static site descriptor.

The site's local directory is archived and uploaded alongside the code
bundle. At stack creation time a custom resource, backed by the
``s3Site.js`` handler shipped inside the code bundle, unpacks the archive
into a website-enabled bucket.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from stratus.naming import resource_name
from stratus.template import Output, Resource, Template, get_att, join, ref

from .iam import ASSUME_ROLE_POLICY_DOCUMENT, CLOUDWATCH_LOGS_ACTIONS, IAMPrivilege

logger = logging.getLogger(__name__)

OUTPUT_S3_SITE_URL = "S3SiteURL"

# s3Site.js relies on the AWS SDK v3 bundled with this runtime.
SITE_HANDLER_RUNTIME = "nodejs20.x"


@dataclass
class S3Site:
    """A static website published from a local directory."""

    resources: str | Path
    bucket_name: str = ""
    index_document: str = "index.html"
    error_document: str = "error.html"

    @property
    def logical_name(self) -> str:
        return resource_name("S3Site", str(self.resources))

    def export(
        self,
        s3_bucket: str,
        code_key: str,
        site_key: str,
        api_outputs: dict[str, Output],
        template: Template,
        log: logging.Logger | None = None,
    ) -> None:
        """
        Add the site bucket and the resources that populate it.

        Args:
            s3_bucket: Artifact bucket holding both archives
            code_key: Key of the code bundle containing the s3Site.js handler
            site_key: Key of the site archive
            api_outputs: Outputs of the API export, passed to the site as a manifest
            template: Template to add resources to
        """
        log = log or logger
        bucket_id = self.logical_name
        # ACLs are disabled on new buckets; public read comes from the bucket policy.
        bucket_properties: dict[str, Any] = {
            "OwnershipControls": {"Rules": [{"ObjectOwnership": "BucketOwnerEnforced"}]},
            "PublicAccessBlockConfiguration": {
                "BlockPublicAcls": True,
                "IgnorePublicAcls": True,
                "BlockPublicPolicy": False,
                "RestrictPublicBuckets": False,
            },
            "WebsiteConfiguration": {
                "IndexDocument": self.index_document,
                "ErrorDocument": self.error_document,
            },
        }
        if self.bucket_name:
            bucket_properties["BucketName"] = self.bucket_name
        template.add_resource(
            bucket_id, Resource(type="AWS::S3::Bucket", properties=bucket_properties)
        )

        bucket_arn = join("", ["arn:aws:s3:::", ref(bucket_id)])
        template.add_resource(
            resource_name("S3SitePolicy", bucket_id),
            Resource(
                type="AWS::S3::BucketPolicy",
                properties={
                    "Bucket": ref(bucket_id),
                    "PolicyDocument": {
                        "Version": "2012-10-17",
                        "Statement": [
                            {
                                "Effect": "Allow",
                                "Principal": "*",
                                "Action": "s3:GetObject",
                                "Resource": join("", [bucket_arn, "/*"]),
                            }
                        ],
                    },
                },
            ),
        )

        role_id = resource_name("S3SiteIAMRole", bucket_id)
        statements = [
            IAMPrivilege(CLOUDWATCH_LOGS_ACTIONS, "arn:aws:logs:*:*:*").to_statement(),
            IAMPrivilege(["s3:ListBucket"], bucket_arn).to_statement(),
            IAMPrivilege(
                ["s3:PutObject", "s3:DeleteObject"], join("", [bucket_arn, "/*"])
            ).to_statement(),
            IAMPrivilege(["s3:GetObject"], f"arn:aws:s3:::{s3_bucket}/{site_key}").to_statement(),
        ]
        template.add_resource(
            role_id,
            Resource(
                type="AWS::IAM::Role",
                properties={
                    "AssumeRolePolicyDocument": ASSUME_ROLE_POLICY_DOCUMENT,
                    "Policies": [
                        {
                            "PolicyName": role_id + "Policy",
                            "PolicyDocument": {"Version": "2012-10-17", "Statement": statements},
                        }
                    ],
                },
            ),
        )

        handler_id = resource_name("S3SiteHandler", bucket_id)
        template.add_resource(
            handler_id,
            Resource(
                type="AWS::Lambda::Function",
                properties={
                    "Code": {"S3Bucket": s3_bucket, "S3Key": code_key},
                    "Description": "Populates the S3 site bucket",
                    "Handler": "s3Site.handler",
                    "MemorySize": 256,
                    "Role": get_att(role_id, "Arn"),
                    "Runtime": SITE_HANDLER_RUNTIME,
                    "Timeout": 300,
                },
                depends_on=[role_id],
            ),
        )

        template.add_resource(
            resource_name("S3SiteContents", bucket_id),
            Resource(
                type="AWS::CloudFormation::CustomResource",
                properties={
                    "ServiceToken": get_att(handler_id, "Arn"),
                    "TargetBucket": ref(bucket_id),
                    "SourceBucket": s3_bucket,
                    "SourceKey": site_key,
                    "APIGateway": {name: output.value for name, output in api_outputs.items()},
                },
                depends_on=[bucket_id],
            ),
        )

        template.outputs[OUTPUT_S3_SITE_URL] = Output(
            description="S3 Website URL",
            value=get_att(bucket_id, "WebsiteURL"),
        )
        log.debug(f"Exported S3 site from {self.resources} as {bucket_id}")
