"""
Service descriptors.

Descriptors for the parts of a serverless service: Lambda functions and
their IAM roles, the optional API Gateway routing layer and the optional
S3 static site. Each descriptor exports itself into a CloudFormation
template.
"""

from .api import API, APIResource
from .iam import IAMPrivilege, IAMRoleDefinition, RoleReference
from .lambda_function import EventSourceMapping, LambdaFunction, LambdaOptions
from .site import S3Site

__all__ = [
    "API",
    "APIResource",
    "EventSourceMapping",
    "IAMPrivilege",
    "IAMRoleDefinition",
    "LambdaFunction",
    "LambdaOptions",
    "RoleReference",
    "S3Site",
]
