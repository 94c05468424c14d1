"""
Stratus - serverless deployment orchestration.

Compiles a service, packages it with a generated Node.js shim, uploads the
artifacts to S3 and converges a CloudFormation stack describing the
service's Lambda functions, API Gateway routes and static site.

Usage:
    from stratus import provision
    from stratus.service import LambdaFunction

    provision(
        noop=True,
        service_name="demo",
        service_description="Demo service",
        lambda_functions=[LambdaFunction(name="hello", role_name="lambda-exec")],
        s3_bucket="my-artifacts",
    )
"""

from __future__ import annotations

from ._version import STRATUS_HOME, __version__
from .provision import ProvisionResult, provision
from .provision.errors import ProvisionError

__all__ = [
    "STRATUS_HOME",
    "ProvisionError",
    "ProvisionResult",
    "__version__",
    "provision",
]
