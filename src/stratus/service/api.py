"""
API Gateway descriptor.

Routes HTTP paths to service functions through an API Gateway REST API
using Lambda proxy integration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stratus.naming import resource_name
from stratus.template import Output, Resource, Template, get_att, join, ref

if TYPE_CHECKING:
    from .iam import RoleReference
    from .lambda_function import LambdaFunction

logger = logging.getLogger(__name__)

OUTPUT_API_GATEWAY_URL = "APIGatewayURL"


@dataclass
class APIResource:
    """A path served by one function."""

    path: str
    function: LambdaFunction
    methods: list[str] = field(default_factory=lambda: ["GET"])

    @property
    def segments(self) -> list[str]:
        return [segment for segment in self.path.split("/") if segment]


@dataclass
class API:
    """An API Gateway REST API fronting the service."""

    name: str
    description: str = ""
    stage_name: str = ""
    resources: list[APIResource] = field(default_factory=list)

    @property
    def logical_name(self) -> str:
        return resource_name("APIGateway", self.name)

    def add_resource(self, path: str, function: LambdaFunction, *methods: str) -> APIResource:
        """Route ``path`` to ``function`` for the given HTTP methods (GET by default)."""
        api_resource = APIResource(
            path=path,
            function=function,
            methods=[m.upper() for m in methods] or ["GET"],
        )
        self.resources.append(api_resource)
        return api_resource

    def export(
        self,
        s3_bucket: str,
        s3_key: str,
        role_map: dict[str, RoleReference],
        template: Template,
        log: logging.Logger | None = None,
    ) -> None:
        """Add the REST API, its resources, methods and permissions to the template."""
        log = log or logger
        api_id = self.logical_name
        template.add_resource(
            api_id,
            Resource(
                type="AWS::ApiGateway::RestApi",
                properties={"Name": self.name, "Description": self.description or self.name},
            ),
        )

        method_ids: list[str] = []
        permitted: set[str] = set()
        for api_resource in self.resources:
            parent_id = self._export_path(api_resource, template)
            function_id = api_resource.function.logical_name

            for method in api_resource.methods:
                method_id = resource_name("APIMethod", api_id, api_resource.path, method)
                template.add_resource(
                    method_id,
                    Resource(
                        type="AWS::ApiGateway::Method",
                        properties={
                            "RestApiId": ref(api_id),
                            "ResourceId": parent_id,
                            "HttpMethod": method,
                            "AuthorizationType": "NONE",
                            "Integration": {
                                "Type": "AWS_PROXY",
                                "IntegrationHttpMethod": "POST",
                                "Uri": _invocation_uri(function_id),
                            },
                        },
                    ),
                )
                method_ids.append(method_id)

            if function_id not in permitted:
                permitted.add(function_id)
                template.add_resource(
                    resource_name("APIPermission", api_id, function_id),
                    Resource(
                        type="AWS::Lambda::Permission",
                        properties={
                            "Action": "lambda:InvokeFunction",
                            "FunctionName": get_att(function_id, "Arn"),
                            "Principal": "apigateway.amazonaws.com",
                            "SourceArn": join(
                                "",
                                [
                                    "arn:aws:execute-api:",
                                    ref("AWS::Region"),
                                    ":",
                                    ref("AWS::AccountId"),
                                    ":",
                                    ref(api_id),
                                    "/*",
                                ],
                            ),
                        },
                    ),
                )

        if self.stage_name:
            template.add_resource(
                resource_name("APIDeployment", api_id, self.stage_name),
                Resource(
                    type="AWS::ApiGateway::Deployment",
                    properties={"RestApiId": ref(api_id), "StageName": self.stage_name},
                    depends_on=method_ids,
                ),
            )
            template.outputs[OUTPUT_API_GATEWAY_URL] = Output(
                description="API Gateway URL",
                value=join(
                    "",
                    [
                        "https://",
                        ref(api_id),
                        ".execute-api.",
                        ref("AWS::Region"),
                        ".amazonaws.com/",
                        self.stage_name,
                    ],
                ),
            )
        else:
            log.info(f"API {self.name} has no stage name; skipping deployment")

        log.debug(f"Exported API {self.name} with {len(method_ids)} methods")

    def _export_path(self, api_resource: APIResource, template: Template) -> Any:
        """Add one AWS::ApiGateway::Resource per path segment; return the leaf id."""
        api_id = self.logical_name
        parent: Any = get_att(api_id, "RootResourceId")
        cumulative = ""
        for segment in api_resource.segments:
            cumulative = f"{cumulative}/{segment}"
            segment_id = resource_name("APIResource", api_id, cumulative)
            if segment_id not in template.resources:
                template.add_resource(
                    segment_id,
                    Resource(
                        type="AWS::ApiGateway::Resource",
                        properties={
                            "RestApiId": ref(api_id),
                            "ParentId": parent,
                            "PathPart": segment,
                        },
                    ),
                )
            parent = ref(segment_id)
        return parent


def _invocation_uri(function_id: str) -> dict[str, Any]:
    return join(
        "",
        [
            "arn:aws:apigateway:",
            ref("AWS::Region"),
            ":lambda:path/2015-03-31/functions/",
            get_att(function_id, "Arn"),
            "/invocations",
        ],
    )
