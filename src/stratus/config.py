"""
Service configuration models for Stratus.

A service is described by a stratus.toml file:

    [service]
    name = "demo"
    description = "Demo service"
    bucket = "my-artifacts"

    [build]
    command = ["go", "build", "-o", "{output}", "-tags", "{tags}", "."]

    [[functions]]
    name = "hello"
    memory_size = 256

    [functions.role]
    privileges = [{ actions = ["s3:GetObject"], resource = "*" }]

    [api]
    name = "demo-api"
    stage_name = "v1"
    routes = [{ path = "/hello", function = "hello", methods = ["GET"] }]

    [site]
    path = "site"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from stratus.provision.errors import ConfigurationError
from stratus.provision.package import BuildConfig
from stratus.service import (
    API,
    EventSourceMapping,
    IAMPrivilege,
    IAMRoleDefinition,
    LambdaFunction,
    LambdaOptions,
    S3Site,
)
from stratus.service.lambda_function import DEFAULT_RUNTIME

DEFAULT_CONFIG_FILE = "stratus.toml"


# =============================================================================
# Sub-configuration Models
# =============================================================================


class PrivilegeConfig(BaseModel):
    """One Allow statement of a role definition."""

    actions: list[str]
    resource: Any = "*"


class RoleConfig(BaseModel):
    """A role created with the stack."""

    privileges: list[PrivilegeConfig] = Field(default_factory=list)


class EventSourceConfig(BaseModel):
    """Stream or queue that invokes a function."""

    arn: Any
    starting_position: str = "TRIM_HORIZON"
    batch_size: int = Field(default=100, ge=1, le=10000)
    enabled: bool = True


class FunctionConfig(BaseModel):
    """A Lambda function of the service."""

    name: str
    description: str = ""
    role_name: str = ""
    role: RoleConfig | None = None
    memory_size: int = Field(default=128, ge=128, le=10240)
    timeout: int = Field(default=3, ge=1, le=900)
    runtime: str = DEFAULT_RUNTIME
    depends_on: list[str] = Field(default_factory=list)
    environment: dict[str, str] = Field(default_factory=dict)
    event_sources: list[EventSourceConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_role(self) -> FunctionConfig:
        if self.role_name and self.role is not None:
            raise ValueError(f"function {self.name}: set either role_name or [role], not both")
        if not self.role_name and self.role is None:
            raise ValueError(f"function {self.name}: one of role_name or [role] is required")
        return self

    def to_descriptor(self) -> LambdaFunction:
        definition = None
        if self.role is not None:
            definition = IAMRoleDefinition(
                privileges=[
                    IAMPrivilege(actions=list(p.actions), resource=p.resource)
                    for p in self.role.privileges
                ]
            )
        return LambdaFunction(
            name=self.name,
            description=self.description,
            role_name=self.role_name,
            role_definition=definition,
            options=LambdaOptions(
                memory_size=self.memory_size, timeout=self.timeout, runtime=self.runtime
            ),
            depends_on=list(self.depends_on),
            event_source_mappings=[
                EventSourceMapping(
                    event_source_arn=source.arn,
                    starting_position=source.starting_position,
                    batch_size=source.batch_size,
                    enabled=source.enabled,
                )
                for source in self.event_sources
            ],
            environment=dict(self.environment),
        )


class RouteConfig(BaseModel):
    """An API path served by a named function."""

    path: str
    function: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])


class APIConfig(BaseModel):
    """API Gateway configuration."""

    name: str
    description: str = ""
    stage_name: str = ""
    routes: list[RouteConfig] = Field(default_factory=list)


class SiteConfig(BaseModel):
    """S3 static site configuration."""

    path: str
    bucket_name: str = ""
    index_document: str = "index.html"
    error_document: str = "error.html"


class ServiceSection(BaseModel):
    """The [service] table."""

    name: str
    description: str = ""
    bucket: str = ""


# =============================================================================
# Main Configuration Model
# =============================================================================


@dataclass
class ServiceDescriptors:
    """Descriptors handed to provision()."""

    functions: list[LambdaFunction]
    api: API | None = None
    site: S3Site | None = None


class ServiceConfig(BaseModel):
    """Complete service configuration."""

    service: ServiceSection
    build: BuildConfig = Field(default_factory=BuildConfig)
    functions: list[FunctionConfig] = Field(default_factory=list)
    api: APIConfig | None = None
    site: SiteConfig | None = None

    def to_descriptors(self, base_dir: Path | None = None) -> ServiceDescriptors:
        """
        Build the service descriptors.

        Args:
            base_dir: Directory that relative site paths are resolved against

        Raises:
            ConfigurationError: if an API route names an unknown function
        """
        functions = [function.to_descriptor() for function in self.functions]
        by_name = {function.name: function for function in functions}

        api = None
        if self.api is not None:
            api = API(
                name=self.api.name,
                description=self.api.description,
                stage_name=self.api.stage_name,
            )
            for route in self.api.routes:
                function = by_name.get(route.function)
                if function is None:
                    raise ConfigurationError(
                        f"API route {route.path} references unknown function: {route.function}"
                    )
                api.add_resource(route.path, function, *route.methods)

        site = None
        if self.site is not None:
            site_path = Path(self.site.path)
            if base_dir is not None and not site_path.is_absolute():
                site_path = base_dir / site_path
            site = S3Site(
                resources=site_path,
                bucket_name=self.site.bucket_name,
                index_document=self.site.index_document,
                error_document=self.site.error_document,
            )

        return ServiceDescriptors(functions=functions, api=api, site=site)


# =============================================================================
# Configuration Loading
# =============================================================================


def load_service_config(toml_path: Path) -> ServiceConfig:
    """
    Load service configuration from stratus.toml.

    Relative build directories are resolved against the file's directory.

    Raises:
        ConfigurationError: if the file is missing, unparsable or invalid
    """
    toml_path = Path(toml_path)
    if not toml_path.exists():
        raise ConfigurationError(f"Configuration file not found: {toml_path}")

    try:
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Failed to read {toml_path}: {e}") from e

    try:
        config = ServiceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {toml_path}: {e}") from e

    working_dir = Path(config.build.working_dir)
    if not working_dir.is_absolute():
        config.build.working_dir = str(toml_path.parent / working_dir)
    return config
