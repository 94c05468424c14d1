"""Tests for stratus.toml loading."""

from pathlib import Path

import pytest

from stratus.config import ServiceConfig, load_service_config
from stratus.provision.errors import ConfigurationError

FULL_CONFIG = """
[service]
name = "demo"
description = "Demo service"
bucket = "my-artifacts"

[build]
command = ["make", "lambda", "OUTPUT={output}"]
timeout = 120

[[functions]]
name = "hello"
memory_size = 256
depends_on = ["EventsTable"]

[functions.role]
privileges = [{ actions = ["dynamodb:GetItem"], resource = "*" }]

[[functions.event_sources]]
arn = "arn:aws:dynamodb:us-west-2:123456789012:table/events/stream/1"

[[functions]]
name = "admin"
role_name = "existing-admin-role"

[api]
name = "demo-api"
stage_name = "v1"
routes = [
    { path = "/hello", function = "hello", methods = ["GET", "POST"] },
    { path = "/admin/users", function = "admin" },
]

[site]
path = "site"
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "stratus.toml"
    path.write_text(text)
    return path


class TestLoadServiceConfig:
    """Tests for load_service_config."""

    def test_full_config(self, tmp_path):
        config = load_service_config(_write(tmp_path, FULL_CONFIG))

        assert config.service.name == "demo"
        assert config.service.bucket == "my-artifacts"
        assert config.build.command == ["make", "lambda", "OUTPUT={output}"]
        assert config.build.timeout == 120
        assert config.build.working_dir == str(tmp_path)
        assert [f.name for f in config.functions] == ["hello", "admin"]
        assert config.api.routes[1].methods == ["GET"]
        assert config.site.path == "site"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_service_config(tmp_path / "stratus.toml")

    def test_invalid_toml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Failed to read"):
            load_service_config(_write(tmp_path, "[service\nname ="))

    def test_missing_service_table(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_service_config(_write(tmp_path, "[[functions]]\nname = 'x'\nrole_name = 'r'\n"))

    def test_conflicting_role_declarations(self, tmp_path):
        text = """
[service]
name = "demo"

[[functions]]
name = "hello"
role_name = "existing"

[functions.role]
privileges = []
"""
        with pytest.raises(ConfigurationError, match="either role_name or"):
            load_service_config(_write(tmp_path, text))


class TestToDescriptors:
    """Tests for ServiceConfig.to_descriptors."""

    def test_descriptors(self, tmp_path):
        config = load_service_config(_write(tmp_path, FULL_CONFIG))

        descriptors = config.to_descriptors(tmp_path)

        hello, admin = descriptors.functions
        assert hello.options.memory_size == 256
        assert hello.role_definition.privileges[0].actions == ["dynamodb:GetItem"]
        assert hello.event_source_mappings[0].starting_position == "TRIM_HORIZON"
        assert hello.depends_on == ["EventsTable"]
        assert admin.role_name == "existing-admin-role"
        assert admin.role_definition is None

        assert [r.path for r in descriptors.api.resources] == ["/hello", "/admin/users"]
        assert descriptors.api.resources[0].function is hello
        assert descriptors.api.resources[0].methods == ["GET", "POST"]
        assert descriptors.site.resources == tmp_path / "site"

    def test_unknown_route_function(self):
        config = ServiceConfig.model_validate(
            {
                "service": {"name": "demo"},
                "functions": [{"name": "hello", "role_name": "r"}],
                "api": {"name": "api", "routes": [{"path": "/x", "function": "missing"}]},
            }
        )

        with pytest.raises(ConfigurationError, match="unknown function: missing"):
            config.to_descriptors()

    def test_no_api_or_site(self):
        config = ServiceConfig.model_validate(
            {"service": {"name": "demo"}, "functions": [{"name": "hello", "role_name": "r"}]}
        )

        descriptors = config.to_descriptors()

        assert descriptors.api is None
        assert descriptors.site is None
