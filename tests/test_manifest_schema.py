"""Tests for manifest/schema.py module.

Tests manifest validation, compose shorthand forms, and service helpers.
"""

import pytest
from pydantic import ValidationError

from stackbuild.manifest.schema import BuildSpec, ManifestSchema, ServiceSchema


class TestBuildSpec:
    """Tests for BuildSpec model."""

    def test_defaults(self):
        """Should default to the application directory."""
        spec = BuildSpec()
        assert spec.context == "."
        assert spec.dockerfile is None
        assert spec.args == {}

    def test_empty_context(self):
        """Should treat an empty context as '.'."""
        assert BuildSpec(context="").context == "."

    def test_args_list_form(self):
        """Should parse KEY=VALUE list entries."""
        spec = BuildSpec(args=["A=1", "B", "C=x=y"])
        assert spec.args == {"A": "1", "B": "", "C": "x=y"}

    def test_args_scalar_values(self):
        """Should stringify scalar values."""
        spec = BuildSpec(args={"PORT": 8080, "EMPTY": None})
        assert spec.args == {"PORT": "8080", "EMPTY": ""}

    def test_args_boolean_values(self):
        """Should render YAML booleans in lowercase."""
        spec = BuildSpec(args={"DEBUG": True, "STRICT": False})
        assert spec.args == {"DEBUG": "true", "STRICT": "false"}


class TestServiceSchema:
    """Tests for ServiceSchema model."""

    def test_build_shorthand(self):
        """Should accept 'build: <context>'."""
        service = ServiceSchema(name="web", build="./web")
        assert service.build.context == "./web"

    def test_default_build(self):
        """Should default to a build of the application directory."""
        service = ServiceSchema(name="web")
        assert service.build.context == "."

    def test_invalid_name(self):
        """Should reject names with invalid characters."""
        with pytest.raises(ValidationError):
            ServiceSchema(name="bad name")

    def test_tag(self):
        """Should tag as <app>/<service>."""
        assert ServiceSchema(name="web").tag("myapp") == "myapp/web"

    def test_dependencies(self):
        """Should merge depends_on and links without duplicates."""
        service = ServiceSchema(
            name="web",
            depends_on=["db", "cache"],
            links=["db:database", "queue"],
        )
        assert service.dependencies() == ["db", "cache", "queue"]

    def test_depends_on_mapping(self):
        """Should accept the long form of depends_on."""
        service = ServiceSchema(
            name="web",
            depends_on={"db": {"condition": "service_healthy"}},
        )
        assert service.depends_on == ["db"]

    def test_environment_list(self):
        """Should accept list-form environment."""
        service = ServiceSchema(name="web", environment=["A=1", "B"])
        assert service.environment == {"A": "1", "B": ""}

    def test_extra_keys_allowed(self):
        """Should keep unrecognized compose keys."""
        service = ServiceSchema(name="web", ports=["80:80"])
        assert service.model_extra == {"ports": ["80:80"]}


class TestManifestSchema:
    """Tests for ManifestSchema model."""

    def test_injects_names(self):
        """Should name services after their keys."""
        manifest = ManifestSchema.model_validate(
            {"services": {"web": {"build": "."}, "db": {"image": "postgres"}}}
        )
        assert manifest.services["web"].name == "web"
        assert manifest.services["db"].name == "db"

    def test_empty_service_body(self):
        """Should accept a service without a body."""
        manifest = ManifestSchema.model_validate({"services": {"web": None}})
        assert manifest.services["web"].build.context == "."

    def test_no_services(self):
        """Should accept a manifest without services."""
        assert ManifestSchema.model_validate({}).services == {}
        assert ManifestSchema.model_validate({"services": None}).services == {}

    def test_version_coerced(self):
        """Should store numeric versions as strings."""
        manifest = ManifestSchema.model_validate({"version": 2, "services": {}})
        assert manifest.version == "2"

    def test_invalid_services_type(self):
        """Should reject a non-mapping services section."""
        with pytest.raises(ValidationError):
            ManifestSchema.model_validate({"services": ["web"]})

    def test_service_lookup(self):
        """Should look up services by name."""
        manifest = ManifestSchema.model_validate({"services": {"web": {}}})
        assert manifest.service("web") is not None
        assert manifest.service("missing") is None
