"""Pydantic models for the application manifest.

This module defines the Pydantic models for validating compose-style
manifest data loaded from YAML. Only the parts of a service that matter
for building images are modeled; other keys are accepted and kept.
"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stackbuild.builds.cache_key import compute_build_hash, create_build_inputs

SERVICE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.\-]*$")


class ManifestError(Exception):
    """Raised when a manifest cannot be loaded or resolved."""

    def __init__(self, message: str, code: str = "manifest_error") -> None:
        super().__init__(message)
        self.code = code


def _scalar_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_key_values(value: Any) -> Any:
    """Normalize compose KEY=VALUE lists and scalar values to a str mapping."""
    if value is None:
        return {}
    if isinstance(value, list):
        parsed: dict[str, str] = {}
        for item in value:
            key, _, val = str(item).partition("=")
            parsed[key] = val
        return parsed
    if isinstance(value, dict):
        return {str(k): _scalar_str(v) for k, v in value.items()}
    return value


class BuildSpec(BaseModel):
    """Schema for a service's local build.

    Attributes:
        context: Build context directory, relative to the application dir.
        dockerfile: Dockerfile path relative to the context.
        args: Explicit build args.
    """

    model_config = ConfigDict(extra="ignore")

    context: str = Field(default=".", description="Build context directory")
    dockerfile: str | None = Field(
        default=None, description="Dockerfile relative to the context"
    )
    args: dict[str, str] = Field(default_factory=dict, description="Build args")

    @field_validator("context", mode="before")
    @classmethod
    def default_context(cls, v: Any) -> Any:
        """Treat an empty context as the application directory."""
        return v or "."

    @field_validator("args", mode="before")
    @classmethod
    def parse_args(cls, v: Any) -> Any:
        """Accept mapping and list forms of build args."""
        return _parse_key_values(v)


class ServiceSchema(BaseModel):
    """Schema for one service of a manifest.

    A service with an image is pulled; any other service is built from its
    build spec (which defaults to the application directory).

    Attributes:
        name: Service name (the key in the manifest's services mapping).
        image: External image reference.
        build: Local build spec.
        dockerfile: Service-level Dockerfile override.
        depends_on: Services that must be handled first.
        links: Linked services (``name`` or ``name:alias``).
        environment: Runtime environment; not used for building.
    """

    model_config = ConfigDict(extra="allow")

    name: str = Field(description="Service name")
    image: str | None = Field(default=None, description="External image")
    build: BuildSpec = Field(default_factory=BuildSpec)
    dockerfile: str | None = Field(default=None)
    depends_on: list[str] = Field(default_factory=list)
    links: list[str] = Field(default_factory=list)
    environment: dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate service name format."""
        if not SERVICE_NAME_PATTERN.match(v):
            raise ValueError(
                f"service name must match {SERVICE_NAME_PATTERN.pattern}, got '{v}'"
            )
        return v

    @field_validator("build", mode="before")
    @classmethod
    def parse_build(cls, v: Any) -> Any:
        """Accept the ``build: <context>`` shorthand."""
        if v is None:
            return {}
        if isinstance(v, str):
            return {"context": v}
        return v

    @field_validator("depends_on", mode="before")
    @classmethod
    def parse_depends_on(cls, v: Any) -> Any:
        """Accept the long (mapping) form of depends_on."""
        if v is None:
            return []
        if isinstance(v, dict):
            return list(v)
        return v

    @field_validator("links", mode="before")
    @classmethod
    def parse_links(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("environment", mode="before")
    @classmethod
    def parse_environment(cls, v: Any) -> Any:
        """Accept mapping and list forms of the environment."""
        return _parse_key_values(v)

    def tag(self, app_name: str) -> str:
        """Return the destination image tag for this service."""
        return f"{app_name}/{self.name}"

    def build_hash(self) -> str:
        """Return the content hash of this service's build inputs."""
        return compute_build_hash(create_build_inputs(self.build, self.dockerfile))

    def dependencies(self) -> list[str]:
        """Return names of services this one depends on, without duplicates."""
        names: list[str] = []
        for dep in [*self.depends_on, *(link.split(":", 1)[0] for link in self.links)]:
            if dep not in names:
                names.append(dep)
        return names


class ManifestSchema(BaseModel):
    """Schema for a compose-style application manifest.

    Attributes:
        version: Optional manifest format version.
        services: Services keyed by name.
    """

    model_config = ConfigDict(extra="ignore")

    version: str | None = Field(default=None)
    services: dict[str, ServiceSchema] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @model_validator(mode="before")
    @classmethod
    def inject_service_names(cls, data: Any) -> Any:
        """Copy each service's mapping key into its name field."""
        if not isinstance(data, dict):
            return data
        services = data.get("services")
        if services is None:
            return {**data, "services": {}}
        if not isinstance(services, dict):
            return data
        named: dict[str, Any] = {}
        for key, body in services.items():
            if body is None:
                body = {}
            if isinstance(body, dict):
                body = {**body, "name": str(key)}
            named[str(key)] = body
        return {**data, "services": named}

    def service(self, name: str) -> ServiceSchema | None:
        """Look up a service by name."""
        return self.services.get(name)


__all__ = [
    "SERVICE_NAME_PATTERN",
    "BuildSpec",
    "ManifestError",
    "ManifestSchema",
    "ServiceSchema",
]
