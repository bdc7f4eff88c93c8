"""Content hash computation for service builds.

This module handles:
- Canonical input snapshot creation from a service build spec
- Deterministic hash computation over normalized inputs

The hash keys both the per-run build memo and the persistent cache store,
so services with identical build inputs share one build.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stackbuild.manifest.schema import BuildSpec

# Schema version for hash input format; bump when the format changes
BUILD_HASH_SCHEMA_VERSION = "1"


@dataclass
class BuildInputs:
    """Canonical representation of the inputs of a local build.

    Attributes:
        schema_version: Version of the hash input schema.
        context: Build context, relative to the application directory.
        dockerfile: Dockerfile override, or None for the default.
        args: Explicit build args.
    """

    schema_version: str = BUILD_HASH_SCHEMA_VERSION
    context: str = "."
    dockerfile: str | None = None
    args: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def create_build_inputs(
    build: BuildSpec,
    dockerfile: str | None = None,
) -> BuildInputs:
    """Create canonical build inputs from a build spec.

    Args:
        build: Service build spec.
        dockerfile: Service-level Dockerfile override, used when the build
            spec has none.

    Returns:
        BuildInputs instance.
    """
    return BuildInputs(
        context=build.context,
        dockerfile=build.dockerfile or dockerfile,
        args=dict(build.args),
    )


def compute_build_hash(inputs: BuildInputs) -> str:
    """Compute a content hash from build inputs.

    The hash is the SHA-256 hex digest of the canonical JSON form of the
    inputs. It is used bare (no algorithm prefix) since it names both a
    directory and a temporary container.

    Args:
        inputs: BuildInputs instance.

    Returns:
        Hex digest string.
    """
    canonical_json = json.dumps(
        inputs.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


__all__ = [
    "BUILD_HASH_SCHEMA_VERSION",
    "BuildInputs",
    "compute_build_hash",
    "create_build_inputs",
]
