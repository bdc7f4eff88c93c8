"""Tests for builds/cache_key.py module.

Tests build input snapshots and content hash determinism.
"""

import re

from stackbuild.builds.cache_key import (
    BUILD_HASH_SCHEMA_VERSION,
    BuildInputs,
    compute_build_hash,
    create_build_inputs,
)
from stackbuild.manifest.schema import BuildSpec, ServiceSchema


class TestCreateBuildInputs:
    """Tests for create_build_inputs function."""

    def test_defaults(self):
        """Should capture default context and no Dockerfile override."""
        inputs = create_build_inputs(BuildSpec())

        assert inputs.schema_version == BUILD_HASH_SCHEMA_VERSION
        assert inputs.context == "."
        assert inputs.dockerfile is None
        assert inputs.args == {}

    def test_service_dockerfile_fallback(self):
        """Should use the service-level Dockerfile when the build has none."""
        inputs = create_build_inputs(BuildSpec(context="web"), "Dockerfile.dev")
        assert inputs.dockerfile == "Dockerfile.dev"

    def test_build_dockerfile_wins(self):
        """Should prefer the build spec Dockerfile."""
        inputs = create_build_inputs(
            BuildSpec(dockerfile="Dockerfile.prod"), "Dockerfile.dev"
        )
        assert inputs.dockerfile == "Dockerfile.prod"


class TestComputeBuildHash:
    """Tests for compute_build_hash function."""

    def test_hex_digest(self):
        """Should return a bare SHA-256 hex digest."""
        build_hash = compute_build_hash(BuildInputs())
        assert re.fullmatch(r"[0-9a-f]{64}", build_hash)

    def test_deterministic(self):
        """Should hash identical inputs identically."""
        a = BuildInputs(context="web", args={"A": "1", "B": "2"})
        b = BuildInputs(context="web", args={"B": "2", "A": "1"})
        assert compute_build_hash(a) == compute_build_hash(b)

    def test_context_changes_hash(self):
        """Should change when the context changes."""
        a = BuildInputs(context="web")
        b = BuildInputs(context="api")
        assert compute_build_hash(a) != compute_build_hash(b)

    def test_args_change_hash(self):
        """Should change when build args change."""
        a = BuildInputs(args={"A": "1"})
        b = BuildInputs(args={"A": "2"})
        assert compute_build_hash(a) != compute_build_hash(b)


class TestServiceBuildHash:
    """Tests for ServiceSchema.build_hash."""

    def test_same_build_same_hash(self):
        """Should not depend on the service name."""
        web = ServiceSchema(name="web", build={"context": "app"})
        worker = ServiceSchema(name="worker", build="app")
        assert web.build_hash() == worker.build_hash()

    def test_different_dockerfile_different_hash(self):
        """Should depend on the Dockerfile override."""
        web = ServiceSchema(name="web", build="app")
        worker = ServiceSchema(name="worker", build="app", dockerfile="Dockerfile.w")
        assert web.build_hash() != worker.build_hash()
