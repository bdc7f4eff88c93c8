"""Application manifest module.

This module handles:
- Manifest schema validation (services, build specs)
- Loading manifests from YAML
- Service run order resolution
"""

from stackbuild.manifest.schema import (
    BuildSpec,
    ManifestError,
    ManifestSchema,
    ServiceSchema,
)

__all__ = ["BuildSpec", "ManifestError", "ManifestSchema", "ServiceSchema"]
