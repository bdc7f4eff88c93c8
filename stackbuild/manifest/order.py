"""Service run order resolution.

Services are ordered so every service comes after the services it depends
on. Independent services are visited in name order so the result is
deterministic.
"""

from __future__ import annotations

import logging

from stackbuild.manifest.schema import ManifestError, ManifestSchema, ServiceSchema

logger = logging.getLogger(__name__)


def run_order(
    manifest: ManifestSchema,
    target: str | None = None,
) -> list[ServiceSchema]:
    """Return manifest services in dependency order.

    Args:
        manifest: Validated manifest.
        target: Optional service name; restricts the result to that
            service and its transitive dependencies.

    Returns:
        Services, dependencies first.

    Raises:
        ManifestError: If a dependency or the target is unknown, or the
            dependency graph has a cycle.
    """
    ordered: list[ServiceSchema] = []
    done: set[str] = set()
    visiting: list[str] = []

    def visit(name: str, required_by: str | None) -> None:
        if name in done:
            return
        if name in visiting:
            cycle = " -> ".join([*visiting[visiting.index(name) :], name])
            raise ManifestError(
                f"dependency cycle: {cycle}", code="dependency_cycle"
            )
        service = manifest.service(name)
        if service is None:
            raise ManifestError(
                f"service {required_by} depends on unknown service: {name}",
                code="unknown_dependency",
            )

        visiting.append(name)
        for dep in service.dependencies():
            visit(dep, name)
        visiting.pop()

        done.add(name)
        ordered.append(service)

    if target is not None:
        if manifest.service(target) is None:
            raise ManifestError(f"no such service: {target}", code="unknown_service")
        visit(target, None)
    else:
        for name in sorted(manifest.services):
            visit(name, None)

    logger.debug("Run order: %s", [s.name for s in ordered])
    return ordered


__all__ = ["run_order"]
