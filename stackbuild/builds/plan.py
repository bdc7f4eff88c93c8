"""Build planning.

Splits run-ordered services into images to pull and services to build,
grouping every destination tag under its normalized source image.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stackbuild.manifest.schema import ServiceSchema

DEFAULT_IMAGE_TAG = "latest"


def normalize_image(image: str) -> str:
    """Make an implicit :latest tag explicit.

    Only the final path segment is checked, so a registry port
    (``localhost:5000/redis``) is not mistaken for a tag.

    Args:
        image: Image reference.

    Returns:
        Image reference with an explicit tag.
    """
    if ":" in image.rsplit("/", 1)[-1]:
        return image
    return f"{image}:{DEFAULT_IMAGE_TAG}"


@dataclass
class BuildPlan:
    """Work for a single build run.

    Attributes:
        pulls: Normalized image reference -> destination tags, in run order.
        pull_services: Normalized image reference -> service names, in run order.
        builds: Services requiring a local build, in run order.
    """

    pulls: dict[str, list[str]] = field(default_factory=dict)
    pull_services: dict[str, list[str]] = field(default_factory=dict)
    builds: list[ServiceSchema] = field(default_factory=list)

    def pull_images(self) -> Iterator[str]:
        """Yield image references to pull, sorted."""
        yield from sorted(self.pulls)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "pulls": {image: list(self.pulls[image]) for image in self.pull_images()},
            "builds": [service.name for service in self.builds],
        }


def plan_builds(services: Iterable[ServiceSchema], app_name: str) -> BuildPlan:
    """Partition services into pulls and builds.

    Args:
        services: Services in run order.
        app_name: Application name used for destination tags.

    Returns:
        BuildPlan for the services.
    """
    plan = BuildPlan()
    for service in services:
        if service.image:
            image = normalize_image(service.image)
            plan.pulls.setdefault(image, []).append(service.tag(app_name))
            plan.pull_services.setdefault(image, []).append(service.name)
        else:
            plan.builds.append(service)
    return plan


__all__ = ["DEFAULT_IMAGE_TAG", "BuildPlan", "normalize_image", "plan_builds"]
