"""Build service module.

This module provides the high-level build API:
- build_manifest(): Main entry point - build and tag every service image
- Local builds with per-run reuse of identical builds
- Build cache restore and write-back around each build
- Pulling and tagging external images

Execution is sequential; the first fatal error aborts the run.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from stackbuild.builds.buildargs import (
    BuildArgsError,
    format_build_args,
    merge_build_args,
    scan_build_args,
)
from stackbuild.builds.cache_store import (
    persist_cache,
    restore_cache,
    staging_cache_path,
)
from stackbuild.builds.plan import BuildPlan, plan_builds
from stackbuild.builds.runner import (
    DEFAULT_DOCKER_BIN,
    CommandError,
    CommandRunner,
    OutputSink,
    RunnerOptions,
    SubprocessRunner,
    docker_command,
    missing_cache_filter,
)
from stackbuild.manifest.order import run_order
from stackbuild.types import ServiceOutcome

if TYPE_CHECKING:
    from stackbuild.manifest.schema import ManifestSchema, ServiceSchema

logger = logging.getLogger(__name__)

DEFAULT_DOCKERFILE = "Dockerfile"
DEFAULT_IMAGE_CACHE_PATH = "/var/cache/build"


class BuildError(Exception):
    """Raised when a build, tag, or pull fails and the run is aborted."""

    def __init__(self, message: str, code: str = "build_error") -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class BuildOptions:
    """Options for a build run.

    Attributes:
        cache: Use the layer cache and skip pulls of images present locally.
        cache_dir: Root of the persistent build cache store, or None.
        environment: Values forwarded to declared build args.
        service: Restrict the run to this service and its dependencies.
        verbose: Echo container tool commands to the sink.
        docker_bin: Container tool executable.
        image_cache_path: Build cache path inside built images.
    """

    cache: bool = True
    cache_dir: Path | None = None
    environment: Mapping[str, str] = field(default_factory=dict)
    service: str | None = None
    verbose: bool = False
    docker_bin: str = DEFAULT_DOCKER_BIN
    image_cache_path: str = DEFAULT_IMAGE_CACHE_PATH


@dataclass
class BuildReport:
    """Result of a build run.

    Attributes:
        outcomes: Service name -> terminal state, in completion order.
    """

    outcomes: dict[str, ServiceOutcome] = field(default_factory=dict)

    def count(self, outcome: ServiceOutcome) -> int:
        """Return how many services ended in the given state."""
        return sum(1 for o in self.outcomes.values() if o is outcome)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "outcomes": {name: o.value for name, o in self.outcomes.items()},
            "built": self.count(ServiceOutcome.BUILT),
            "tagged": self.count(ServiceOutcome.TAGGED),
            "pulled": self.count(ServiceOutcome.PULLED),
        }


def resolve_build_paths(service: ServiceSchema, base_dir: Path) -> tuple[Path, Path]:
    """Resolve the build context and Dockerfile of a service.

    Args:
        service: Service to build.
        base_dir: Application directory.

    Returns:
        Tuple of (context_dir, dockerfile).
    """
    context = base_dir / service.build.context
    dockerfile = service.build.dockerfile or service.dockerfile or DEFAULT_DOCKERFILE
    return context, context / dockerfile


def compose_build_command(
    tag: str,
    context: Path,
    dockerfile: Path,
    build_args: Mapping[str, str],
    cache: bool = True,
    docker_bin: str = DEFAULT_DOCKER_BIN,
) -> list[str]:
    """Compose the container tool build command.

    Args:
        tag: Destination image tag.
        context: Build context directory.
        dockerfile: Dockerfile path.
        build_args: Build args, serialized sorted by name.
        cache: Whether the layer cache may be used.
        docker_bin: Container tool executable.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    args = ["build"]
    if not cache:
        args.append("--no-cache")
    args.extend(format_build_args(build_args))
    args.extend(["-f", str(dockerfile)])
    args.extend(["-t", tag])
    args.append(str(context))
    return docker_command(*args, binary=docker_bin)


def _tag_image(
    runner: CommandRunner,
    sink: OutputSink,
    source: str,
    dest: str,
    options: BuildOptions,
) -> None:
    try:
        runner.run(
            sink,
            docker_command("tag", source, dest, binary=options.docker_bin),
            RunnerOptions(verbose=options.verbose),
        )
    except CommandError as e:
        raise BuildError(f"build error: {e}", code="tag_failed") from e


def build_service(
    service: ServiceSchema,
    base_dir: Path,
    app_name: str,
    sink: OutputSink,
    options: BuildOptions,
    runner: CommandRunner,
) -> None:
    """Build one service image, restoring and persisting its build cache.

    Args:
        service: Service to build.
        base_dir: Application directory.
        app_name: Application name used for the destination tag.
        sink: Receives build output.
        options: Build run options.
        runner: Command runner.

    Raises:
        BuildError: If the Dockerfile cannot be scanned or the build fails.
    """
    build_hash = service.build_hash()
    tag = service.tag(app_name)
    context, dockerfile = resolve_build_paths(service, base_dir)

    if options.cache_dir is not None:
        restore_cache(
            options.cache_dir, build_hash, staging_cache_path(base_dir), sink
        )

    try:
        declared = scan_build_args(dockerfile)
    except BuildArgsError as e:
        raise BuildError(f"build error: {e}", code=e.code) from e

    build_args = merge_build_args(service.build.args, declared, options.environment)
    command = compose_build_command(
        tag,
        context,
        dockerfile,
        build_args,
        cache=options.cache,
        docker_bin=options.docker_bin,
    )

    run_options = RunnerOptions(
        verbose=options.verbose,
        line_filters=[missing_cache_filter(options.image_cache_path)],
    )

    logger.info("Building %s from %s", tag, context)
    try:
        runner.run(sink, command, run_options)
    except CommandError as e:
        raise BuildError(f"build error: {e}", code="build_failed") from e

    if options.cache_dir is not None:
        persist_cache(
            runner,
            sink,
            tag,
            build_hash,
            options.cache_dir,
            options.image_cache_path,
            options=run_options,
            docker_bin=options.docker_bin,
        )


def build_services(
    plan: BuildPlan,
    base_dir: Path,
    app_name: str,
    sink: OutputSink,
    options: BuildOptions,
    runner: CommandRunner,
    report: BuildReport,
) -> None:
    """Build every service in the plan, reusing identical builds.

    The first service with a given content hash is built; later services
    with the same hash are tagged from its image instead.

    Raises:
        BuildError: On the first fatal failure.
    """
    built: dict[str, str] = {}

    for service in plan.builds:
        build_hash = service.build_hash()
        tag = service.tag(app_name)

        if build_hash in built:
            logger.info("Reusing %s for %s", built[build_hash], tag)
            _tag_image(runner, sink, built[build_hash], tag, options)
            report.outcomes[service.name] = ServiceOutcome.TAGGED
            continue

        build_service(service, base_dir, app_name, sink, options, runner)
        built[build_hash] = tag
        report.outcomes[service.name] = ServiceOutcome.BUILT


def image_exists(runner: CommandRunner, image: str, options: BuildOptions) -> bool:
    """Check whether an image is present locally.

    Raises:
        BuildError: If the query fails.
    """
    try:
        output = runner.combined_output(
            docker_command("images", "-q", image, binary=options.docker_bin)
        )
    except CommandError as e:
        raise BuildError(f"build error: {e}", code="image_query_failed") from e
    return bool(output.strip())


def pull_images(
    plan: BuildPlan,
    sink: OutputSink,
    options: BuildOptions,
    runner: CommandRunner,
    report: BuildReport,
) -> None:
    """Pull each external image once and tag it for every service using it.

    A pull is skipped only when the cache is enabled and the image is
    already present locally.

    Raises:
        BuildError: If an image query, pull, or tag fails.
    """
    for image in plan.pull_images():
        exists = image_exists(runner, image, options)

        if not options.cache or not exists:
            logger.info("Pulling %s", image)
            try:
                runner.run(
                    sink,
                    docker_command("pull", image, binary=options.docker_bin),
                    RunnerOptions(verbose=options.verbose),
                )
            except CommandError as e:
                raise BuildError(f"build error: {e}", code="pull_failed") from e
        else:
            logger.info("Using local image %s", image)

        for tag in plan.pulls[image]:
            _tag_image(runner, sink, image, tag, options)

        for name in plan.pull_services.get(image, []):
            report.outcomes[name] = ServiceOutcome.PULLED


def build_manifest(
    manifest: ManifestSchema,
    base_dir: Path,
    app_name: str,
    sink: OutputSink,
    options: BuildOptions | None = None,
    runner: CommandRunner | None = None,
) -> BuildReport:
    """Build, pull, and tag images for every service of a manifest.

    This is the main entry point for building an application.

    Args:
        manifest: Validated manifest.
        base_dir: Application directory; build contexts are relative to it.
        app_name: Application name used for destination tags.
        sink: Receives command output and non-fatal cache errors.
        options: Build run options.
        runner: Command runner (defaults to SubprocessRunner).

    Returns:
        BuildReport with the terminal state of every service.

    Raises:
        ManifestError: If the run order cannot be resolved.
        BuildError: On the first fatal build, pull, or tag failure.
    """
    options = options or BuildOptions()
    runner = runner or SubprocessRunner()

    services = run_order(manifest, options.service)
    plan = plan_builds(services, app_name)
    logger.info(
        "Build plan for %s: %d build(s), %d image(s) to pull",
        app_name,
        len(plan.builds),
        len(plan.pulls),
    )

    report = BuildReport()
    build_services(plan, base_dir, app_name, sink, options, runner, report)
    pull_images(plan, sink, options, runner, report)
    return report


__all__ = [
    "DEFAULT_DOCKERFILE",
    "DEFAULT_IMAGE_CACHE_PATH",
    "BuildError",
    "BuildOptions",
    "BuildReport",
    "build_manifest",
    "build_service",
    "build_services",
    "compose_build_command",
    "image_exists",
    "pull_images",
    "resolve_build_paths",
]
