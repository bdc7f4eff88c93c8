"""Thin CLI wrapper for stackbuild.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import dotenv_values
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from stackbuild import __version__
from stackbuild.config import get_settings, print_settings_json

if TYPE_CHECKING:
    from stackbuild.manifest.schema import ManifestSchema

app = typer.Typer(
    name="stackbuild",
    help="stackbuild - build and tag container images for a multi-service manifest",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"stackbuild version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def parse_env_pairs(pairs: list[str] | None) -> dict[str, str]:
    """Parse KEY=VALUE strings into a mapping.

    Args:
        pairs: Strings of the form KEY=VALUE.

    Returns:
        Mapping of keys to values.

    Raises:
        typer.BadParameter: If an entry has no '=' or an empty key.
    """
    env: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got '{pair}'")
        env[key] = value
    return env


def load_environment(
    env_file: Path | None,
    pairs: list[str] | None,
) -> dict[str, str]:
    """Combine an env file with --env entries (entries win)."""
    env: dict[str, str] = {}
    if env_file is not None:
        if not env_file.is_file():
            raise typer.BadParameter(f"env file not found: {env_file}")
        env.update(
            {k: v for k, v in dotenv_values(env_file).items() if v is not None}
        )
    env.update(parse_env_pairs(pairs))
    return env


def _load(
    directory: Path, manifest_file: str | None, json_output: bool = False
) -> "ManifestSchema":
    """Load the manifest of an application directory or exit."""
    from stackbuild.manifest.io import load_manifest
    from stackbuild.manifest.schema import ManifestError

    settings = get_settings()
    path = directory / (manifest_file or settings.manifest_file)
    try:
        return load_manifest(path)
    except ManifestError as e:
        if json_output:
            typer.echo(json.dumps({"code": e.code, "message": str(e)}, indent=2))
        else:
            err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """stackbuild - build and tag container images for a multi-service manifest."""
    configure_logging(get_settings().log_level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
    else:
        cache_dir_display = (
            str(settings.cache_dir) if settings.cache_dir else "(disabled)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Cache directory:     {cache_dir_display}")
        console.print(f"  Manifest file:       {settings.manifest_file}")
        console.print()
        console.print("[bold]Container tool:[/bold]")
        console.print(f"  Executable:          {settings.docker_bin}")
        console.print(f"  Image cache path:    {settings.image_cache_path}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Verbose:             {settings.verbose}")
        console.print(f"  Log level:           {settings.log_level}")


@app.command("plan")
def plan_cmd(
    app_name: Annotated[
        str,
        typer.Option("--app", "-a", help="Application name"),
    ],
    directory: Annotated[
        Path,
        typer.Argument(help="Application directory"),
    ] = Path("."),
    manifest_file: Annotated[
        str | None,
        typer.Option("--file", "-f", help="Manifest file name"),
    ] = None,
    service: Annotated[
        str | None,
        typer.Option("--service", "-s", help="Only this service and its dependencies"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show which images would be pulled and which services built."""
    from stackbuild.builds.plan import plan_builds
    from stackbuild.manifest.order import run_order
    from stackbuild.manifest.schema import ManifestError

    manifest = _load(directory, manifest_file, json_output)
    try:
        services = run_order(manifest, service)
    except ManifestError as e:
        if json_output:
            typer.echo(json.dumps({"code": e.code, "message": str(e)}, indent=2))
        else:
            err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    plan = plan_builds(services, app_name)

    if json_output:
        typer.echo(json.dumps(plan.to_dict(), indent=2))
        return

    if not plan.builds and not plan.pulls:
        console.print("[yellow]No services found[/yellow]")
        return

    if plan.builds:
        console.print(f"[bold]Build ({len(plan.builds)}):[/bold]")
        for s in plan.builds:
            console.print(f"  [green]{s.name}[/green] -> {s.tag(app_name)}")
            console.print(f"    Context: {s.build.context}")
        console.print()
    if plan.pulls:
        console.print(f"[bold]Pull ({len(plan.pulls)}):[/bold]")
        for image in plan.pull_images():
            console.print(f"  [blue]{image}[/blue]")
            for tag in plan.pulls[image]:
                console.print(f"    -> {tag}")


@app.command("build")
def build_cmd(
    app_name: Annotated[
        str,
        typer.Option("--app", "-a", help="Application name"),
    ],
    directory: Annotated[
        Path,
        typer.Argument(help="Application directory"),
    ] = Path("."),
    manifest_file: Annotated[
        str | None,
        typer.Option("--file", "-f", help="Manifest file name"),
    ] = None,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Disable the layer cache and always pull"),
    ] = False,
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Persistent build cache store"),
    ] = None,
    service: Annotated[
        str | None,
        typer.Option("--service", "-s", help="Only this service and its dependencies"),
    ] = None,
    env: Annotated[
        list[str] | None,
        typer.Option("--env", "-e", help="Build arg value KEY=VALUE (can be repeated)"),
    ] = None,
    env_file: Annotated[
        Path | None,
        typer.Option("--env-file", help="File of KEY=VALUE build arg values"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Echo container tool commands"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the result as JSON"),
    ] = False,
) -> None:
    """Build, pull, and tag images for every service of an application."""
    from stackbuild.builds.service import BuildError, BuildOptions, build_manifest
    from stackbuild.manifest.schema import ManifestError

    settings = get_settings()
    manifest = _load(directory, manifest_file, json_output)
    environment = load_environment(env_file, env)

    options = BuildOptions(
        cache=not no_cache,
        cache_dir=cache_dir or settings.cache_dir,
        environment=environment,
        service=service,
        verbose=verbose or settings.verbose,
        docker_bin=settings.docker_bin,
        image_cache_path=settings.image_cache_path,
    )

    # Streamed output goes to stderr when stdout carries JSON
    out = err_console if json_output else console

    def sink(line: str) -> None:
        out.print(line, markup=False, highlight=False)

    try:
        report = build_manifest(manifest, directory, app_name, sink, options)
    except (BuildError, ManifestError) as e:
        if json_output:
            typer.echo(json.dumps({"code": e.code, "message": str(e)}, indent=2))
        else:
            err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return

    console.print()
    console.print("[bold]Build Results:[/bold]")
    for name, outcome in report.outcomes.items():
        console.print(f"  [green]✓ {name}[/green] ({outcome.value})")


__all__ = ["app"]
