"""Build argument discovery and serialization.

This module handles:
- Scanning a Dockerfile for declared ARG names
- Merging explicit build args with values forwarded from the environment
- Serializing build args as sorted --build-arg flags
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

ARG_DIRECTIVE = "ARG"


class BuildArgsError(Exception):
    """Raised when a Dockerfile cannot be scanned for build args."""

    def __init__(self, message: str, code: str = "build_args_error") -> None:
        super().__init__(message)
        self.code = code


def scan_build_args(dockerfile: Path) -> list[str]:
    """Return the names of all ARG directives in a Dockerfile.

    Names are returned in first-seen order; duplicates are kept. An
    ``ARG NAME=default`` line yields ``NAME``.

    Args:
        dockerfile: Path to the Dockerfile.

    Returns:
        List of declared argument names.

    Raises:
        BuildArgsError: If the file cannot be read.
    """
    try:
        text = dockerfile.read_text(encoding="utf-8", errors="surrogateescape")
    except OSError as e:
        raise BuildArgsError(f"unable to read {dockerfile}: {e}") from e

    names: list[str] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2 or parts[0] != ARG_DIRECTIVE:
            continue
        names.append(parts[1].split("=", 1)[0])

    logger.debug("Declared build args in %s: %s", dockerfile, names)
    return names


def merge_build_args(
    explicit: Mapping[str, str],
    declared: Iterable[str],
    environment: Mapping[str, str],
) -> dict[str, str]:
    """Merge explicit build args with declared args found in the environment.

    Args:
        explicit: Build args set on the service.
        declared: ARG names declared by the Dockerfile.
        environment: Values available for forwarding.

    Returns:
        Merged build args; environment values win for declared names.
    """
    merged = dict(explicit)
    for name in declared:
        if name in environment:
            merged[name] = environment[name]
    return merged


def format_build_args(args: Mapping[str, str]) -> list[str]:
    """Serialize build args as flags, sorted by name."""
    flags: list[str] = []
    for name in sorted(args):
        flags.extend(["--build-arg", f"{name}={args[name]}"])
    return flags


__all__ = [
    "ARG_DIRECTIVE",
    "BuildArgsError",
    "format_build_args",
    "merge_build_args",
    "scan_build_args",
]
