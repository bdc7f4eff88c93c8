"""Command runner for driving the container build tool.

This module handles:
- Composing container tool command lines
- Executing commands with subprocess, streaming output line by line
- Applying per-line output filters before lines reach the sink
- Capturing combined output for query commands

The runner is an injectable capability: the build service accepts any object
implementing CommandRunner so tests can substitute a fake.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import IO, Protocol, cast

logger = logging.getLogger(__name__)

OutputSink = Callable[[str], None]
LineFilter = Callable[[str], str]

DEFAULT_DOCKER_BIN = "docker"


class CommandError(Exception):
    """Raised when an external command fails or cannot be started."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "command_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


@dataclass
class RunnerOptions:
    """Options for a streamed command run.

    Attributes:
        verbose: Echo the command line to the sink before running it.
        line_filters: Callables applied in order to every output line. A
            filter returns the line to keep; an empty string drops it.
    """

    verbose: bool = False
    line_filters: list[LineFilter] = field(default_factory=list)


class CommandRunner(Protocol):
    """Capability for running external commands."""

    def run(
        self,
        sink: OutputSink,
        command: Sequence[str],
        options: RunnerOptions | None = None,
    ) -> None:
        """Run a command, streaming its output to sink."""
        ...

    def combined_output(self, command: Sequence[str]) -> str:
        """Run a command and return its combined stdout/stderr."""
        ...


def docker_command(*args: str, binary: str = DEFAULT_DOCKER_BIN) -> list[str]:
    """Compose a container tool command line.

    Args:
        *args: Subcommand and its arguments.
        binary: Container tool executable.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    return [binary, *args]


def apply_filters(line: str, filters: Sequence[LineFilter]) -> str:
    """Pass a line through filters, stopping once it has been dropped."""
    for line_filter in filters:
        line = line_filter(line)
        if not line:
            return ""
    return line


def missing_cache_filter(image_cache_path: str) -> LineFilter:
    """Build a filter hiding complaints about an absent build cache path.

    A cold build has no staged cache yet, so the build tool reports the
    cache path as missing. That report is expected and not shown.

    Args:
        image_cache_path: Cache path as seen inside the image.

    Returns:
        Line filter dropping matching lines.
    """
    needle = f"{image_cache_path}: no such file or directory".lower()

    def _filter(line: str) -> str:
        if needle in line.lower():
            return ""
        return line

    return _filter


class SubprocessRunner:
    """CommandRunner backed by subprocess.

    Output is read synchronously; a hung process blocks the caller.
    """

    def run(
        self,
        sink: OutputSink,
        command: Sequence[str],
        options: RunnerOptions | None = None,
    ) -> None:
        """Run a command and stream combined output to sink.

        Args:
            sink: Receives each output line (without trailing newline).
            command: Command as list of strings.
            options: Verbosity and line filters.

        Raises:
            CommandError: If the command cannot be started or exits non-zero.
        """
        options = options or RunnerOptions()
        cmd_str = shlex.join(command)

        if options.verbose:
            sink(f"running: {cmd_str}")
        logger.debug("Executing: %s", cmd_str)

        try:
            process = subprocess.Popen(
                list(command),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise CommandError(
                f"failed to execute {command[0]}: {e}",
                code="execution_error",
            ) from e

        with process:
            stdout = cast(IO[str], process.stdout)
            for raw_line in stdout:
                line = apply_filters(raw_line.rstrip("\r\n"), options.line_filters)
                if line:
                    sink(line)
            exit_code = process.wait()

        if exit_code != 0:
            logger.debug("Command exited with %d: %s", exit_code, cmd_str)
            raise CommandError(f"exit status {exit_code}", exit_code=exit_code)

    def combined_output(self, command: Sequence[str]) -> str:
        """Run a command and capture its combined output.

        Args:
            command: Command as list of strings.

        Returns:
            Combined stdout and stderr text.

        Raises:
            CommandError: If the command cannot be started or exits non-zero.
        """
        logger.debug("Capturing: %s", shlex.join(command))

        try:
            result = subprocess.run(
                list(command),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as e:
            raise CommandError(
                f"failed to execute {command[0]}: {e}",
                code="execution_error",
            ) from e

        if result.returncode != 0:
            raise CommandError(
                f"exit status {result.returncode}: {result.stdout.strip()}",
                exit_code=result.returncode,
            )
        return result.stdout


__all__ = [
    "DEFAULT_DOCKER_BIN",
    "CommandError",
    "CommandRunner",
    "LineFilter",
    "OutputSink",
    "RunnerOptions",
    "SubprocessRunner",
    "apply_filters",
    "docker_command",
    "missing_cache_filter",
]
