"""Shared fixtures for stackbuild tests.

FakeRunner records container tool commands instead of running them.
"""

from collections.abc import Sequence

import pytest

from stackbuild.builds.runner import (
    CommandError,
    OutputSink,
    RunnerOptions,
    apply_filters,
)


class FakeRunner:
    """CommandRunner double recording every command.

    Attributes:
        commands: Every command run or captured, in order.
        options: RunnerOptions passed with each streamed command.
        fail_on: Subcommands (e.g. "pull") that fail with exit status 1.
        output_lines: Subcommand -> lines streamed through the filters.
        images: Image references reported present by ``images -q``.
    """

    def __init__(self) -> None:
        self.commands: list[list[str]] = []
        self.options: list[RunnerOptions | None] = []
        self.fail_on: set[str] = set()
        self.output_lines: dict[str, list[str]] = {}
        self.images: set[str] = set()

    def run(
        self,
        sink: OutputSink,
        command: Sequence[str],
        options: RunnerOptions | None = None,
    ) -> None:
        self.commands.append(list(command))
        self.options.append(options)
        filters = options.line_filters if options else []
        for line in self.output_lines.get(command[1], []):
            line = apply_filters(line, filters)
            if line:
                sink(line)
        if command[1] in self.fail_on:
            raise CommandError("exit status 1", exit_code=1)

    def combined_output(self, command: Sequence[str]) -> str:
        self.commands.append(list(command))
        if command[1] in self.fail_on:
            raise CommandError("exit status 1", exit_code=1)
        if command[1] == "images" and command[-1] in self.images:
            return "0123456789ab\n"
        return ""

    def subcommands(self) -> list[str]:
        """Return the subcommand of every recorded command."""
        return [c[1] for c in self.commands]

    def find(self, subcommand: str) -> list[list[str]]:
        """Return recorded commands with the given subcommand."""
        return [c for c in self.commands if c[1] == subcommand]


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Create a recording command runner."""
    return FakeRunner()


@pytest.fixture
def sink_lines() -> list[str]:
    """Collect lines written to an output sink."""
    return []


@pytest.fixture
def sink(sink_lines):
    """Create an output sink appending to sink_lines."""
    return sink_lines.append
