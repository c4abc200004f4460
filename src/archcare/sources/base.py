"""CommandRunner protocol. All command execution goes through this seam."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from archcare.errors import ExternalFailure


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one external command."""

    args: tuple[str, ...]
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def command_line(self) -> str:
        return " ".join(self.args)

    def check(self) -> CommandResult:
        """Return self, or raise ExternalFailure for a non-zero exit status."""
        if not self.ok:
            raise ExternalFailure(self.command_line, self.exit_code, self.stderr)
        return self


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for running external programs."""

    def available(self, program: str) -> bool:
        """Whether ``program`` can be found on PATH."""
        ...

    def run(
        self,
        args: Sequence[str],
        *,
        sudo: bool = False,
        capture: bool = True,
        input: str | None = None,
    ) -> CommandResult:
        """Run a command to completion, feeding it ``input`` on stdin if given.

        Raises Unavailable when the program is missing. A non-zero exit status
        is returned, not raised; callers that require success call ``check()``.
        """
        ...
