"""Subprocess-backed CommandRunner."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Sequence

from archcare.errors import Unavailable
from archcare.sources.base import CommandResult

logger = logging.getLogger(__name__)


def sudo_prefix(non_interactive: bool = False) -> list[str]:
    """Prefix needed to elevate, empty when already root."""
    if os.geteuid() == 0:
        return []
    return ["sudo", "-n"] if non_interactive else ["sudo"]


class SubprocessRunner:
    """Runs commands with ``subprocess.run``. No timeout: a hung tool blocks the caller.

    With ``non_interactive`` set, sudo is invoked with ``-n`` so a missing
    credential fails the command instead of prompting for a password.
    """

    def __init__(self, non_interactive: bool = False) -> None:
        self._non_interactive = non_interactive

    def available(self, program: str) -> bool:
        return shutil.which(program) is not None

    def run(
        self,
        args: Sequence[str],
        *,
        sudo: bool = False,
        capture: bool = True,
        input: str | None = None,
    ) -> CommandResult:
        if not args:
            raise ValueError("Empty command")
        program = args[0]
        if not self.available(program):
            raise Unavailable(program, "command not found")

        cmd = [*sudo_prefix(self._non_interactive), *args] if sudo else list(args)
        logger.debug("Running: %s", " ".join(cmd))
        try:
            completed = subprocess.run(
                cmd,
                capture_output=capture,
                text=True,
                errors="replace",
                **self._stdin(input),
            )
        except FileNotFoundError as e:
            raise Unavailable(cmd[0], "command not found") from e
        except PermissionError as e:
            raise Unavailable(cmd[0], "permission denied") from e

        logger.debug("'%s' exited with %d", program, completed.returncode)
        return CommandResult(
            args=tuple(cmd),
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
        )

    def _stdin(self, input: str | None) -> dict:
        if input is not None:
            return {"input": input}
        if self._non_interactive:
            return {"stdin": subprocess.DEVNULL}
        return {}
