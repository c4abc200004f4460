"""Maintenance action protocol and the shared dry-run / confirm / run sequence."""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from archcare.actions.confirm import Confirmer
from archcare.config import ArchCareConfig
from archcare.errors import ExternalFailure, ParseFailure, Unavailable
from archcare.sources.base import CommandRunner
from archcare.sources.readers import MetricReader
from archcare.sources.sysfs import SysFs

if TYPE_CHECKING:
    from archcare.report.reporter import Reporter

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    DECLINED = "declined"
    DRY_RUN = "dry-run"


@dataclass(frozen=True)
class ActionResult:
    action: str
    outcome: Outcome
    message: str
    details: tuple[str, ...] = ()


@dataclass
class ActionContext:
    """Everything an action may touch. Actions hold no other state."""

    runner: CommandRunner
    confirmer: Confirmer
    config: ArchCareConfig = field(default_factory=ArchCareConfig)
    dry_run: bool = False
    home: Path = field(default_factory=Path.home)
    sysfs: SysFs = field(default_factory=SysFs)

    @property
    def reader(self) -> MetricReader:
        return MetricReader(self.runner, self.sysfs)

    def require(self, program: str) -> None:
        """Raise Unavailable unless ``program`` is on PATH, even in dry-run mode."""
        if not self.runner.available(program):
            raise Unavailable(program, "command not found")


class MaintenanceAction(Protocol):
    """Protocol for state-changing maintenance steps."""

    name: str
    title: str
    log_categories: tuple[str, ...]

    def execute(self, ctx: ActionContext) -> ActionResult:
        """Run the action. Read-only queries run even in dry-run mode."""
        ...


def command_line(args: Sequence[str], sudo: bool = False) -> str:
    return " ".join(["sudo", *args] if sudo else args)


def run_confirmed(
    ctx: ActionContext,
    action: str,
    args: Sequence[str],
    *,
    question: str | None,
    success: str,
    sudo: bool = False,
    details: tuple[str, ...] = (),
    input: str | None = None,
) -> ActionResult:
    """Dry-run, confirm, run: the common tail of every action.

    ``question=None`` runs without asking. ``input`` is fed to the command's
    stdin. Raises ExternalFailure when the command exits non-zero.
    """
    if ctx.dry_run:
        return ActionResult(
            action, Outcome.DRY_RUN, f"[DRY RUN] Would run: {command_line(args, sudo)}", details
        )
    if question is not None and not ctx.confirmer.confirm(question):
        return ActionResult(action, Outcome.DECLINED, f"{question} Skipped by user.", details)
    ctx.runner.run(args, sudo=sudo, capture=input is not None, input=input).check()
    return ActionResult(action, Outcome.SUCCEEDED, success, details)


def run_actions(
    actions: Iterable[MaintenanceAction],
    ctx: ActionContext,
    reporter: Reporter,
) -> list[ActionResult]:
    """Execute actions in order. One failing action never stops the next."""
    results = []
    for action in actions:
        reporter.step(action.title)
        try:
            result = action.execute(ctx)
        except Unavailable as e:
            result = ActionResult(action.name, Outcome.SKIPPED, f"Skipped: {e}")
        except (ExternalFailure, ParseFailure) as e:
            logger.error("Action '%s' failed: %s", action.name, e)
            result = ActionResult(action.name, Outcome.FAILED, f"{action.title} failed: {e}")
        except Exception as e:
            logger.error("Action '%s' crashed: %s", action.name, e, exc_info=True)
            result = ActionResult(
                action.name, Outcome.FAILED, f"{action.title} failed: unexpected error: {e}"
            )
        reporter.report_action(result, action.log_categories)
        results.append(result)
    return results
