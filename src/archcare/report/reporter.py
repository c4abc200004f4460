"""Reporter: console status lines plus maintenance log records.

The two outputs are decoupled. ``--quiet`` and ``--verbose`` only change what
reaches the console; every verdict is logged whenever logging is enabled.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.text import Text

from archcare.actions.base import ActionResult, Outcome
from archcare.report.formatting import format_quantity
from archcare.report.logfile import ERRORS, MAIN, MaintenanceLog
from archcare.rules.models import Band, Verdict
from archcare.session.models import CheckResult, MetricValue, ScanSession

logger = logging.getLogger(__name__)

_MAX_DETAILS = 10

_VERDICT_STYLES = {
    Verdict.NORMAL: ("✅", "green"),
    Verdict.WARNING: ("⚠️ ", "yellow"),
    Verdict.CRITICAL: ("🚨", "red"),
    Verdict.UNKNOWN: ("ℹ", "cyan"),
}

_VERDICT_LEVELS = {
    Verdict.NORMAL: "INFO",
    Verdict.WARNING: "WARNING",
    Verdict.CRITICAL: "ERROR",
    Verdict.UNKNOWN: "INFO",
}

_OUTCOME_VERDICTS = {
    Outcome.SUCCEEDED: Verdict.NORMAL,
    Outcome.FAILED: Verdict.CRITICAL,
    Outcome.SKIPPED: Verdict.UNKNOWN,
    Outcome.DECLINED: Verdict.UNKNOWN,
    Outcome.DRY_RUN: Verdict.UNKNOWN,
}

_OUTCOME_LEVELS = {
    Outcome.SUCCEEDED: "SUCCESS",
    Outcome.FAILED: "ERROR",
    Outcome.SKIPPED: "INFO",
    Outcome.DECLINED: "INFO",
    Outcome.DRY_RUN: "INFO",
}

_BAND_VERDICTS = {
    Band.EXCELLENT: Verdict.NORMAL,
    Band.GOOD: Verdict.UNKNOWN,
    Band.MODERATE: Verdict.WARNING,
    Band.POOR: Verdict.CRITICAL,
}


class Reporter:
    """Renders verdicts to a rich Console and appends them to maintenance logs.

    ``log_dir=None`` disables the log files entirely.
    """

    def __init__(
        self,
        console: Console | None = None,
        log_dir: Path | None = None,
        *,
        verbose: bool = False,
        quiet: bool = False,
    ) -> None:
        self.console = console or Console(highlight=False)
        self.verbose = verbose
        self.quiet = quiet
        self._log_dir = log_dir
        self._logs: dict[str, MaintenanceLog] = {}

    @property
    def logging_enabled(self) -> bool:
        return self._log_dir is not None

    def log(self, category: str, level: str, message: str) -> str | None:
        """Append to ``<category>.log``; ERROR records also go to ``errors.log``."""
        if self._log_dir is None:
            return None
        line = self._log_file(category).write(level, message)
        if level == "ERROR" and category != ERRORS:
            self._log_file(ERRORS).write(level, message)
        return line

    def report(
        self,
        metric_name: str,
        value: MetricValue | None,
        unit: str,
        verdict: Verdict,
        message: str,
        *,
        category: str = MAIN,
    ) -> tuple[str, str | None]:
        """Print one status line and log one record. Returns ``(console_line, log_line)``."""
        glyph, style = _VERDICT_STYLES[verdict]
        console_line = f"{glyph} {message}"
        if not (self.quiet and verdict in (Verdict.NORMAL, Verdict.UNKNOWN)):
            self.console.print(Text(console_line, style=style))

        subject = metric_name
        if value is not None:
            subject += f"={_value_text(value, unit)}"
        log_line = self.log(
            category, _VERDICT_LEVELS[verdict], f"{subject} ({verdict.value}): {message}"
        )
        return console_line, log_line

    def report_result(self, result: CheckResult, *, category: str = MAIN) -> None:
        metric = result.metric
        self.report(
            result.name,
            metric.value if metric else None,
            metric.unit if metric else "",
            result.verdict,
            result.message,
            category=category,
        )
        show_details = self.verbose or result.verdict in (Verdict.WARNING, Verdict.CRITICAL)
        if result.details and show_details and not self.quiet:
            self._print_details(result.details, _VERDICT_STYLES[result.verdict][1])

    def report_action(self, result: ActionResult, categories: Iterable[str] = (MAIN,)) -> None:
        glyph, style = _VERDICT_STYLES[_OUTCOME_VERDICTS[result.outcome]]
        if not (self.quiet and result.outcome is not Outcome.FAILED):
            self.console.print(Text(f"{glyph} {result.message}", style=style))
        if result.details and not self.quiet:
            self._print_details(result.details, "dim")
        for category in categories:
            self.log(category, _OUTCOME_LEVELS[result.outcome], f"{result.action}: {result.message}")

    def header(self, title: str) -> None:
        if not self.quiet:
            self.console.rule(Text(title, style="bold magenta"))

    def step(self, text: str) -> None:
        if not self.quiet:
            self.console.print(Text.assemble(("→ ", "bold white"), text))

    def info(self, text: str, *, category: str | None = None) -> None:
        if not self.quiet:
            self.console.print(Text(text, style="cyan"))
        if category is not None:
            self.log(category, "INFO", text)

    def narrate(self, text: str) -> None:
        """Extra context shown only under ``--verbose``."""
        if self.verbose and not self.quiet:
            self.console.print(Text(text, style="dim"))

    def warning(self, text: str, *, category: str = MAIN) -> None:
        self.console.print(Text(f"{_VERDICT_STYLES[Verdict.WARNING][0]} {text}", style="yellow"))
        self.log(category, "WARNING", text)

    def error(self, text: str, *, category: str = MAIN) -> None:
        self.console.print(Text(f"{_VERDICT_STYLES[Verdict.CRITICAL][0]} {text}", style="red"))
        self.log(category, "ERROR", text)

    def summary(
        self,
        session: ScanSession,
        band_messages: dict[Band, str],
        *,
        category: str = MAIN,
    ) -> None:
        summary = session.summary
        if summary is None:
            raise RuntimeError(f"Session '{session.name}' has not been finalized")

        score_line = f"Score: {summary.score}/{summary.total} ({summary.percentage}%)"
        self.console.print(Text(score_line, style="bold"))
        verdict = _BAND_VERDICTS[summary.band]
        glyph, style = _VERDICT_STYLES[verdict]
        band_message = band_messages.get(summary.band, summary.band.value)
        self.console.print(Text(f"{glyph} {band_message}", style=style))

        if self.verbose:
            table = Table(title=f"{session.name} results", show_lines=False)
            table.add_column("Verdict", style="bold", width=10)
            table.add_column("Checks", justify="right")
            for v in Verdict:
                _, color = _VERDICT_STYLES[v]
                table.add_row(f"[{color}]{v.value}[/{color}]", str(session.count(v)))
            self.console.print(table)

        level = "WARNING" if summary.band in (Band.MODERATE, Band.POOR) else "INFO"
        self.log(category, level, f"{session.name} scan finished: {score_line}, {summary.band.value}")

    def close(self) -> None:
        for log_file in self._logs.values():
            log_file.close()
        self._logs.clear()

    def _log_file(self, category: str) -> MaintenanceLog:
        log_file = self._logs.get(category)
        if log_file is None:
            log_file = MaintenanceLog(self._log_dir, category)
            self._logs[category] = log_file
            logger.debug("Logging %s records to %s", category, log_file.path)
        return log_file

    def _print_details(self, details: tuple[str, ...], style: str) -> None:
        for detail in details[:_MAX_DETAILS]:
            self.console.print(Text(f"    {detail}", style=style))
        if len(details) > _MAX_DETAILS:
            self.console.print(Text(f"    ... and {len(details) - _MAX_DETAILS} more", style="dim"))


def _value_text(value: MetricValue, unit: str) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return format_quantity(value, unit)
    if isinstance(value, enum.Enum):
        return str(value.value)
    return str(value)
