"""Helpers shared by CLI commands: building contexts from ``ctx.obj``."""

from __future__ import annotations

from archcare.actions.base import ActionContext, ActionResult, MaintenanceAction, Outcome, run_actions
from archcare.checks.base import CheckContext, Scan
from archcare.sources.readers import MetricReader
from archcare.session.models import ScanSession
from archcare.session.runner import ScanRunner


def metric_reader(obj: dict) -> MetricReader:
    return MetricReader(obj["runner"], obj["sysfs"])


def run_scan(obj: dict, scan: Scan) -> ScanSession:
    context = CheckContext(reader=metric_reader(obj), rules=obj["rules"])
    return ScanRunner(context, obj["reporter"]).run(scan)


def action_context(obj: dict) -> ActionContext:
    return ActionContext(
        runner=obj["runner"],
        confirmer=obj["confirmer"],
        config=obj["config"],
        dry_run=obj["dry_run"],
        sysfs=obj["sysfs"],
    )


def perform(obj: dict, title: str, actions: list[MaintenanceAction]) -> list[ActionResult]:
    reporter = obj["reporter"]
    reporter.header(title)
    return run_actions(actions, action_context(obj), reporter)


def any_failed(results: list[ActionResult]) -> bool:
    return any(r.outcome is Outcome.FAILED for r in results)
