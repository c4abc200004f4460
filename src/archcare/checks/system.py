"""Service manager health: failed systemd units."""

from __future__ import annotations

from collections.abc import Iterator

from archcare.checks.base import Check, CheckContext, Scan, measured
from archcare.report.logfile import MAIN
from archcare.rules.models import Band
from archcare.session.models import CheckResult, Metric


def failed_units(ctx: CheckContext) -> Iterator[CheckResult]:
    units = ctx.reader.failed_units()
    yield measured(
        "failed-units",
        "Failed systemd units",
        Metric("failed-units", len(units)),
        ctx.rules.threshold("failed-units"),
        details=(*units, "Use 'systemctl status <unit>' to investigate") if units else (),
    )


SCAN = Scan(
    name="system",
    title="System Services",
    checks=(Check("failed-units", "Checking for failed systemd services", failed_units),),
    band_messages={
        Band.EXCELLENT: "All systemd services are running normally",
        Band.GOOD: "All systemd services are running normally",
        Band.MODERATE: "Some systemd services have failed",
        Band.POOR: "Failed systemd services need attention",
    },
    log_category=MAIN,
)
