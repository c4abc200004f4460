"""Hardware health: temperatures, disks, memory, load and batteries."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from archcare.checks.base import Check, CheckContext, Scan, info, judged, measured, unknown, value_text
from archcare.errors import ParseFailure, Unavailable
from archcare.report.formatting import format_bytes, format_quantity
from archcare.report.logfile import HARDWARE
from archcare.rules.models import Band
from archcare.session.models import CheckResult, Metric

logger = logging.getLogger(__name__)

# program -> Arch package providing it
SENSOR_PACKAGES = {"sensors": "lm_sensors", "smartctl": "smartmontools"}


def missing_packages(ctx: CheckContext) -> Iterator[CheckResult]:
    missing = [pkg for prog, pkg in SENSOR_PACKAGES.items() if not ctx.reader.runner.available(prog)]
    if missing:
        names = " ".join(missing)
        yield info(
            "missing-packages",
            f"Missing packages for full hardware monitoring: {names} "
            f"(install with: sudo pacman -S {names})",
        )


def cpu_temperature(ctx: CheckContext) -> Iterator[CheckResult]:
    readings = ctx.reader.cpu_temperatures()
    hottest = max(readings, key=lambda m: m.value)
    details = tuple(f"{m.name}: {format_quantity(m.value, m.unit)}" for m in readings)
    yield measured(
        "cpu-temperature",
        f"CPU {hottest.name}",
        hottest,
        ctx.rules.threshold("cpu-temperature"),
        details=details,
    )


def gpu_temperature(ctx: CheckContext) -> Iterator[CheckResult]:
    readings = ctx.reader.gpu_temperatures()
    if not readings:
        yield info("gpu-temperature", "GPU temperature: no supported GPU found or drivers not installed")
        return
    rule = ctx.rules.threshold("gpu-temperature")
    for metric in readings:
        yield measured("gpu-temperature", metric.name, metric, rule)


def _disks(ctx: CheckContext) -> list[str]:
    if not ctx.reader.runner.available("smartctl"):
        raise Unavailable("smartctl", "install smartmontools for disk health monitoring")
    return ctx.reader.block_devices()


def smart_health(ctx: CheckContext) -> Iterator[CheckResult]:
    devices = _disks(ctx)
    if not devices:
        yield info("smart-health", "No block devices found")
    for device in devices:
        label = f"Disk {device}"
        try:
            metric = ctx.reader.smart_health(device)
        except (Unavailable, ParseFailure) as e:
            yield unknown("smart-health", f"{label} SMART status", e)
            continue
        yield judged(
            "smart-health",
            f"{label}: SMART status {value_text(metric.value)}",
            metric.value,
            ctx.rules,
            metric=metric,
        )


def disk_temperature(ctx: CheckContext) -> Iterator[CheckResult]:
    rule = ctx.rules.threshold("disk-temperature")
    for device in _disks(ctx):
        try:
            metric = ctx.reader.disk_temperature(device)
        except (Unavailable, ParseFailure) as e:
            yield unknown("disk-temperature", f"Disk {device} temperature", e)
            continue
        yield measured("disk-temperature", f"Disk {device} temperature", metric, rule)


def disk_usage(ctx: CheckContext) -> Iterator[CheckResult]:
    rule = ctx.rules.threshold("disk-usage")
    for fs in ctx.reader.filesystems():
        yield measured(
            "disk-usage",
            f"Disk {fs.mount_point} usage",
            Metric(fs.mount_point, fs.percent, "%"),
            rule,
            details=(f"{fs.device} ({fs.fstype}): {format_bytes(fs.used)} of {format_bytes(fs.total)}",),
        )


def memory_usage(ctx: CheckContext) -> Iterator[CheckResult]:
    mem = ctx.reader.memory()
    yield measured(
        "memory-usage",
        "Memory",
        Metric("memory-usage", mem.percent, "%"),
        ctx.rules.threshold("memory-usage"),
        details=(
            f"{format_bytes(mem.used)} of {format_bytes(mem.total)} used, "
            f"{format_bytes(mem.available)} available",
        ),
    )


def swap_usage(ctx: CheckContext) -> Iterator[CheckResult]:
    swap = ctx.reader.swap()
    if swap is None:
        yield info("swap-usage", "Swap: not configured")
        return
    yield measured(
        "swap-usage",
        "Swap",
        Metric("swap-usage", swap.percent, "%"),
        ctx.rules.threshold("swap-usage"),
        details=(f"{format_bytes(swap.used)} of {format_bytes(swap.total)} used",),
    )


def load_per_core(ctx: CheckContext) -> Iterator[CheckResult]:
    metric = ctx.reader.load_per_core()
    yield measured("load-per-core", "Load per core (1 min)", metric, ctx.rules.threshold("load-per-core"))


def batteries(ctx: CheckContext) -> Iterator[CheckResult]:
    reader = ctx.reader
    names = reader.batteries()
    if not names:
        yield info("battery", "No battery detected (desktop system)")
        return
    rule = ctx.rules.threshold("battery-capacity")
    for battery in names:
        try:
            yield measured("battery-capacity", f"Battery {battery}", reader.battery_capacity(battery), rule)
        except (Unavailable, ParseFailure) as e:
            yield unknown("battery-capacity", f"Battery {battery}", e)
        try:
            status = reader.battery_status(battery)
        except Unavailable as e:
            logger.debug("No status for %s: %s", battery, e)
        else:
            yield judged(
                "battery-status",
                f"Battery {battery} status: {value_text(status.value)}",
                status.value,
                ctx.rules,
                metric=status,
                scoreable=False,
            )
        health = reader.battery_health(battery)
        if health:
            yield info("battery-health", f"Battery {battery} health: {health}")


SCAN = Scan(
    name="hardware",
    title="Hardware Health Monitoring",
    checks=(
        Check("missing-packages", "Checking monitoring tools", missing_packages),
        Check("cpu-temperature", "CPU temperature", cpu_temperature),
        Check("gpu-temperature", "GPU temperature", gpu_temperature),
        Check("smart-health", "Disk SMART health", smart_health),
        Check("disk-temperature", "Disk temperature", disk_temperature),
        Check("disk-usage", "Disk usage", disk_usage),
        Check("memory-usage", "Memory usage", memory_usage),
        Check("swap-usage", "Swap usage", swap_usage),
        Check("load-per-core", "System load", load_per_core),
        Check("battery", "Battery status", batteries),
    ),
    band_messages={
        Band.EXCELLENT: "Hardware is healthy",
        Band.GOOD: "Hardware is mostly healthy, a few readings to watch",
        Band.MODERATE: "Several hardware readings need attention",
        Band.POOR: "Hardware needs immediate attention",
    },
    log_category=HARDWARE,
)
