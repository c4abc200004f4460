"""Performance summary plus informational tuning state."""

from __future__ import annotations

from collections.abc import Iterator

from archcare.checks.base import Check, CheckContext, Scan, info, judged, measured, value_text
from archcare.report.logfile import PERFORMANCE
from archcare.rules.models import Band
from archcare.session.models import CheckResult

# Scored checks are worth two points: full marks when normal, one for warning
SUMMARY_WEIGHT = 2

MEMORY_HOG_PERCENT = 10.0
TOP_PROCESSES = 5

BOOT_SERVICE_HINTS = {
    "NetworkManager-wait-online.service": "delays boot until the network is up",
    "bluetooth.service": "disable if Bluetooth is unused",
    "cups.service": "disable if you do not print",
    "plymouth-start.service": "the boot splash adds to boot time",
}


def cpu_usage(ctx: CheckContext) -> Iterator[CheckResult]:
    rule = ctx.rules.threshold("cpu-usage")
    yield measured("cpu-usage", "CPU usage", ctx.reader.cpu_usage(), rule, weight=SUMMARY_WEIGHT)


def memory_pressure(ctx: CheckContext) -> Iterator[CheckResult]:
    rule = ctx.rules.threshold("memory-pressure")
    yield measured(
        "memory-pressure", "Memory usage", ctx.reader.memory_pressure(), rule, weight=SUMMARY_WEIGHT
    )


def root_disk_usage(ctx: CheckContext) -> Iterator[CheckResult]:
    rule = ctx.rules.threshold("root-disk-usage")
    yield measured(
        "root-disk-usage",
        "Root filesystem usage",
        ctx.reader.root_disk_usage(),
        rule,
        weight=SUMMARY_WEIGHT,
    )


def network(ctx: CheckContext) -> Iterator[CheckResult]:
    metric = ctx.reader.network_reachability()
    if metric.value == "reachable":
        message = "Network: internet reachable"
    else:
        message = "Network: check connectivity"
    yield judged(
        "network-reachability", message, metric.value, ctx.rules, metric=metric, weight=SUMMARY_WEIGHT
    )


def boot_time(ctx: CheckContext) -> Iterator[CheckResult]:
    rule = ctx.rules.threshold("boot-time")
    yield measured("boot-time", "Boot time", ctx.reader.boot_time(), rule, weight=SUMMARY_WEIGHT)


def frequency_scaling(ctx: CheckContext) -> Iterator[CheckResult]:
    """Scaling driver, then the EPP (amd-pstate) or the governor in use."""
    reader = ctx.reader
    driver = reader.scaling_driver()
    yield info("scaling-driver", f"Scaling driver: {driver.value}", driver)
    if "amd-pstate" in str(driver.value):
        epp = reader.energy_preference()
        yield judged(
            "energy-preference",
            f"Energy performance preference: {value_text(epp.value)}",
            epp.value,
            ctx.rules,
            metric=epp,
            scoreable=False,
        )
        return
    governor = reader.cpu_governor()
    yield judged(
        "cpu-governor",
        f"CPU governor: {value_text(governor.value)}",
        governor.value,
        ctx.rules,
        metric=governor,
        scoreable=False,
    )


def memory_consumers(ctx: CheckContext) -> Iterator[CheckResult]:
    """Top consumers, then any process holding more than a tenth of RAM."""
    processes = ctx.reader.memory_consumers()
    top = tuple(
        f"{p.name} (pid {p.pid}): {p.memory_percent:.1f}%" for p in processes[:TOP_PROCESSES]
    )
    yield info("memory-consumers", "Top memory consumers", details=top)
    hogs = [
        f"{p.name}: {p.memory_percent:.1f}%"
        for p in processes
        if p.memory_percent > MEMORY_HOG_PERCENT
    ]
    if hogs:
        message = f"Processes using more than {MEMORY_HOG_PERCENT:g}% of memory: {len(hogs)}"
    else:
        message = "No processes with excessive memory usage"
    yield judged(
        "memory-hogs",
        message,
        "present" if hogs else "absent",
        ctx.rules,
        scoreable=False,
        details=tuple(hogs[:3]),
    )


def io_schedulers(ctx: CheckContext) -> Iterator[CheckResult]:
    for queue in ctx.reader.io_schedulers():
        kind = "HDD" if queue.rotational else "SSD"
        if queue.scheduler == queue.preferred:
            message, state = f"{queue.device} ({kind}): {queue.scheduler} scheduler", "preferred"
        else:
            message = (
                f"{queue.device} ({kind}): {queue.scheduler} scheduler, "
                f"{queue.preferred} preferred"
            )
            state = "other"
        yield judged("io-scheduler", message, state, ctx.rules, scoreable=False)


def tcp_congestion(ctx: CheckContext) -> Iterator[CheckResult]:
    metric = ctx.reader.tcp_congestion()
    yield judged(
        "tcp-congestion",
        f"TCP congestion control: {value_text(metric.value)}",
        metric.value,
        ctx.rules,
        metric=metric,
        scoreable=False,
    )


def noatime(ctx: CheckContext) -> Iterator[CheckResult]:
    for fs in ctx.reader.filesystems():
        if fs.fstype != "ext4":
            continue
        if "noatime" in fs.options.split(","):
            message, state = f"{fs.mount_point}: noatime is enabled", "enabled"
        else:
            message, state = f"{fs.mount_point}: consider the 'noatime' mount option", "disabled"
        yield judged("noatime", message, state, ctx.rules, scoreable=False)


def network_buffers(ctx: CheckContext) -> Iterator[CheckResult]:
    reader = ctx.reader
    receive = reader.kernel_parameter("net.core.rmem_max")
    send = reader.kernel_parameter("net.core.wmem_max")
    yield info(
        "network-buffers", f"Max receive buffer: {receive} bytes, max send buffer: {send} bytes"
    )


def slow_services(ctx: CheckContext) -> Iterator[CheckResult]:
    rule = ctx.rules.threshold("service-start-time")
    for metric in ctx.reader.slowest_services():
        yield measured("service-start-time", metric.name, metric, rule, scoreable=False)


def critical_chain(ctx: CheckContext) -> Iterator[CheckResult]:
    yield info("critical-chain", "Boot critical chain", details=tuple(ctx.reader.critical_chain()))


def boot_services(ctx: CheckContext) -> Iterator[CheckResult]:
    """Enabled units that commonly slow boot, then the default start timeout."""
    reader = ctx.reader
    for unit, hint in BOOT_SERVICE_HINTS.items():
        if reader.unit_enabled(unit):
            yield info("boot-services", f"{unit} is enabled: {hint}")
    timeout = reader.default_start_timeout()
    message = f"Default start timeout: {timeout}"
    if "1min" in timeout:
        message += " (consider lowering DefaultTimeoutStartSec in /etc/systemd/system.conf)"
    yield info("start-timeout", message)


SCAN = Scan(
    name="performance",
    title="Performance Summary",
    checks=(
        Check("cpu-usage", "CPU usage", cpu_usage, weight=SUMMARY_WEIGHT),
        Check("memory-pressure", "Memory usage", memory_pressure, weight=SUMMARY_WEIGHT),
        Check("root-disk-usage", "Root filesystem usage", root_disk_usage, weight=SUMMARY_WEIGHT),
        Check("network-reachability", "Network reachability", network, weight=SUMMARY_WEIGHT),
        Check("boot-time", "Boot time", boot_time, weight=SUMMARY_WEIGHT),
        Check("frequency-scaling", "CPU frequency scaling", frequency_scaling, scoreable=False),
        Check("tcp-congestion", "TCP congestion control", tcp_congestion, scoreable=False),
        Check("noatime", "Filesystem mount options", noatime, scoreable=False),
        Check("memory-consumers", "Memory consumers", memory_consumers, scoreable=False),
        Check("io-scheduler", "I/O schedulers", io_schedulers, scoreable=False),
        Check("network-buffers", "Network buffers", network_buffers, scoreable=False),
        Check("slow-services", "Slowest services", slow_services, scoreable=False),
        Check("critical-chain", "Boot critical chain", critical_chain, scoreable=False),
        Check("boot-services", "Boot services", boot_services, scoreable=False),
    ),
    band_messages={
        Band.EXCELLENT: "Excellent system performance!",
        Band.GOOD: "Good system performance with minor optimizations possible",
        Band.MODERATE: "Average system performance - optimizations recommended",
        Band.POOR: "Poor system performance - immediate optimization needed",
    },
    log_category=PERFORMANCE,
)
