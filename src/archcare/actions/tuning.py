"""Performance tuning actions run by ``archcare performance --optimize``."""

from __future__ import annotations

import logging
from dataclasses import replace

from archcare.actions.base import (
    ActionContext,
    ActionResult,
    MaintenanceAction,
    Outcome,
    command_line,
    run_confirmed,
)
from archcare.errors import ExternalFailure, Unavailable
from archcare.sources.variants import CongestionControl, EnergyPreference, Governor, describe
from archcare.report.logfile import MAIN, PERFORMANCE

logger = logging.getLogger(__name__)

SYSCTL_DROP_IN = "/etc/sysctl.d/99-performance.conf"
BBR_MODULES_LOAD = "/etc/modules-load.d/bbr.conf"
BBR_SETTING = "net.ipv4.tcp_congestion_control=bbr"

GOVERNOR_PREFERENCE = (Governor.SCHEDUTIL, Governor.ONDEMAND, Governor.PERFORMANCE)
EPP_PREFERENCE = (EnergyPreference.BALANCE_PERFORMANCE, EnergyPreference.PERFORMANCE)
_EPP_FILES = "sys/devices/system/cpu/cpu*/cpufreq/energy_performance_preference"
_AVAILABLE_CONGESTION = "proc/sys/net/ipv4/tcp_available_congestion_control"

# Desktops with plenty of RAM keep more in memory before swapping
LARGE_MEMORY_GIB = 8
LARGE_MEMORY_SWAPPINESS = 10
SMALL_MEMORY_SWAPPINESS = 30
VFS_CACHE_PRESSURE = 50
DROP_CACHES_ABOVE = 80.0

NETWORK_BUFFERS = {
    "net.core.rmem_max": "134217728",
    "net.core.wmem_max": "134217728",
    "net.core.rmem_default": "262144",
    "net.core.wmem_default": "262144",
    "net.ipv4.tcp_rmem": "4096 262144 134217728",
    "net.ipv4.tcp_wmem": "4096 262144 134217728",
}


def _amd_pstate(ctx: ActionContext) -> bool:
    return "amd-pstate" in str(ctx.reader.scaling_driver().value)


def _setting_key(line: str) -> str:
    return line.split("=", 1)[0].strip()


def unpersisted(ctx: ActionContext, lines: list[str], path: str = SYSCTL_DROP_IN) -> list[str]:
    """Lines whose key ``path`` does not set yet. A missing file sets nothing."""
    try:
        existing = ctx.sysfs.read_text(path)
    except Unavailable:
        existing = ""
    present = {_setting_key(line) for line in existing.splitlines() if line.strip()}
    return [line for line in lines if _setting_key(line) not in present]


def persist(
    ctx: ActionContext,
    result: ActionResult,
    lines: list[str],
    path: str = SYSCTL_DROP_IN,
    *,
    append: bool = True,
) -> ActionResult:
    """Write ``lines`` to ``path`` after a live change succeeded.

    A failed write leaves the live change in place, so the result stays
    SUCCEEDED and only its message records what was not persisted.
    """
    if result.outcome is not Outcome.SUCCEEDED:
        return result
    lines = unpersisted(ctx, lines, path)
    if not lines:
        return result
    args = ["tee", "-a", path] if append else ["tee", path]
    logger.debug("Persisting %s to %s", ", ".join(lines), path)
    try:
        ctx.runner.run(args, sudo=True, input="".join(f"{line}\n" for line in lines)).check()
    except (Unavailable, ExternalFailure) as e:
        logger.error("Could not persist %s: %s", path, e)
        return replace(
            result, message=f"{result.message}; applied but not persisted to {path} ({e})"
        )
    return result


def apply_sysctl(
    ctx: ActionContext,
    action: str,
    settings: dict[str, str],
    *,
    question: str | None,
    success: str,
) -> ActionResult:
    """``sysctl -w`` the settings, then persist them in the drop-in."""
    lines = [f"{key}={value}" for key, value in settings.items()]
    result = run_confirmed(
        ctx,
        action,
        ["sysctl", "-w", *lines],
        sudo=True,
        question=question,
        success=success,
        details=tuple(lines),
    )
    return persist(ctx, result, lines)


class CpuGovernor:
    name = "cpu-governor"
    title = "Optimizing CPU governor..."
    log_categories = (MAIN, PERFORMANCE)

    def execute(self, ctx: ActionContext) -> ActionResult:
        reader = ctx.reader
        if _amd_pstate(ctx):
            return ActionResult(
                self.name, Outcome.SKIPPED, "amd-pstate manages frequency through EPP, not governors"
            )
        ctx.require("cpupower")
        available = reader.available_governors()
        target = next((g for g in GOVERNOR_PREFERENCE if g.value in available), None)
        if target is None:
            return ActionResult(
                self.name,
                Outcome.SKIPPED,
                f"No suitable CPU governor available ({' '.join(available) or 'none'})",
            )
        if reader.cpu_governor().value is target:
            return ActionResult(self.name, Outcome.SKIPPED, f"CPU governor already '{target.value}'")
        return run_confirmed(
            ctx,
            self.name,
            ["cpupower", "frequency-set", "-g", target.value],
            sudo=True,
            question=f"Set CPU governor to '{target.value}'?",
            success=f"CPU governor set to '{target.value}'",
        )


class EnergyPreferenceTuning:
    name = "energy-preference"
    title = "Optimizing AMD P-State energy performance preference..."
    log_categories = (MAIN, PERFORMANCE)

    def execute(self, ctx: ActionContext) -> ActionResult:
        reader = ctx.reader
        if not _amd_pstate(ctx):
            return ActionResult(self.name, Outcome.SKIPPED, "Not an amd-pstate system")
        available = reader.available_energy_preferences()
        target = next((p for p in EPP_PREFERENCE if p.value in available), None)
        current = reader.energy_preference().value
        if target is None:
            return ActionResult(
                self.name, Outcome.SKIPPED, f"EPP not configurable, current: {describe(current)}"
            )
        if current is target:
            return ActionResult(self.name, Outcome.SKIPPED, f"EPP already '{target.value}'")

        files = [ctx.sysfs.system_path_of(p) for p in ctx.sysfs.glob(_EPP_FILES)]
        return run_confirmed(
            ctx,
            self.name,
            ["tee", *files],
            sudo=True,
            question=f"Set energy performance preference to '{target.value}'?",
            success=f"AMD P-State EPP set to '{target.value}'",
            input=f"{target.value}\n",
        )


class Swappiness:
    """Lower swappiness on machines with enough RAM to keep the working set resident."""

    name = "swappiness"
    title = "Optimizing VM swappiness..."
    log_categories = (MAIN, PERFORMANCE)

    def execute(self, ctx: ActionContext) -> ActionResult:
        reader = ctx.reader
        total = reader.total_memory_gib()
        if total >= LARGE_MEMORY_GIB:
            target = str(LARGE_MEMORY_SWAPPINESS)
        else:
            target = str(SMALL_MEMORY_SWAPPINESS)
        current = reader.kernel_parameter("vm.swappiness")
        if current == target:
            return ActionResult(self.name, Outcome.SKIPPED, f"Swappiness already {target}")
        return apply_sysctl(
            ctx,
            self.name,
            {"vm.swappiness": target},
            question=f"Change swappiness from {current} to {target}?",
            success=f"Set swappiness to {target} (optimized for {total}GB RAM)",
        )


class VfsCachePressure:
    name = "vfs-cache-pressure"
    title = "Optimizing VFS cache pressure..."
    log_categories = (MAIN, PERFORMANCE)

    def execute(self, ctx: ActionContext) -> ActionResult:
        target = str(VFS_CACHE_PRESSURE)
        current = ctx.reader.kernel_parameter("vm.vfs_cache_pressure")
        if current == target:
            return ActionResult(self.name, Outcome.SKIPPED, f"VFS cache pressure already {target}")
        return apply_sysctl(
            ctx,
            self.name,
            {"vm.vfs_cache_pressure": target},
            question=f"Change VFS cache pressure from {current} to {target}?",
            success=f"Set VFS cache pressure to {target}",
        )


class DropCaches:
    """Flushes the page cache when memory is nearly exhausted. Never persisted."""

    name = "drop-caches"
    title = "Checking memory pressure..."
    log_categories = (MAIN, PERFORMANCE)

    def execute(self, ctx: ActionContext) -> ActionResult:
        usage = ctx.reader.memory().percent
        if usage <= DROP_CACHES_ABOVE:
            return ActionResult(
                self.name, Outcome.SKIPPED, f"Memory usage {usage:.0f}%, caches left alone"
            )
        args = ["sysctl", "-w", "vm.drop_caches=3"]
        if ctx.dry_run:
            return ActionResult(
                self.name,
                Outcome.DRY_RUN,
                f"[DRY RUN] Would run: sync; {command_line(args, sudo=True)}",
            )
        question = f"Memory usage is {usage:.0f}%. Drop page caches?"
        if not ctx.confirmer.confirm(question):
            return ActionResult(self.name, Outcome.DECLINED, f"{question} Skipped by user.")
        ctx.runner.run(["sync"], capture=False).check()
        ctx.runner.run(args, sudo=True, capture=False).check()
        return ActionResult(self.name, Outcome.SUCCEEDED, "Dropped page caches")


class FstrimTimer:
    name = "fstrim-timer"
    title = "Enabling periodic SSD TRIM..."
    log_categories = (MAIN, PERFORMANCE)

    def execute(self, ctx: ActionContext) -> ActionResult:
        ctx.require("fstrim")
        if ctx.runner.run(["systemctl", "is-enabled", "fstrim.timer"]).ok:
            return ActionResult(self.name, Outcome.SKIPPED, "Periodic TRIM already enabled")
        return run_confirmed(
            ctx,
            self.name,
            ["systemctl", "enable", "fstrim.timer"],
            sudo=True,
            question="Enable periodic TRIM (fstrim.timer)?",
            success="Enabled periodic TRIM for SSDs",
        )


class IoSchedulers:
    """Moves each block device to the scheduler suited to its type. Lasts until reboot."""

    name = "io-schedulers"
    title = "Optimizing I/O schedulers..."
    log_categories = (MAIN, PERFORMANCE)

    def execute(self, ctx: ActionContext) -> ActionResult:
        changes = [q for q in ctx.reader.io_schedulers() if q.preferred != q.scheduler]
        if not changes:
            return ActionResult(self.name, Outcome.SKIPPED, "I/O schedulers already optimal")
        details = tuple(f"{q.device}: {q.scheduler} -> {q.preferred}" for q in changes)
        commands = [
            (["tee", f"/sys/block/{q.device}/queue/scheduler"], q.preferred) for q in changes
        ]
        if ctx.dry_run:
            lines = "; ".join(command_line(args, sudo=True) for args, _ in commands)
            return ActionResult(
                self.name, Outcome.DRY_RUN, f"[DRY RUN] Would run: {lines}", details
            )
        question = f"Change the I/O scheduler of {len(changes)} devices?"
        if not ctx.confirmer.confirm(question):
            return ActionResult(
                self.name, Outcome.DECLINED, f"{question} Skipped by user.", details
            )
        for args, scheduler in commands:
            ctx.runner.run(args, sudo=True, input=f"{scheduler}\n").check()
        return ActionResult(
            self.name, Outcome.SUCCEEDED, f"I/O scheduler set on {len(changes)} devices", details
        )


class TcpBbr:
    """Switches TCP congestion control to BBR, loading the module when needed.

    The module is listed in modules-load.d and the setting in the sysctl
    drop-in so both survive a reboot.
    """

    name = "tcp-bbr"
    title = "Optimizing TCP congestion control..."
    log_categories = (MAIN, PERFORMANCE)

    def execute(self, ctx: ActionContext) -> ActionResult:
        reader = ctx.reader
        if reader.tcp_congestion().value is CongestionControl.BBR:
            return ActionResult(self.name, Outcome.SKIPPED, "TCP congestion control already BBR")
        available = ctx.sysfs.read_value(_AVAILABLE_CONGESTION).split()
        commands = [["sysctl", "-w", BBR_SETTING]]
        if CongestionControl.BBR.value not in available:
            if not ctx.runner.available("modprobe"):
                return ActionResult(
                    self.name,
                    Outcome.SKIPPED,
                    "BBR not available, keeping current congestion control",
                )
            commands.insert(0, ["modprobe", "tcp_bbr"])

        if ctx.dry_run:
            lines = "; ".join(command_line(args, sudo=True) for args in commands)
            return ActionResult(self.name, Outcome.DRY_RUN, f"[DRY RUN] Would run: {lines}")
        question = "Switch TCP congestion control to BBR?"
        if not ctx.confirmer.confirm(question):
            return ActionResult(self.name, Outcome.DECLINED, f"{question} Skipped by user.")
        for args in commands:
            ctx.runner.run(args, sudo=True, capture=False).check()

        result = ActionResult(self.name, Outcome.SUCCEEDED, "TCP congestion control set to BBR")
        result = persist(ctx, result, ["tcp_bbr"], BBR_MODULES_LOAD, append=False)
        return persist(ctx, result, [BBR_SETTING])


class NetworkBuffers:
    name = "network-buffers"
    title = "Optimizing network buffers..."
    log_categories = (MAIN, PERFORMANCE)

    def execute(self, ctx: ActionContext) -> ActionResult:
        reader = ctx.reader
        changes = {
            key: value
            for key, value in NETWORK_BUFFERS.items()
            if reader.kernel_parameter(key) != value
        }
        if not changes:
            return ActionResult(self.name, Outcome.SKIPPED, "Network buffers already optimized")
        return apply_sysctl(
            ctx,
            self.name,
            changes,
            question=f"Raise {len(changes)} network buffer limits?",
            success="Network buffer sizes optimized",
        )


def optimizations() -> list[MaintenanceAction]:
    """Tuning steps in the order ``performance --optimize`` runs them."""
    return [
        CpuGovernor(),
        EnergyPreferenceTuning(),
        Swappiness(),
        VfsCachePressure(),
        DropCaches(),
        FstrimTimer(),
        IoSchedulers(),
        TcpBbr(),
        NetworkBuffers(),
    ]
