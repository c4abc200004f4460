"""MetricReader: turns a metric identifier into a point-in-time Metric.

Every reading goes through exactly one external command (via the injected
CommandRunner), one sysfs file, or one psutil call. Nothing is cached and
nothing is retried; read again to get a fresh value.
"""

from __future__ import annotations

import logging
import platform
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from archcare.errors import ParseFailure, Unavailable
from archcare.sources import host, parsers
from archcare.sources.base import CommandRunner
from archcare.sources.sysfs import SysFs
from archcare.sources.variants import (
    BatteryStatus,
    CongestionControl,
    EnergyPreference,
    FirewallState,
    Governor,
    ServiceState,
    SmartHealth,
    Unrecognized,
    parse_variant,
)
from archcare.session.models import Metric

logger = logging.getLogger(__name__)

PING_HOST = "8.8.8.8"
WORLD_WRITABLE_DIRS = ("/etc", "/usr/bin", "/usr/sbin", "/bin", "/sbin")
CORE_DUMP_DIRS = ("/var/crash", "/tmp", "/home")


@dataclass(frozen=True)
class BlockQueue:
    """I/O scheduler state of one block device."""

    device: str
    scheduler: str
    available: tuple[str, ...]
    rotational: bool

    @property
    def preferred(self) -> str:
        """bfq, then mq-deadline for spinning disks; none, then mq-deadline for SSDs."""
        order = ("bfq", "mq-deadline") if self.rotational else ("none", "mq-deadline")
        return next((s for s in order if s in self.available), self.scheduler)


class MetricReader:
    """Reads metrics from the running system.

    Raises Unavailable when the tool, file or device behind a metric is
    missing and ParseFailure when its output is not in the expected format.
    """

    def __init__(
        self,
        runner: CommandRunner,
        sysfs: SysFs | None = None,
        ping_host: str = PING_HOST,
    ) -> None:
        self.runner = runner
        self.sysfs = sysfs or SysFs()
        self._ping_host = ping_host
        self._registry: dict[str, Callable[[], Metric]] = {
            "memory-usage": self.memory_usage,
            "memory-pressure": self.memory_pressure,
            "swap-usage": self.swap_usage,
            "load-per-core": self.load_per_core,
            "cpu-usage": self.cpu_usage,
            "root-disk-usage": self.root_disk_usage,
            "boot-time": self.boot_time,
            "network-reachability": self.network_reachability,
            "security-updates": self.security_updates,
            "suid-files": self.suid_file_count,
            "external-connections": self.external_connections,
            "failed-logins": self.failed_logins,
            "failed-units": self.failed_unit_count,
            "scaling-driver": self.scaling_driver,
            "cpu-governor": self.cpu_governor,
            "energy-preference": self.energy_preference,
            "tcp-congestion": self.tcp_congestion,
        }

    @property
    def metric_ids(self) -> list[str]:
        return sorted(self._registry)

    def read(self, metric_id: str) -> Metric:
        """Read a single-valued metric by identifier."""
        try:
            reader = self._registry[metric_id]
        except KeyError:
            raise KeyError(f"Unknown metric '{metric_id}'") from None
        return reader()

    def output(self, args: Sequence[str], *, sudo: bool = False, check: bool = False) -> str:
        """stdout of a command. Exit status is ignored unless ``check`` is set."""
        result = self.runner.run(args, sudo=sudo)
        if check:
            result.check()
        return result.stdout

    # -- temperatures --------------------------------------------------------

    def cpu_temperatures(self) -> list[Metric]:
        """One reading per core/package from ``sensors``, else from thermal zones."""
        readings: list[tuple[str, float]] = []
        if self.runner.available("sensors"):
            try:
                readings = parsers.cpu_sensor_temperatures(self.output(["sensors"]))
            except ParseFailure:
                logger.debug("No CPU sensors in 'sensors' output, trying thermal zones")
        if not readings:
            readings = self.sysfs.thermal_zone_temperatures()
        if not readings:
            raise Unavailable("CPU temperature", "no thermal sensors found")
        return [Metric(label, temp, "°C") for label, temp in readings]

    def gpu_temperatures(self) -> list[Metric]:
        """Readings from every GPU source present; empty when there is none."""
        readings: list[Metric] = []
        if self.runner.available("nvidia-smi"):
            result = self.runner.run(
                ["nvidia-smi", "--query-gpu=temperature.gpu", "--format=csv,noheader,nounits"]
            )
            try:
                temps = parsers.nvidia_temperatures(result.stdout) if result.ok else []
            except ParseFailure:
                logger.debug("nvidia-smi reported no usable temperature")
                temps = []
            for index, temp in enumerate(temps):
                label = "NVIDIA GPU" if len(temps) == 1 else f"NVIDIA GPU {index}"
                readings.append(Metric(label, temp, "°C"))
        if self.runner.available("sensors"):
            try:
                readings.append(
                    Metric("AMD GPU", parsers.gpu_sensor_temperature(self.output(["sensors"])), "°C")
                )
            except ParseFailure:
                logger.debug("No edge/junction sensor in 'sensors' output")
        intel = self.sysfs.drm_gpu_temperature()
        if intel is not None:
            readings.append(Metric("Intel GPU", intel, "°C"))
        return readings

    # -- disks ---------------------------------------------------------------

    def block_devices(self) -> list[str]:
        return self.sysfs.block_devices()

    def smart_health(self, device: str) -> Metric:
        # smartctl's exit status is a bit mask that is non-zero on healthy disks too
        text = self.output(["smartctl", "-H", device], sudo=True)
        return Metric(device, parse_variant(SmartHealth, parsers.smart_health(text)))

    def disk_temperature(self, device: str) -> Metric:
        text = self.output(["smartctl", "-A", device], sudo=True)
        return Metric(device, parsers.smart_temperature(text), "°C")

    def filesystems(self) -> list[host.DiskUsage]:
        return host.mounted_filesystems()

    def root_disk_usage(self) -> Metric:
        return Metric("root-disk-usage", host.disk_usage("/"), "%")

    # -- batteries -----------------------------------------------------------

    def batteries(self) -> list[str]:
        return self.sysfs.batteries()

    def battery_capacity(self, battery: str) -> Metric:
        raw = self.sysfs.battery_value(battery, "capacity")
        try:
            return Metric(battery, int(raw), "%")
        except ValueError:
            raise ParseFailure(f"{battery}/capacity", raw) from None

    def battery_status(self, battery: str) -> Metric:
        raw = self.sysfs.battery_value(battery, "status")
        return Metric(battery, parse_variant(BatteryStatus, raw))

    def battery_health(self, battery: str) -> str | None:
        try:
            return self.sysfs.battery_value(battery, "health")
        except Unavailable:
            return None

    # -- memory, load, cpu ---------------------------------------------------

    def memory(self) -> host.MemoryUsage:
        return host.memory()

    def swap(self) -> host.MemoryUsage | None:
        return host.swap()

    def memory_usage(self) -> Metric:
        return Metric("memory-usage", host.memory().percent, "%")

    def memory_pressure(self) -> Metric:
        return Metric("memory-pressure", host.memory().percent, "%")

    def swap_usage(self) -> Metric:
        usage = host.swap()
        if usage is None:
            raise Unavailable("swap", "not configured")
        return Metric("swap-usage", usage.percent, "%")

    def load_per_core(self) -> Metric:
        one_minute, _, _ = host.load_average()
        return Metric("load-per-core", round(one_minute / host.cpu_count(), 2))

    def cpu_usage(self) -> Metric:
        return Metric("cpu-usage", host.cpu_percent(), "%")

    def scaling_driver(self) -> Metric:
        return Metric("scaling-driver", self.sysfs.cpufreq("scaling_driver"))

    def cpu_governor(self) -> Metric:
        return Metric("cpu-governor", parse_variant(Governor, self.sysfs.cpufreq("scaling_governor")))

    def available_governors(self) -> list[str]:
        return self.sysfs.cpufreq("scaling_available_governors").split()

    def energy_preference(self) -> Metric:
        raw = self.sysfs.cpufreq("energy_performance_preference")
        return Metric("energy-preference", parse_variant(EnergyPreference, raw))

    def available_energy_preferences(self) -> list[str]:
        return self.sysfs.cpufreq("energy_performance_available_preferences").split()

    def tcp_congestion(self) -> Metric:
        return Metric("tcp-congestion", parse_variant(CongestionControl, self.sysfs.tcp_congestion_control()))

    def memory_consumers(self) -> list[host.ProcessUsage]:
        return host.memory_consumers()

    def total_memory_gib(self) -> int:
        """Whole GiB of RAM, rounded down like ``free -g``."""
        return host.memory().total // 1024**3

    def kernel_parameter(self, key: str) -> str:
        return self.sysfs.kernel_parameter(key)

    def io_schedulers(self) -> list[BlockQueue]:
        queues = []
        for device in self.sysfs.block_queues():
            try:
                current, available = parsers.io_scheduler(
                    self.sysfs.read_value(f"sys/block/{device}/queue/scheduler")
                )
                rotational = self.sysfs.read_value(f"sys/block/{device}/queue/rotational") == "1"
            except (Unavailable, ParseFailure) as e:
                logger.debug("Skipping I/O scheduler of %s: %s", device, e)
                continue
            queues.append(BlockQueue(device, current, tuple(available), rotational))
        return queues

    # -- boot, network, services ---------------------------------------------

    def boot_time(self) -> Metric:
        # Whole seconds: 29.96 s still counts as under 30
        return Metric("boot-time", int(parsers.boot_time(self.output(["systemd-analyze"]))), "s")

    def network_reachability(self) -> Metric:
        result = self.runner.run(["ping", "-c", "1", "-W", "2", self._ping_host])
        return Metric("network-reachability", "reachable" if result.ok else "unreachable")

    def slowest_services(self, limit: int = 5) -> list[Metric]:
        entries = parsers.blame(self.output(["systemd-analyze", "blame"], check=True))
        entries.sort(key=lambda entry: entry[1], reverse=True)
        return [Metric(unit, round(seconds, 3), "s") for unit, seconds in entries[:limit]]

    def critical_chain(self, limit: int = 10) -> list[str]:
        text = self.output(["systemd-analyze", "critical-chain"], check=True)
        return [line.strip() for line in text.splitlines() if line.strip()][:limit]

    def unit_enabled(self, unit: str) -> bool:
        return self.runner.run(["systemctl", "is-enabled", unit]).ok

    def default_start_timeout(self) -> str:
        text = self.output(["systemctl", "show", "-p", "DefaultTimeoutStartUSec"], check=True)
        return parsers.systemctl_property(text, "DefaultTimeoutStartUSec")

    def service_state(self, unit: str) -> ServiceState | Unrecognized:
        # is-active exits non-zero for anything but "active"; the state is on stdout
        return parse_variant(ServiceState, self.output(["systemctl", "is-active", unit]))

    def failed_units(self) -> list[str]:
        return parsers.failed_units(
            self.output(["systemctl", "--failed", "--no-legend", "--plain"], check=True)
        )

    def failed_unit_count(self) -> Metric:
        return Metric("failed-units", len(self.failed_units()))

    # -- packages ------------------------------------------------------------

    def pending_updates(self) -> list[parsers.PendingUpdate]:
        result = self.runner.run(["pacman", "-Qu"])
        if not result.ok:
            # Exit status 1 with nothing on stderr means nothing is pending
            if result.stderr.strip():
                result.check()
            return []
        return parsers.pending_updates(result.stdout)

    def security_updates(self) -> Metric:
        pending = [u for u in self.pending_updates() if u.security_related]
        return Metric("security-updates", len(pending))

    def installed_kernel(self) -> str:
        text = self.output(["pacman", "-Q", "linux"], check=True)
        return parsers.kernel_release(parsers.package_version(text))

    def running_kernel(self) -> str:
        return platform.release()

    def integrity_problems(self) -> list[str]:
        return parsers.integrity_problems(self.output(["pacman", "-Qk"]))

    # -- security ------------------------------------------------------------

    def firewall_state(self) -> tuple[FirewallState | Unrecognized, str]:
        """State of the first firewall found: firewalld, then ufw, then iptables."""
        if self.runner.available("firewall-cmd") and self.service_state("firewalld") is ServiceState.ACTIVE:
            return FirewallState.ACTIVE, "firewalld"
        if self.runner.available("ufw"):
            status = parsers.ufw_status(self.output(["ufw", "status"], sudo=True))
            return parse_variant(FirewallState, status), "ufw"
        if self.runner.available("iptables"):
            lines = parsers.iptables_rule_lines(self.output(["iptables", "-L"], sudo=True))
            return (FirewallState.ACTIVE if lines > 10 else FirewallState.INACTIVE), "iptables"
        return FirewallState.MISSING, ""

    def firewalld_services(self) -> list[str]:
        return self.output(["firewall-cmd", "--list-services"]).split()

    def world_writable_files(self) -> list[str]:
        return self._find([*WORLD_WRITABLE_DIRS, "-xdev", "-type", "f", "-perm", "-002"])

    def suid_files(self) -> list[str]:
        return self._find(["/usr", "-type", "f", "(", "-perm", "-4000", "-o", "-perm", "-2000", ")"])

    def suid_file_count(self) -> Metric:
        return Metric("suid-files", len(self.suid_files()))

    def core_dumps(self) -> list[str]:
        found = self._find([*CORE_DUMP_DIRS, "(", "-name", "core.*", "-o", "-name", "*.core", ")"])
        return [path for path in found if ".nuget" not in path and "packages" not in path]

    def external_connections(self) -> Metric:
        return Metric("external-connections", host.external_connections())

    def listening_ports(self) -> set[int]:
        return host.listening_ports()

    def miner_processes(self) -> list[str]:
        return host.miner_processes()

    def auth_failures(self) -> list[str]:
        text = self.output(["journalctl", "--since", "1 day ago", "--no-pager", "--quiet"])
        return parsers.auth_failures(text)

    def failed_logins(self) -> Metric:
        return Metric("failed-logins", len(self.auth_failures()))

    def rkhunter_warnings(self) -> list[str]:
        text = self.output(
            ["rkhunter", "--check", "--skip-keypress", "--report-warnings-only"], sudo=True
        )
        return [line.strip() for line in text.splitlines() if line.strip()]

    def chkrootkit_infections(self) -> list[str]:
        text = self.output(["chkrootkit"], sudo=True)
        return [line.strip() for line in text.splitlines() if "INFECTED" in line]

    def sysctl(self, key: str) -> str:
        return parsers.sysctl_value(self.output(["sysctl", "-n", key], check=True))

    def _find(self, args: list[str]) -> list[str]:
        # find exits 1 on unreadable directories but still prints what it found
        return [line for line in self.output(["find", *args]).splitlines() if line.strip()]
