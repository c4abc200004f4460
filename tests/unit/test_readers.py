"""Tests for MetricReader against a fake runner and a fake system root."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from archcare.errors import ExternalFailure, ParseFailure, Unavailable
from archcare.sources.host import MemoryUsage
from archcare.sources.readers import MetricReader
from archcare.sources.variants import (
    BatteryStatus,
    CongestionControl,
    FirewallState,
    Governor,
    ServiceState,
    SmartHealth,
    Unrecognized,
)


def test_cpu_temperatures_from_sensors(reader: MetricReader, fake_runner):
    fake_runner.respond("sensors", "Core 0:  +48.0°C\nCore 1:  +51.0°C\n")
    metrics = reader.cpu_temperatures()
    assert [(m.name, m.value, m.unit) for m in metrics] == [
        ("Core 0", 48.0, "°C"),
        ("Core 1", 51.0, "°C"),
    ]


def test_cpu_temperatures_fall_back_to_thermal_zones(reader: MetricReader, fake_runner, write_file):
    fake_runner.missing.add("sensors")
    write_file("sys/class/thermal/thermal_zone0/temp", "55000\n")
    assert [m.value for m in reader.cpu_temperatures()] == [55.0]


def test_cpu_temperatures_unavailable(reader: MetricReader, fake_runner):
    fake_runner.respond("sensors", "nothing useful\n")
    with pytest.raises(Unavailable):
        reader.cpu_temperatures()


def test_gpu_temperatures_combines_sources(reader: MetricReader, fake_runner, write_file):
    fake_runner.respond("nvidia-smi", "64\n")
    fake_runner.respond("sensors", "edge:  +47.0°C\n")
    write_file("sys/class/drm/card0/device/hwmon/hwmon0/temp1_input", "40000\n")
    readings = reader.gpu_temperatures()
    assert [(m.name, m.value) for m in readings] == [
        ("NVIDIA GPU", 64.0),
        ("AMD GPU", 47.0),
        ("Intel GPU", 40.0),
    ]


def test_gpu_temperatures_empty_without_gpu(reader: MetricReader, fake_runner):
    fake_runner.missing.update({"nvidia-smi", "sensors"})
    assert reader.gpu_temperatures() == []


def test_smart_health_uses_sudo(reader: MetricReader, fake_runner):
    fake_runner.respond(
        ("smartctl", "-H", "/dev/sda"),
        "SMART overall-health self-assessment test result: PASSED\n",
        exit_code=4,
    )
    metric = reader.smart_health("/dev/sda")
    assert metric.value is SmartHealth.PASSED
    assert fake_runner.calls[0]["sudo"] is True


def test_battery_readings(reader: MetricReader, write_file):
    write_file("sys/class/power_supply/BAT0/capacity", "12\n")
    write_file("sys/class/power_supply/BAT0/status", "Discharging\n")
    assert reader.batteries() == ["BAT0"]
    assert reader.battery_capacity("BAT0").value == 12
    assert reader.battery_status("BAT0").value is BatteryStatus.DISCHARGING
    assert reader.battery_health("BAT0") is None


def test_battery_capacity_parse_failure(reader: MetricReader, write_file):
    write_file("sys/class/power_supply/BAT1/capacity", "n/a\n")
    with pytest.raises(ParseFailure):
        reader.battery_capacity("BAT1")


@patch("archcare.sources.readers.host.swap", return_value=None)
def test_swap_usage_unavailable_without_swap(mock_swap: MagicMock, reader: MetricReader):
    with pytest.raises(Unavailable):
        reader.swap_usage()


@patch("archcare.sources.readers.host.cpu_count", return_value=4)
@patch("archcare.sources.readers.host.load_average", return_value=(2.0, 1.0, 0.5))
def test_load_per_core(mock_load: MagicMock, mock_count: MagicMock, reader: MetricReader):
    assert reader.load_per_core().value == 0.5


@patch("archcare.sources.readers.host.memory")
def test_read_by_identifier(mock_memory: MagicMock, reader: MetricReader):
    mock_memory.return_value = MemoryUsage(total=16, used=8, available=8, percent=50.0)
    metric = reader.read("memory-usage")
    assert (metric.name, metric.value, metric.unit) == ("memory-usage", 50.0, "%")
    assert "boot-time" in reader.metric_ids
    with pytest.raises(KeyError, match="Unknown metric"):
        reader.read("nope")


def test_cpufreq_readings(reader: MetricReader, write_file):
    base = "sys/devices/system/cpu/cpu0/cpufreq"
    write_file(f"{base}/scaling_governor", "powersave\n")
    write_file(f"{base}/scaling_available_governors", "performance powersave\n")
    write_file("proc/sys/net/ipv4/tcp_congestion_control", "westwood\n")
    assert reader.cpu_governor().value is Governor.POWERSAVE
    assert reader.available_governors() == ["performance", "powersave"]
    assert reader.tcp_congestion().value == Unrecognized("westwood")


def test_tcp_congestion_bbr(reader: MetricReader, write_file):
    write_file("proc/sys/net/ipv4/tcp_congestion_control", "bbr\n")
    assert reader.tcp_congestion().value is CongestionControl.BBR


def test_boot_time(reader: MetricReader, fake_runner):
    fake_runner.respond("systemd-analyze", "Startup finished in 3.2s (kernel) + 9.14s (userspace) = 12.34s\n")
    metric = reader.boot_time()
    assert (metric.value, metric.unit) == (12, "s")


def test_boot_time_is_truncated(reader: MetricReader, fake_runner):
    fake_runner.respond("systemd-analyze", "Startup finished in 4.1s (kernel) + 25.86s (userspace) = 29.96s\n")
    assert reader.boot_time().value == 29


def test_network_reachability(reader: MetricReader, fake_runner):
    fake_runner.respond("ping", exit_code=1)
    assert reader.network_reachability().value == "unreachable"


def test_service_state_reads_stdout_on_failure(reader: MetricReader, fake_runner):
    fake_runner.respond(("systemctl", "is-active", "sshd"), "inactive\n", exit_code=3)
    assert reader.service_state("sshd") is ServiceState.INACTIVE


def test_failed_units_checks_exit_status(reader: MetricReader, fake_runner):
    fake_runner.respond("systemctl", "cups.service loaded failed failed CUPS\n")
    assert reader.failed_units() == ["cups.service"]
    assert reader.failed_unit_count().value == 1
    fake_runner.respond("systemctl", stderr="Failed to connect to bus", exit_code=1)
    with pytest.raises(ExternalFailure):
        reader.failed_units()


def test_pending_updates(reader: MetricReader, fake_runner):
    fake_runner.respond("pacman", exit_code=1)
    assert reader.pending_updates() == []
    fake_runner.respond("pacman", "openssl 3.3.0-1 -> 3.3.1-1\nvim 9.1.0-1 -> 9.1.1-1\n")
    assert len(reader.pending_updates()) == 2
    assert reader.security_updates().value == 1


def test_pending_updates_error(reader: MetricReader, fake_runner):
    fake_runner.respond("pacman", stderr="error: failed to init transaction", exit_code=1)
    with pytest.raises(ExternalFailure):
        reader.pending_updates()


@patch("archcare.sources.readers.platform.release", return_value="6.9.6-arch1-1")
def test_kernels(mock_release: MagicMock, reader: MetricReader, fake_runner):
    fake_runner.respond(("pacman", "-Q", "linux"), "linux 6.9.7.arch1-1\n")
    assert reader.installed_kernel() == "6.9.7-arch1-1"
    assert reader.running_kernel() == "6.9.6-arch1-1"


def test_firewall_prefers_firewalld(reader: MetricReader, fake_runner):
    fake_runner.respond(("systemctl", "is-active", "firewalld"), "active\n")
    assert reader.firewall_state() == (FirewallState.ACTIVE, "firewalld")


def test_firewall_ufw(reader: MetricReader, fake_runner):
    fake_runner.missing.add("firewall-cmd")
    fake_runner.respond("ufw", "Status: inactive\n")
    assert reader.firewall_state() == (FirewallState.INACTIVE, "ufw")


def test_firewall_iptables_counts_rules(reader: MetricReader, fake_runner):
    fake_runner.missing.update({"firewall-cmd", "ufw"})
    fake_runner.respond("iptables", "Chain INPUT (policy ACCEPT)\ntarget prot opt source destination\n")
    assert reader.firewall_state() == (FirewallState.INACTIVE, "iptables")


def test_firewall_missing(reader: MetricReader, fake_runner):
    fake_runner.missing.update({"firewall-cmd", "ufw", "iptables"})
    assert reader.firewall_state() == (FirewallState.MISSING, "")


def test_core_dumps_skip_package_caches(reader: MetricReader, fake_runner):
    fake_runner.respond("find", "/var/crash/core.1234\n/home/bob/.nuget/packages/x/core.dll\n")
    assert reader.core_dumps() == ["/var/crash/core.1234"]


def test_sysctl(reader: MetricReader, fake_runner):
    fake_runner.respond(("sysctl", "-n", "kernel.dmesg_restrict"), "1\n")
    assert reader.sysctl("kernel.dmesg_restrict") == "1"


def test_missing_tool_raises_unavailable(reader: MetricReader, fake_runner):
    fake_runner.missing.add("systemd-analyze")
    with pytest.raises(Unavailable):
        reader.boot_time()


def test_io_schedulers_prefer_by_device_type(reader: MetricReader, write_file):
    write_file("sys/block/sda/queue/scheduler", "[mq-deadline] kyber bfq none\n")
    write_file("sys/block/sda/queue/rotational", "1\n")
    write_file("sys/block/sdb/queue/scheduler", "[kyber] bfq\n")
    write_file("sys/block/sdb/queue/rotational", "0\n")
    write_file("sys/block/sdc/queue/scheduler", "garbled\n")
    write_file("sys/block/sdc/queue/rotational", "0\n")
    sda, sdb = reader.io_schedulers()
    assert (sda.device, sda.scheduler, sda.rotational, sda.preferred) == ("sda", "mq-deadline", True, "bfq")
    # Without none or mq-deadline the current scheduler stays
    assert sdb.preferred == "kyber"


def test_slowest_services(reader: MetricReader, fake_runner):
    fake_runner.respond(
        ("systemd-analyze", "blame"),
        "1.2s a.service\n5.5s b.service\n300ms c.service\n2s d.service\n",
    )
    services = reader.slowest_services(limit=2)
    assert [(m.name, m.value, m.unit) for m in services] == [("b.service", 5.5, "s"), ("d.service", 2.0, "s")]


def test_slowest_services_error(reader: MetricReader, fake_runner):
    fake_runner.respond(("systemd-analyze", "blame"), stderr="Bootup is not yet finished", exit_code=1)
    with pytest.raises(ExternalFailure):
        reader.slowest_services()


def test_default_start_timeout(reader: MetricReader, fake_runner):
    fake_runner.respond(("systemctl", "show", "-p", "DefaultTimeoutStartUSec"), "DefaultTimeoutStartUSec=1min 30s\n")
    assert reader.default_start_timeout() == "1min 30s"


@patch("archcare.sources.readers.host.memory")
def test_total_memory_rounds_down(mock_memory: MagicMock, reader: MetricReader):
    mock_memory.return_value = MagicMock(total=8 * 1024**3 - 1)
    assert reader.total_memory_gib() == 7
