"""Tests for the hardware health checks."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from archcare.checks import hardware
from archcare.checks.base import CheckContext
from archcare.errors import Unavailable
from archcare.sources.host import DiskUsage, MemoryUsage
from archcare.rules.models import Verdict


def test_missing_packages(check_context: CheckContext, fake_runner):
    fake_runner.missing.update({"sensors", "smartctl"})
    (result,) = hardware.missing_packages(check_context)
    assert not result.scoreable
    assert "lm_sensors smartmontools" in result.message


def test_no_missing_packages(check_context: CheckContext):
    assert list(hardware.missing_packages(check_context)) == []


def test_cpu_temperature_scores_hottest(check_context: CheckContext, fake_runner):
    fake_runner.respond("sensors", "Core 0:  +65.0°C\nCore 1:  +72.0°C\n")
    (result,) = hardware.cpu_temperature(check_context)
    assert result.verdict is Verdict.WARNING
    assert result.message == "CPU Core 1: 72°C (HIGH - at or above 70°C)"
    assert result.details == ("Core 0: 65°C", "Core 1: 72°C")


def test_cpu_temperature_critical(check_context: CheckContext, fake_runner):
    fake_runner.respond("sensors", "Tctl:  +91.5°C\n")
    (result,) = hardware.cpu_temperature(check_context)
    assert result.verdict is Verdict.CRITICAL
    assert "CRITICAL - at or above 85°C" in result.message


def test_gpu_temperature_without_gpu(check_context: CheckContext, fake_runner):
    fake_runner.missing.update({"nvidia-smi", "sensors"})
    (result,) = hardware.gpu_temperature(check_context)
    assert result.verdict is Verdict.UNKNOWN
    assert not result.scoreable


def test_smart_health_per_device(check_context: CheckContext, fake_runner, write_file):
    write_file("dev/sda", "")
    write_file("dev/nvme0n1", "")
    fake_runner.respond(
        ("smartctl", "-H", "/dev/sda"), "SMART overall-health self-assessment test result: FAILED!\n"
    )
    fake_runner.respond(("smartctl", "-H", "/dev/nvme0n1"), "Device open failed\n", exit_code=2)
    results = list(hardware.smart_health(check_context))
    assert [r.verdict for r in results] == [Verdict.CRITICAL, Verdict.UNKNOWN]
    assert results[0].message == "Disk /dev/sda: SMART status FAILED"


def test_smart_health_passed(check_context: CheckContext, fake_runner, write_file):
    write_file("dev/sda", "")
    fake_runner.respond(("smartctl", "-H", "/dev/sda"), "SMART overall-health self-assessment test result: PASSED\n")
    (result,) = hardware.smart_health(check_context)
    assert result.verdict is Verdict.NORMAL


def test_smart_checks_need_smartctl(check_context: CheckContext, fake_runner):
    fake_runner.missing.add("smartctl")
    with pytest.raises(Unavailable):
        list(hardware.smart_health(check_context))
    with pytest.raises(Unavailable):
        list(hardware.disk_temperature(check_context))


def test_disk_temperature(check_context: CheckContext, fake_runner, write_file):
    write_file("dev/nvme0n1", "")
    fake_runner.respond(("smartctl", "-A", "/dev/nvme0n1"), "Temperature:   47 Celsius\n")
    (result,) = hardware.disk_temperature(check_context)
    assert result.verdict is Verdict.WARNING
    assert result.message.startswith("Disk /dev/nvme0n1 temperature: 47°C")


@patch("archcare.sources.readers.host.mounted_filesystems")
def test_disk_usage_per_mount(mock_mounts: MagicMock, check_context: CheckContext):
    mock_mounts.return_value = [
        DiskUsage("/dev/nvme0n1p2", "/", "ext4", "rw", 100 * 2**30, 50 * 2**30, 50.0),
        DiskUsage("/dev/sda1", "/data", "xfs", "rw", 100 * 2**30, 96 * 2**30, 96.0),
    ]
    results = list(hardware.disk_usage(check_context))
    assert [r.verdict for r in results] == [Verdict.NORMAL, Verdict.CRITICAL]
    assert results[1].message == "Disk /data usage: 96% (CRITICAL - at or above 95%)"
    assert results[0].details == ("/dev/nvme0n1p2 (ext4): 50.0 GiB of 100.0 GiB",)


@patch("archcare.sources.readers.host.memory")
def test_memory_usage(mock_memory: MagicMock, check_context: CheckContext):
    mock_memory.return_value = MemoryUsage(total=16 * 2**30, used=13 * 2**30, available=3 * 2**30, percent=81.3)
    (result,) = hardware.memory_usage(check_context)
    assert result.verdict is Verdict.WARNING


@patch("archcare.sources.readers.host.swap", return_value=None)
def test_swap_not_configured(mock_swap: MagicMock, check_context: CheckContext):
    (result,) = hardware.swap_usage(check_context)
    assert result.message == "Swap: not configured"
    assert not result.scoreable


@patch("archcare.sources.readers.host.cpu_count", return_value=8)
@patch("archcare.sources.readers.host.load_average", return_value=(17.6, 9.0, 4.0))
def test_load_per_core(mock_load: MagicMock, mock_count: MagicMock, check_context: CheckContext):
    (result,) = hardware.load_per_core(check_context)
    assert result.verdict is Verdict.CRITICAL
    assert result.metric.value == 2.2


def test_no_battery(check_context: CheckContext):
    (result,) = hardware.batteries(check_context)
    assert result.message == "No battery detected (desktop system)"
    assert not result.scoreable


def test_battery_low(check_context: CheckContext, write_file):
    write_file("sys/class/power_supply/BAT0/capacity", "14\n")
    write_file("sys/class/power_supply/BAT0/status", "Discharging\n")
    write_file("sys/class/power_supply/BAT0/health", "Good\n")
    capacity, status, health = hardware.batteries(check_context)
    assert capacity.verdict is Verdict.CRITICAL
    assert capacity.message == "Battery BAT0: 14% (CRITICAL - at or below 15%)"
    assert status.verdict is Verdict.NORMAL
    assert not status.scoreable
    assert health.message == "Battery BAT0 health: Good"


def test_scan_catalogue():
    names = [check.name for check in hardware.SCAN.checks]
    assert names[0] == "missing-packages"
    assert "battery" in names
    assert hardware.SCAN.log_category == "hardware"
