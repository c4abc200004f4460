"""Single-value reads from /sys, /proc and /etc.

All paths are resolved below ``root`` so the same code reads the live system
(``/``) or a directory tree laid out by a test.
"""

from __future__ import annotations

import logging
import stat
from pathlib import Path

from archcare.errors import Unavailable

logger = logging.getLogger(__name__)

_CPUFREQ = "sys/devices/system/cpu/cpu0/cpufreq"
_BLOCK_DEVICE_PATTERNS = ("dev/sd?", "dev/nvme?n?", "dev/mmcblk?")
_VIRTUAL_BLOCK_PREFIXES = ("loop", "ram", "zram")

# Plausible ranges; thermal zones also report ambient and bogus sensors
_THERMAL_ZONE_RANGE = (30.0, 150.0)
_DRM_GPU_RANGE = (20.0, 150.0)


class SysFs:
    """Reads kernel-exported values below a configurable root directory."""

    def __init__(self, root: str | Path = "/") -> None:
        self.root = Path(root)

    def path(self, system_path: str) -> Path:
        return self.root / system_path.lstrip("/")

    def exists(self, system_path: str) -> bool:
        return self.path(system_path).exists()

    def read_text(self, system_path: str) -> str:
        """Whole file contents. Raises Unavailable when missing or unreadable."""
        path = self.path(system_path)
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            raise Unavailable(system_path, "no such file") from None
        except PermissionError:
            raise Unavailable(system_path, "permission denied") from None
        except OSError as e:
            raise Unavailable(system_path, str(e)) from None

    def read_value(self, system_path: str) -> str:
        """First line of a single-value file, stripped."""
        text = self.read_text(system_path).strip()
        return text.splitlines()[0].strip() if text else ""

    def file_mode(self, system_path: str) -> int:
        """Permission bits, e.g. ``0o644``."""
        try:
            return stat.S_IMODE(self.path(system_path).stat().st_mode)
        except FileNotFoundError:
            raise Unavailable(system_path, "no such file") from None
        except PermissionError:
            raise Unavailable(system_path, "permission denied") from None

    def glob(self, pattern: str) -> list[Path]:
        return sorted(self.root.glob(pattern.lstrip("/")))

    def system_path_of(self, path: Path) -> str:
        return "/" + str(path.relative_to(self.root))

    def thermal_zone_temperatures(self) -> list[tuple[str, float]]:
        """``(zone, °C)`` for every thermal zone reporting a plausible CPU temperature."""
        readings = []
        for temp_file in self.glob("sys/class/thermal/thermal_zone*/temp"):
            celsius = self._millidegrees(temp_file)
            if celsius is None:
                continue
            low, high = _THERMAL_ZONE_RANGE
            if low < celsius < high:
                readings.append((temp_file.parent.name, celsius))
        return readings

    def drm_gpu_temperature(self) -> float | None:
        """First plausible hwmon reading of the primary DRM card, if any."""
        for temp_file in self.glob("sys/class/drm/card0/device/hwmon/hwmon*/temp1_input"):
            celsius = self._millidegrees(temp_file)
            if celsius is None:
                continue
            low, high = _DRM_GPU_RANGE
            if low < celsius < high:
                return celsius
        return None

    def block_devices(self) -> list[str]:
        """Whole-disk device nodes (``/dev/sda``, ``/dev/nvme0n1``, ``/dev/mmcblk0``)."""
        devices = []
        for pattern in _BLOCK_DEVICE_PATTERNS:
            devices.extend(self.system_path_of(p) for p in self.glob(pattern))
        return devices

    def batteries(self) -> list[str]:
        return [p.name for p in self.glob("sys/class/power_supply/BAT*") if p.is_dir()]

    def battery_value(self, battery: str, attribute: str) -> str:
        return self.read_value(f"sys/class/power_supply/{battery}/{attribute}")

    def cpufreq(self, attribute: str) -> str:
        """A cpu0 cpufreq attribute such as ``scaling_governor``."""
        return self.read_value(f"{_CPUFREQ}/{attribute}")

    def tcp_congestion_control(self) -> str:
        return self.read_value("proc/sys/net/ipv4/tcp_congestion_control")

    def kernel_parameter(self, key: str) -> str:
        """A sysctl value from /proc/sys with whitespace collapsed, e.g. ``vm.swappiness``."""
        return " ".join(self.read_text("proc/sys/" + key.replace(".", "/")).split())

    def block_queues(self) -> list[str]:
        """Block devices with an I/O scheduler, without loop and RAM devices."""
        return [
            p.parent.parent.name
            for p in self.glob("sys/block/*/queue/scheduler")
            if not p.parent.parent.name.startswith(_VIRTUAL_BLOCK_PREFIXES)
        ]

    def _millidegrees(self, path: Path) -> float | None:
        try:
            return int(path.read_text().strip()) / 1000
        except (OSError, ValueError):
            logger.debug("Skipping unreadable temperature file %s", path)
            return None
