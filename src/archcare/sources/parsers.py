"""Text parsers: one per tool output format.

Every parser takes the raw text a tool printed and either returns the typed
value or raises ParseFailure. None of them runs anything.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from archcare.errors import ParseFailure

_SENSOR_LINE = re.compile(r"^(?P<label>[^:]+):\s+\+?(?P<temp>-?\d+(?:\.\d+)?)°C")
_CPU_LABEL = re.compile(r"^(Core \d+|Tctl|Tdie|Package id \d+)$")
_GPU_LABEL = re.compile(r"junction|edge", re.IGNORECASE)

_SMART_HEALTH = re.compile(
    r"(?:SMART overall-health self-assessment test result|SMART Health Status):\s*(\S+)"
)
_NVME_TEMPERATURE = re.compile(r"^Temperature:\s+(\d+)\s+Celsius", re.MULTILINE)
_ATA_ATTRIBUTE = re.compile(r"^\s*\d+\s+\S*Temperature\S*\s", re.IGNORECASE)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(h|min|ms|s)\b")
_DURATION_UNITS = {"h": 3600.0, "min": 60.0, "s": 1.0, "ms": 0.001}
_BLAME_LINE = re.compile(r"^\s*(?P<time>(?:\d+(?:\.\d+)?(?:h|min|ms|s)\s+)+)(?P<unit>\S+\.[a-z]+)\s*$")

_AUTH_FAILURE = re.compile(r"authentication failure|password check failed")
_AUTH_NOISE = re.compile(r"systemd|gdm|Failed to")

SECURITY_PACKAGES = re.compile(
    r"kernel|linux|openssl|openssh|glibc|systemd|sudo|polkit|dbus|firefox|chromium",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class PendingUpdate:
    """One line of ``pacman -Qu``."""

    name: str
    current: str
    available: str

    @property
    def security_related(self) -> bool:
        return bool(SECURITY_PACKAGES.search(self.name))


def sensor_temperatures(text: str) -> list[tuple[str, float]]:
    """All ``label: +NN.N°C`` readings from ``sensors`` output, in order."""
    readings = []
    for line in text.splitlines():
        match = _SENSOR_LINE.match(line.strip())
        if match:
            readings.append((match.group("label").strip(), float(match.group("temp"))))
    return readings


def cpu_sensor_temperatures(text: str) -> list[tuple[str, float]]:
    """Core / Tctl / Package readings from ``sensors``."""
    readings = [(label, temp) for label, temp in sensor_temperatures(text) if _CPU_LABEL.match(label)]
    if not readings:
        raise ParseFailure("sensors", text)
    return readings


def gpu_sensor_temperature(text: str) -> float:
    """First edge/junction reading from ``sensors`` (amdgpu)."""
    for label, temp in sensor_temperatures(text):
        if _GPU_LABEL.search(label):
            return temp
    raise ParseFailure("sensors", text)


def nvidia_temperatures(text: str) -> list[float]:
    """``nvidia-smi --query-gpu=temperature.gpu --format=csv,noheader,nounits``."""
    temps = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            temps.append(float(line))
        except ValueError:
            raise ParseFailure("nvidia-smi", text) from None
    if not temps:
        raise ParseFailure("nvidia-smi", text)
    return temps


def smart_health(text: str) -> str:
    """Raw overall-health word from ``smartctl -H`` (ATA, NVMe or SCSI).

    A failing ATA drive reports ``FAILED!``; the trailing ``!`` is dropped.
    """
    match = _SMART_HEALTH.search(text)
    if not match:
        raise ParseFailure("smartctl -H", text)
    return match.group(1).rstrip("!")


def smart_temperature(text: str) -> int:
    """Drive temperature from ``smartctl -A``.

    ATA drives report it as the RAW_VALUE (10th column) of the first
    temperature attribute; NVMe drives print a ``Temperature: NN Celsius`` line.
    """
    for line in text.splitlines():
        if _ATA_ATTRIBUTE.match(line):
            parts = line.split()
            if len(parts) >= 10 and parts[9].isdigit() and int(parts[9]) > 0:
                return int(parts[9])
    match = _NVME_TEMPERATURE.search(text)
    if match and int(match.group(1)) > 0:
        return int(match.group(1))
    raise ParseFailure("smartctl -A", text)


def sysctl_value(text: str) -> str:
    """Value from ``sysctl -n key`` or ``sysctl key`` (``key = value``)."""
    line = text.strip().splitlines()[0] if text.strip() else ""
    if not line:
        raise ParseFailure("sysctl", text)
    if " = " in line:
        return line.split(" = ", 1)[1].strip()
    return line.strip()


def directive(text: str, key: str) -> str | None:
    """First value of ``key`` in a whitespace-separated config file (sshd_config, login.defs).

    Returns None when the directive is absent, which callers treat as the
    program's built-in default rather than a parse failure.
    """
    for line in text.splitlines():
        parts = line.strip().split()
        if len(parts) >= 2 and parts[0] == key:
            return parts[1]
    return None


def pending_updates(text: str) -> list[PendingUpdate]:
    """``pacman -Qu``: ``name old -> new`` per line."""
    updates = []
    for line in text.splitlines():
        parts = line.split()
        if not parts:
            continue
        if len(parts) >= 4 and parts[2] == "->":
            updates.append(PendingUpdate(parts[0], parts[1], parts[3]))
        elif len(parts) == 1:
            updates.append(PendingUpdate(parts[0], "", ""))
        else:
            raise ParseFailure("pacman -Qu", line)
    return updates


def package_version(text: str) -> str:
    """``pacman -Q name`` prints ``name version``."""
    parts = text.split()
    if len(parts) < 2:
        raise ParseFailure("pacman -Q", text)
    return parts[1]


def kernel_release(package_version_text: str) -> str:
    """Turn a linux package version (``6.9.7.arch1-1``) into a uname release (``6.9.7-arch1-1``)."""
    return package_version_text.replace(".arch", "-arch")


def failed_units(text: str) -> list[str]:
    """Unit names from ``systemctl --failed --no-legend --plain``."""
    units = []
    for line in text.splitlines():
        parts = line.replace("●", " ").split()
        if parts:
            units.append(parts[0])
    return units


def duration_seconds(text: str) -> float:
    """Sum a systemd duration such as ``1min 2.345s`` or ``812ms``."""
    parts = _DURATION_PART.findall(text)
    if not parts:
        raise ParseFailure("duration", text)
    return sum(float(number) * _DURATION_UNITS[unit] for number, unit in parts)


def boot_time(text: str) -> float:
    """Total from ``systemd-analyze``: ``Startup finished in ... = 18.204s``."""
    first_line = text.strip().splitlines()[0] if text.strip() else ""
    if not first_line.startswith("Startup finished") or "=" not in first_line:
        raise ParseFailure("systemd-analyze", text)
    return duration_seconds(first_line.rsplit("=", 1)[1])


def blame(text: str) -> list[tuple[str, float]]:
    """``(unit, seconds)`` per line of ``systemd-analyze blame``, in output order."""
    entries = []
    for line in text.splitlines():
        match = _BLAME_LINE.match(line)
        if match:
            entries.append((match.group("unit"), duration_seconds(match.group("time"))))
    if text.strip() and not entries:
        raise ParseFailure("systemd-analyze blame", text)
    return entries


def systemctl_property(text: str, name: str) -> str:
    """Value of ``name`` in ``systemctl show -p NAME`` output (``NAME=value``)."""
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip() == name:
            return value.strip()
    raise ParseFailure(f"systemctl show {name}", text)


def io_scheduler(text: str) -> tuple[str, list[str]]:
    """``mq-deadline kyber [bfq] none`` -> ``("bfq", ["mq-deadline", "kyber", "bfq", "none"])``."""
    words = text.split()
    current = next((w.strip("[]") for w in words if w.startswith("[") and w.endswith("]")), None)
    if current is None:
        raise ParseFailure("queue/scheduler", text)
    return current, [w.strip("[]") for w in words]


def ufw_status(text: str) -> str:
    """``ufw status`` first line: ``Status: active``."""
    first_line = text.strip().splitlines()[0] if text.strip() else ""
    key, sep, value = first_line.partition(":")
    if not sep or key.strip() != "Status":
        raise ParseFailure("ufw status", text)
    return value.strip()


def iptables_rule_lines(text: str) -> int:
    return len([line for line in text.splitlines() if line.strip()])


def auth_failures(journal_text: str) -> list[str]:
    """Journal lines that record a real authentication failure."""
    return [
        line
        for line in journal_text.splitlines()
        if _AUTH_FAILURE.search(line) and not _AUTH_NOISE.search(line)
    ]


def integrity_problems(text: str) -> list[str]:
    """``pacman -Qk`` lines reporting anything other than ``0 missing files``."""
    return [
        line.strip()
        for line in text.splitlines()
        if line.strip() and "0 missing files" not in line
    ]


def colon_records(text: str, min_fields: int) -> list[list[str]]:
    """Records of a colon-separated database such as /etc/passwd or /etc/shadow."""
    records = []
    for line in text.splitlines():
        if not line.strip() or line.startswith("#"):
            continue
        fields = line.split(":")
        if len(fields) < min_fields:
            raise ParseFailure("colon-separated file", line)
        records.append(fields)
    return records
