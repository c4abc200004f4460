"""Closed value sets reported by system tools.

Each reading is parsed into a member of its enum or, when the tool reports
something outside the known set, into ``Unrecognized(raw)``. There is no
default member: an unexpected value stays visibly unexpected.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TypeVar


@dataclass(frozen=True)
class Unrecognized:
    """A raw value that matched no known variant."""

    raw: str

    def __str__(self) -> str:
        return self.raw or "<empty>"


class SmartHealth(enum.Enum):
    PASSED = "PASSED"
    OK = "OK"
    FAILED = "FAILED"


class RootLogin(enum.Enum):
    NO = "no"
    YES = "yes"
    PROHIBIT_PASSWORD = "prohibit-password"
    WITHOUT_PASSWORD = "without-password"
    FORCED_COMMANDS_ONLY = "forced-commands-only"


class PasswordAuth(enum.Enum):
    NO = "no"
    YES = "yes"


class Governor(enum.Enum):
    SCHEDUTIL = "schedutil"
    ONDEMAND = "ondemand"
    PERFORMANCE = "performance"
    POWERSAVE = "powersave"
    CONSERVATIVE = "conservative"
    USERSPACE = "userspace"


class EnergyPreference(enum.Enum):
    DEFAULT = "default"
    PERFORMANCE = "performance"
    BALANCE_PERFORMANCE = "balance_performance"
    BALANCE_POWER = "balance_power"
    POWER = "power"


class CongestionControl(enum.Enum):
    BBR = "bbr"
    CUBIC = "cubic"
    RENO = "reno"


class BatteryStatus(enum.Enum):
    CHARGING = "Charging"
    DISCHARGING = "Discharging"
    FULL = "Full"
    NOT_CHARGING = "Not charging"
    UNKNOWN = "Unknown"


class ServiceState(enum.Enum):
    """``systemctl is-active`` answers."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    FAILED = "failed"
    ACTIVATING = "activating"
    DEACTIVATING = "deactivating"
    RELOADING = "reloading"


class FirewallState(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MISSING = "missing"


E = TypeVar("E", bound=enum.Enum)


def parse_variant(kind: type[E], raw: str) -> E | Unrecognized:
    """Match ``raw`` (surrounding whitespace ignored) against ``kind``'s values."""
    value = raw.strip()
    for member in kind:
        if member.value == value:
            return member
    return Unrecognized(value)


def describe(value: enum.Enum | Unrecognized) -> str:
    if isinstance(value, Unrecognized):
        return f"unrecognized '{value}'"
    return str(value.value)
