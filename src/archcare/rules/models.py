"""Rule data models: immutable classification policies used across the codebase."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class Verdict(enum.Enum):
    """Severity of a single observation."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class Direction(enum.Enum):
    """Which way a metric gets worse."""

    HIGHER_IS_WORSE = "higher-is-worse"
    LOWER_IS_WORSE = "lower-is-worse"


@dataclass(frozen=True)
class ThresholdRule:
    """A numeric (warn, critical, direction) classification policy."""

    name: str
    warn_bound: float
    critical_bound: float
    direction: Direction = Direction.HIGHER_IS_WORSE
    unit: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if self.warn_bound < 0 or self.critical_bound < 0:
            raise ValueError(f"Rule '{self.name}': bounds must be non-negative")
        if self.direction is Direction.HIGHER_IS_WORSE:
            if not self.warn_bound < self.critical_bound:
                raise ValueError(
                    f"Rule '{self.name}': warn bound must be below critical bound "
                    f"for {self.direction.value} metrics"
                )
        elif not self.warn_bound > self.critical_bound:
            raise ValueError(
                f"Rule '{self.name}': warn bound must be above critical bound "
                f"for {self.direction.value} metrics"
            )


@dataclass(frozen=True)
class EnumRule:
    """Maps categorical values to verdicts. Values absent from the table are unknown."""

    name: str
    table: dict[str, Verdict] = field(default_factory=dict)
    description: str = ""


class Band(enum.Enum):
    """Coarse rating of a finalized scan percentage."""

    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    POOR = "poor"


@dataclass(frozen=True)
class Banding:
    """Percentage floors for each band; a percentage at a floor gets that band."""

    excellent: int = 90
    good: int = 75
    moderate: int = 50

    def __post_init__(self) -> None:
        if not 0 < self.moderate < self.good < self.excellent <= 100:
            raise ValueError(
                "Banding floors must satisfy 0 < moderate < good < excellent <= 100"
            )


@dataclass(frozen=True)
class RuleSet:
    """A complete, named collection of rules."""

    name: str
    thresholds: dict[str, ThresholdRule] = field(default_factory=dict)
    mappings: dict[str, EnumRule] = field(default_factory=dict)
    bandings: dict[str, Banding] = field(default_factory=dict)
    description: str = ""
    inherit: tuple[str, ...] = ()

    def threshold(self, name: str) -> ThresholdRule:
        try:
            return self.thresholds[name]
        except KeyError:
            raise KeyError(f"No threshold rule named '{name}' in rule set '{self.name}'") from None

    def mapping(self, name: str) -> EnumRule:
        try:
            return self.mappings[name]
        except KeyError:
            raise KeyError(f"No mapping rule named '{name}' in rule set '{self.name}'") from None

    def banding(self, scan: str) -> Banding:
        return self.bandings.get(scan, Banding())
