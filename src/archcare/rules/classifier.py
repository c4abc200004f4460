"""Threshold classifier. Maps a reading plus a rule to a verdict."""

from __future__ import annotations

import enum
import math

from archcare.sources.variants import Unrecognized
from archcare.rules.models import (
    Band,
    Banding,
    Direction,
    EnumRule,
    ThresholdRule,
    Verdict,
)


def classify(value: float, rule: ThresholdRule) -> Verdict:
    """Classify a numeric reading. Ties go to the worse verdict.

    higher-is-worse: ``value >= critical`` is critical, ``value >= warn`` is warning.
    lower-is-worse: ``value <= critical`` is critical, ``value <= warn`` is warning.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Rule '{rule.name}' needs a number, got {value!r}")
    if math.isnan(value):
        raise ValueError(f"Rule '{rule.name}' cannot classify NaN")

    if rule.direction is Direction.HIGHER_IS_WORSE:
        if value >= rule.critical_bound:
            return Verdict.CRITICAL
        if value >= rule.warn_bound:
            return Verdict.WARNING
        return Verdict.NORMAL

    if value <= rule.critical_bound:
        return Verdict.CRITICAL
    if value <= rule.warn_bound:
        return Verdict.WARNING
    return Verdict.NORMAL


def classify_enum(value: enum.Enum | Unrecognized | str, rule: EnumRule) -> Verdict:
    """Look a categorical reading up in the rule's table; anything else is unknown."""
    if isinstance(value, enum.Enum):
        key = str(value.value)
    elif isinstance(value, Unrecognized):
        key = value.raw
    else:
        key = value
    return rule.table.get(key, Verdict.UNKNOWN)


def band_for(percentage: int, banding: Banding) -> Band:
    """Rate a whole-number percentage using the same classifier as single metrics.

    Percentages are integers (floored), so "below the good floor" is the same
    as "at or below ``good - 1``" for a lower-is-worse rule.
    """
    rule = ThresholdRule(
        name="scan-score",
        warn_bound=banding.good - 1,
        critical_bound=banding.moderate - 1,
        direction=Direction.LOWER_IS_WORSE,
        unit="%",
    )
    verdict = classify(percentage, rule)
    if verdict is Verdict.CRITICAL:
        return Band.POOR
    if verdict is Verdict.WARNING:
        return Band.MODERATE
    if percentage >= banding.excellent:
        return Band.EXCELLENT
    return Band.GOOD
