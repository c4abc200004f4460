"""Check and Scan definitions plus helpers that turn readings into CheckResults."""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from archcare.sources.readers import MetricReader
from archcare.sources.variants import Unrecognized, describe
from archcare.report.formatting import format_quantity
from archcare.report.logfile import MAIN
from archcare.rules.classifier import classify, classify_enum
from archcare.rules.models import Band, Direction, RuleSet, ThresholdRule, Verdict
from archcare.session.models import CheckResult, Metric


@dataclass
class CheckContext:
    reader: MetricReader
    rules: RuleSet


CheckFunc = Callable[[CheckContext], Iterable[CheckResult]]


@dataclass(frozen=True)
class Check:
    """One named check. ``func`` yields one result per observed subject.

    ``weight`` and ``scoreable`` apply to the unknown result recorded when the
    check cannot run at all.
    """

    name: str
    title: str
    func: CheckFunc
    weight: int = 1
    scoreable: bool = True


@dataclass(frozen=True)
class Scan:
    name: str
    title: str
    checks: tuple[Check, ...]
    band_messages: dict[Band, str] = field(default_factory=dict)
    log_category: str = MAIN


def measured(
    name: str,
    label: str,
    metric: Metric,
    rule: ThresholdRule,
    *,
    weight: int = 1,
    scoreable: bool = True,
    details: tuple[str, ...] = (),
) -> CheckResult:
    """Classify a numeric metric; message reads like ``CPU Core 0: 72°C (HIGH - at or above 70°C)``."""
    verdict = classify(metric.value, rule)
    unit = rule.unit or metric.unit
    text = format_quantity(metric.value, metric.unit)
    return CheckResult(
        name,
        verdict,
        f"{label}: {text} ({_qualifier(verdict, rule, unit)})",
        metric=metric,
        weight=weight,
        scoreable=scoreable,
        details=details,
    )


def _qualifier(verdict: Verdict, rule: ThresholdRule, unit: str) -> str:
    lower = rule.direction is Direction.LOWER_IS_WORSE
    if verdict is Verdict.CRITICAL:
        side = "at or below" if lower else "at or above"
        return f"CRITICAL - {side} {format_quantity(rule.critical_bound, unit)}"
    if verdict is Verdict.WARNING:
        if lower:
            return f"LOW - at or below {format_quantity(rule.warn_bound, unit)}"
        return f"HIGH - at or above {format_quantity(rule.warn_bound, unit)}"
    return "normal"


def value_text(value: object) -> str:
    if isinstance(value, (enum.Enum, Unrecognized)):
        return describe(value)
    return str(value)


def judged(
    name: str,
    message: str,
    value: enum.Enum | Unrecognized | str,
    rules: RuleSet,
    *,
    rule: str | None = None,
    metric: Metric | None = None,
    weight: int = 1,
    scoreable: bool = True,
    details: tuple[str, ...] = (),
) -> CheckResult:
    """Classify a categorical reading with the mapping named ``rule`` (default: ``name``)."""
    verdict = classify_enum(value, rules.mapping(rule or name))
    return CheckResult(
        name,
        verdict,
        message,
        metric=metric or Metric(name, value),
        weight=weight,
        scoreable=scoreable,
        details=details,
    )


def presence(
    name: str,
    items: list[str],
    rules: RuleSet,
    *,
    clean: str,
    found: str,
    severity: str = "finding-warning",
) -> CheckResult:
    """Findings check: normal when ``items`` is empty, else ``severity``'s present verdict."""
    state = "present" if items else "absent"
    message = f"{found}: {len(items)}" if items else clean
    return judged(
        name,
        message,
        state,
        rules,
        rule=severity,
        metric=Metric(name, len(items)),
        details=tuple(items),
    )


def control(name: str, enabled: bool, good: str, bad: str, rules: RuleSet) -> CheckResult:
    """One binary hardening control."""
    return judged(
        name,
        f"✓ {good}" if enabled else f"✗ {bad}",
        "enabled" if enabled else "disabled",
        rules,
        rule="hardening-control",
    )


def unknown(
    name: str, label: str, exc: Exception, *, weight: int = 1, scoreable: bool = True
) -> CheckResult:
    """A result whose reading could not be obtained."""
    return CheckResult(
        name,
        Verdict.UNKNOWN,
        f"{label}: unavailable ({exc})",
        weight=weight,
        scoreable=scoreable,
    )


def info(
    name: str, message: str, metric: Metric | None = None, details: tuple[str, ...] = ()
) -> CheckResult:
    """An informational line that never touches the score."""
    return CheckResult(
        name, Verdict.UNKNOWN, message, metric=metric, scoreable=False, details=details
    )
