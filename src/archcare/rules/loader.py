"""Load and resolve RuleSet objects from YAML files."""

from __future__ import annotations

import importlib.resources
from dataclasses import replace
from pathlib import Path

import yaml

from archcare.rules.models import (
    Banding,
    Direction,
    EnumRule,
    RuleSet,
    ThresholdRule,
    Verdict,
)

_PRESET_PREFIX = "preset:"
DEFAULT_PRESET = "default"


def load_rules(path: str | Path, _resolved: set[str] | None = None) -> RuleSet:
    """Load a rule set from a YAML file path."""
    text = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Rule YAML must be a mapping")
    return _build_rules(data, _resolved=_resolved if _resolved is not None else set())


def load_rules_from_string(text: str) -> RuleSet:
    """Parse a YAML string into a RuleSet, resolving inheritance."""
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Rule YAML must be a mapping")
    return _build_rules(data, _resolved=set())


def load_preset(name: str = DEFAULT_PRESET) -> RuleSet:
    """Load one of the rule sets shipped with the package."""
    return _load_preset(name, set())


def apply_overrides(rules: RuleSet, overrides: dict[str, float]) -> RuleSet:
    """Return a copy of ``rules`` with ``<rule>.warn`` / ``<rule>.critical`` bounds replaced.

    Overrides naming a rule that does not exist are ignored. The rebuilt rule is
    validated, so an override that breaks bound ordering raises ValueError.
    """
    thresholds = dict(rules.thresholds)
    for key, value in overrides.items():
        rule_name, _, bound = key.rpartition(".")
        rule = thresholds.get(rule_name)
        if rule is None:
            continue
        if bound == "warn":
            thresholds[rule_name] = replace(rule, warn_bound=value)
        elif bound == "critical":
            thresholds[rule_name] = replace(rule, critical_bound=value)
    return replace(rules, thresholds=thresholds)


def _build_rules(data: dict, _resolved: set[str]) -> RuleSet:
    name = data.get("name", "unnamed")

    # Circular inheritance detection
    if name in _resolved:
        raise ValueError(f"Circular rule inheritance detected: {name}")
    _resolved.add(name)

    inherit_list = data.get("inherit", [])
    if isinstance(inherit_list, str):
        inherit_list = [inherit_list]

    # Inherited rules first so own rules override them
    thresholds: dict[str, ThresholdRule] = {}
    mappings: dict[str, EnumRule] = {}
    bandings: dict[str, Banding] = {}
    for ref in inherit_list:
        # Each branch gets its own copy so diamond inheritance is not a cycle
        parent = _load_ref(ref, set(_resolved))
        thresholds.update(parent.thresholds)
        mappings.update(parent.mappings)
        bandings.update(parent.bandings)

    thresholds.update(_parse_thresholds(data.get("thresholds") or {}))
    mappings.update(_parse_mappings(data.get("mappings") or {}))
    bandings.update(_parse_bandings(data.get("bandings") or {}))

    return RuleSet(
        name=name,
        thresholds=thresholds,
        mappings=mappings,
        bandings=bandings,
        description=data.get("description", ""),
        inherit=tuple(inherit_list),
    )


def _parse_thresholds(data: dict) -> dict[str, ThresholdRule]:
    rules: dict[str, ThresholdRule] = {}
    for rule_name, entry in data.items():
        if not isinstance(entry, dict):
            raise ValueError(f"Threshold '{rule_name}' must be a mapping")
        try:
            direction = Direction(entry.get("direction", Direction.HIGHER_IS_WORSE.value))
        except ValueError:
            raise ValueError(
                f"Threshold '{rule_name}': unknown direction {entry.get('direction')!r}"
            ) from None
        rules[rule_name] = ThresholdRule(
            name=rule_name,
            warn_bound=float(entry["warn"]),
            critical_bound=float(entry["critical"]),
            direction=direction,
            unit=str(entry.get("unit", "")),
            description=entry.get("description", ""),
        )
    return rules


def _parse_mappings(data: dict) -> dict[str, EnumRule]:
    rules: dict[str, EnumRule] = {}
    for rule_name, entry in data.items():
        if not isinstance(entry, dict):
            raise ValueError(f"Mapping '{rule_name}' must be a mapping")
        description = ""
        table_data = entry
        if "table" in entry:
            table_data = entry["table"] or {}
            description = entry.get("description", "")
        table: dict[str, Verdict] = {}
        for raw_key, raw_verdict in table_data.items():
            try:
                table[_table_key(raw_key)] = Verdict(raw_verdict)
            except ValueError:
                raise ValueError(
                    f"Mapping '{rule_name}': unknown verdict {raw_verdict!r}"
                ) from None
        rules[rule_name] = EnumRule(name=rule_name, table=table, description=description)
    return rules


def _parse_bandings(data: dict) -> dict[str, Banding]:
    bandings: dict[str, Banding] = {}
    for scan, entry in data.items():
        bandings[scan] = Banding(
            excellent=int(entry.get("excellent", 90)),
            good=int(entry.get("good", 75)),
            moderate=int(entry.get("moderate", 50)),
        )
    return bandings


def _table_key(raw) -> str:
    # YAML 1.1 reads bare yes/no/on/off as booleans
    if raw is True:
        return "yes"
    if raw is False:
        return "no"
    return str(raw)


def _load_ref(ref: str, _resolved: set[str]) -> RuleSet:
    if ref.startswith(_PRESET_PREFIX):
        preset_name = ref[len(_PRESET_PREFIX) :]
        return _load_preset(preset_name, _resolved)
    # Treat as file path
    return load_rules(ref, _resolved=_resolved)


def _load_preset(name: str, _resolved: set[str]) -> RuleSet:
    filename = f"{name}.yaml"
    pkg = importlib.resources.files("archcare.rules.presets")
    resource = pkg.joinpath(filename)
    if not resource.is_file():
        raise ValueError(f"Unknown rule preset: {name}")
    text = resource.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return _build_rules(data, _resolved)
