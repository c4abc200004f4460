"""Tests for rule YAML loading, presets and threshold overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from archcare.rules.loader import apply_overrides, load_preset, load_rules, load_rules_from_string
from archcare.rules.models import Banding, Direction, Verdict


def test_default_preset_inherits_every_scan():
    rules = load_preset()
    assert rules.name == "default"
    for name in ("cpu-temperature", "security-updates", "boot-time", "failed-units"):
        assert name in rules.thresholds
    assert rules.banding("performance") == Banding(excellent=90, good=70, moderate=50)
    assert rules.banding("security") == Banding()


def test_preset_values():
    rules = load_preset("hardware")
    battery = rules.threshold("battery-capacity")
    assert battery.direction is Direction.LOWER_IS_WORSE
    assert (battery.warn_bound, battery.critical_bound) == (30, 15)
    assert rules.mapping("smart-health").table["FAILED"] is Verdict.CRITICAL


def test_yes_no_keys_survive_yaml_booleans():
    rules = load_preset("security")
    table = rules.mapping("ssh-root-login").table
    assert table["yes"] is Verdict.CRITICAL
    assert table["no"] is Verdict.NORMAL


def test_unknown_preset():
    with pytest.raises(ValueError, match="Unknown rule preset"):
        load_preset("nope")


def test_load_from_string_with_inheritance_and_override():
    rules = load_rules_from_string(
        """
name: laptop
inherit: preset:hardware
thresholds:
  cpu-temperature:
    warn: 80
    critical: 95
    unit: "°C"
"""
    )
    assert rules.inherit == ("preset:hardware",)
    assert rules.threshold("cpu-temperature").warn_bound == 80
    assert rules.threshold("disk-usage").warn_bound == 85


def test_load_rules_from_file(tmp_path: Path):
    path = tmp_path / "rules.yaml"
    path.write_text(
        """
name: custom
mappings:
  firewall:
    table:
      active: normal
      inactive: critical
    description: Strict firewall policy
"""
    )
    rules = load_rules(path)
    mapping = rules.mapping("firewall")
    assert mapping.table == {"active": Verdict.NORMAL, "inactive": Verdict.CRITICAL}
    assert mapping.description == "Strict firewall policy"


def test_circular_inheritance(tmp_path: Path):
    a = tmp_path / "a.yaml"
    b = tmp_path / "b.yaml"
    a.write_text(f"name: a\ninherit: {b}\n")
    b.write_text(f"name: b\ninherit: {a}\n")
    with pytest.raises(ValueError, match="Circular"):
        load_rules(a)


def test_invalid_documents():
    with pytest.raises(ValueError, match="mapping"):
        load_rules_from_string("- just\n- a list\n")
    with pytest.raises(ValueError, match="unknown direction"):
        load_rules_from_string("thresholds:\n  x:\n    warn: 1\n    critical: 2\n    direction: up\n")
    with pytest.raises(ValueError, match="unknown verdict"):
        load_rules_from_string("mappings:\n  x:\n    a: fine\n")


def test_missing_rule_lookup():
    rules = load_preset("system")
    with pytest.raises(KeyError, match="No threshold rule"):
        rules.threshold("cpu-temperature")
    with pytest.raises(KeyError, match="No mapping rule"):
        rules.mapping("firewall")


def test_apply_overrides():
    rules = load_preset()
    updated = apply_overrides(
        rules,
        {"cpu-temperature.warn": 75.0, "disk-usage.critical": 98.0, "no-such-rule.warn": 1.0},
    )
    assert updated.threshold("cpu-temperature").warn_bound == 75.0
    assert updated.threshold("disk-usage").critical_bound == 98.0
    assert rules.threshold("cpu-temperature").warn_bound == 70


def test_apply_overrides_validates_order():
    with pytest.raises(ValueError):
        apply_overrides(load_preset(), {"cpu-temperature.warn": 99.0})
