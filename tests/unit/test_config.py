"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from archcare.config import ArchCareConfig, parse_bool, parse_key_values


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    for var in ("ARCHCARE_CONFIG", "ARCHCARE_LOG_DIR"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    return tmp_path


def test_defaults(clean_env: Path):
    config = ArchCareConfig.load()
    assert config.data_dir == clean_env / "data" / "archcare"
    assert config.logs_path == clean_env / "data" / "archcare" / "logs"
    assert config.cache_keep_versions == 3
    assert config.log_retention_days == 14
    assert config.temp_file_age_days == 7
    assert not config.auto_reboot
    assert config.logging_enabled


def test_config_file_in_config_dir(clean_env: Path):
    conf = clean_env / "config" / "archcare" / "archcare.conf"
    conf.parent.mkdir(parents=True)
    conf.write_text(
        "# maintenance preferences\n"
        "cache_keep_versions=2\n"
        'log_dir="/var/tmp/archcare"\n'
        "auto_reboot = yes\n"
        "threshold.cpu-temperature.warn=75\n"
        "threshold.cpu-temperature.max=99\n"
        "unknown_key=1\n"
    )
    config = ArchCareConfig.load()
    assert config.cache_keep_versions == 2
    assert config.logs_path == Path("/var/tmp/archcare")
    assert config.auto_reboot
    assert config.threshold_overrides == {"cpu-temperature.warn": 75.0}


def test_explicit_path_wins_over_env(clean_env: Path, monkeypatch: pytest.MonkeyPatch):
    env_conf = clean_env / "env.conf"
    env_conf.write_text("log_retention_days=30\n")
    explicit = clean_env / "explicit.conf"
    explicit.write_text("log_retention_days=5\n")
    monkeypatch.setenv("ARCHCARE_CONFIG", str(env_conf))

    assert ArchCareConfig.load().log_retention_days == 30
    assert ArchCareConfig.load(explicit).log_retention_days == 5


def test_log_dir_from_env(clean_env: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ARCHCARE_LOG_DIR", str(clean_env / "logs"))
    assert ArchCareConfig.load().logs_path == clean_env / "logs"


def test_invalid_values_keep_defaults(clean_env: Path):
    config = ArchCareConfig()
    config.apply({"cache_keep_versions": "-1", "auto_reboot": "maybe", "threshold.disk-usage.warn": "high"})
    assert config.cache_keep_versions == 3
    assert not config.auto_reboot
    assert config.threshold_overrides == {}


def test_parse_helpers():
    assert parse_key_values("a=1\n\n# c=3\nnot a pair\nb = 'two'\n") == {"a": "1", "b": "two"}
    assert parse_bool("On") is True
    assert parse_bool("0") is False
    with pytest.raises(ValueError):
        parse_bool("sometimes")
