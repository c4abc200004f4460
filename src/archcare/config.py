"""Global configuration: XDG paths, env vars, key=value config file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_THRESHOLD_PREFIX = "threshold."


def _default_data_dir() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "archcare"
    return Path.home() / ".local" / "share" / "archcare"


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "archcare"
    return Path.home() / ".config" / "archcare"


@dataclass
class ArchCareConfig:
    """Application-wide configuration."""

    data_dir: Path = field(default_factory=_default_data_dir)
    config_dir: Path = field(default_factory=_default_config_dir)
    log_dir: Path | None = None
    rules_file: Path | None = None
    cache_keep_versions: int = 3
    log_retention_days: int = 14
    temp_file_age_days: int = 7
    auto_reboot: bool = False
    logging_enabled: bool = True
    verbose: bool = False
    threshold_overrides: dict[str, float] = field(default_factory=dict)

    @property
    def logs_path(self) -> Path:
        return self.log_dir if self.log_dir is not None else self.data_dir / "logs"

    @classmethod
    def load(cls, path: str | Path | None = None) -> ArchCareConfig:
        """Load config from environment variables and an optional key=value file.

        Missing keys keep their defaults. The file named by ``path`` wins over
        ``ARCHCARE_CONFIG``, which wins over ``<config_dir>/archcare.conf``.
        """
        config = cls()

        env_log_dir = os.environ.get("ARCHCARE_LOG_DIR")
        if env_log_dir:
            config.log_dir = Path(env_log_dir)

        if path is None:
            env_path = os.environ.get("ARCHCARE_CONFIG")
            candidate = Path(env_path) if env_path else config.config_dir / "archcare.conf"
            if candidate.is_file():
                path = candidate

        if path is not None:
            config.apply(parse_key_values(Path(path).read_text(encoding="utf-8")))

        return config

    def apply(self, values: dict[str, str]) -> None:
        """Apply parsed key=value pairs; unknown keys are ignored."""
        for key, raw in values.items():
            if key.startswith(_THRESHOLD_PREFIX):
                self._apply_threshold(key[len(_THRESHOLD_PREFIX) :], raw)
                continue

            setter = _SETTERS.get(key)
            if setter is None:
                logger.debug("Ignoring unknown config key '%s'", key)
                continue
            try:
                setter(self, raw)
            except ValueError:
                logger.warning("Ignoring invalid value for '%s': %r", key, raw)

    def _apply_threshold(self, key: str, raw: str) -> None:
        rule_name, _, bound = key.rpartition(".")
        if not rule_name or bound not in ("warn", "critical"):
            logger.debug("Ignoring unknown threshold key '%s'", key)
            return
        try:
            self.threshold_overrides[key] = float(raw)
        except ValueError:
            logger.warning("Ignoring invalid threshold for '%s': %r", key, raw)


def parse_key_values(text: str) -> dict[str, str]:
    """Parse a flat ``key=value`` file. Comments (#) and blank lines are skipped."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            logger.debug("Skipping config line without '=': %r", line)
            continue
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean: {raw!r}")


def _non_negative_int(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise ValueError(f"Negative value: {raw!r}")
    return value


def _set(attr: str, convert):
    def setter(config: ArchCareConfig, raw: str) -> None:
        setattr(config, attr, convert(raw))

    return setter


_SETTERS = {
    "cache_keep_versions": _set("cache_keep_versions", _non_negative_int),
    "log_retention_days": _set("log_retention_days", _non_negative_int),
    "temp_file_age_days": _set("temp_file_age_days", _non_negative_int),
    "auto_reboot": _set("auto_reboot", parse_bool),
    "logging_enabled": _set("logging_enabled", parse_bool),
    "verbose": _set("verbose", parse_bool),
    "log_dir": _set("log_dir", lambda raw: Path(raw).expanduser()),
    "rules_file": _set("rules_file", lambda raw: Path(raw).expanduser()),
}
