"""Append-only maintenance log files.

Each line is ``YYYY-mm-dd HH:MM:SS [LEVEL] message``. Messages are escaped so
a record never spans lines, and ``parse_log_line`` undoes the escaping.
Nothing here rotates or truncates a log.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LEVELS = {
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "SUCCESS": SUCCESS,
}

MAIN = "maintenance"
ERRORS = "errors"
UPDATES = "updates"
HARDWARE = "hardware"
SECURITY = "security"
PERFORMANCE = "performance"

_LINE = re.compile(
    r"^(?P<timestamp>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) "
    r"\[(?P<level>INFO|WARNING|ERROR|SUCCESS)\] (?P<message>.*)$"
)
_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r"}


@dataclass(frozen=True)
class LogLine:
    timestamp: datetime
    level: str
    message: str


def escape(message: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in message)


def unescape(text: str) -> str:
    out = []
    chars = iter(text)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        out.append(_UNESCAPES.get(nxt, "\\" + nxt))
    return "".join(out)


def format_log_line(timestamp: datetime, level: str, message: str) -> str:
    return f"{timestamp.strftime(DATE_FORMAT)} [{level}] {escape(message)}"


def parse_log_line(line: str) -> LogLine:
    """Split a log line back into its parts. Raises ValueError on anything else."""
    match = _LINE.match(line.rstrip("\n"))
    if not match:
        raise ValueError(f"Not a maintenance log line: {line!r}")
    return LogLine(
        timestamp=datetime.strptime(match.group("timestamp"), DATE_FORMAT),
        level=match.group("level"),
        message=unescape(match.group("message")),
    )


def level_number(level: str) -> int:
    try:
        return LEVELS[level]
    except KeyError:
        raise ValueError(f"Unknown log level: {level}") from None


def logger_name(path: Path) -> str:
    """One logger per log file; dots are replaced so the name adds no parent loggers."""
    return "archcare.logfile." + str(path.resolve()).replace(".", "_")


class MaintenanceLog:
    """One log category (``maintenance.log``, ``hardware.log``, ...) in a log directory.

    Records go through a dedicated, non-propagating logger with an appending
    FileHandler, so they never reach the diagnostic log on stderr.
    """

    def __init__(self, log_dir: Path, category: str) -> None:
        log_dir.mkdir(parents=True, exist_ok=True)
        self.category = category
        self.path = log_dir / f"{category}.log"
        self._handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        self._handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        self._logger = logging.getLogger(logger_name(self.path))
        # A log left open by an earlier instance would duplicate every record
        for stale in list(self._logger.handlers):
            self._logger.removeHandler(stale)
            stale.close()
        self._logger.propagate = False
        self._logger.setLevel(logging.INFO)
        self._logger.addHandler(self._handler)

    def write(self, level: str, message: str) -> str:
        """Append one record and return the line as written (without newline)."""
        record = self._logger.makeRecord(
            self._logger.name,
            level_number(level),
            __name__,
            0,
            escape(message),
            None,
            None,
        )
        self._logger.handle(record)
        return self._handler.format(record)

    def close(self) -> None:
        self._logger.removeHandler(self._handler)
        self._handler.close()
