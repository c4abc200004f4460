"""Session data models: metrics, check results and scan session state."""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import Union

from archcare.sources.variants import Unrecognized
from archcare.rules.classifier import band_for
from archcare.rules.models import Band, Banding, Verdict

MetricValue = Union[int, float, str, enum.Enum, Unrecognized]


class SessionStatus(enum.Enum):
    """Lifecycle state of a scan session."""

    IDLE = "idle"
    RUNNING = "running"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class Metric:
    """A single named observation of system state."""

    name: str
    value: MetricValue
    unit: str = ""
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class CheckResult:
    """The verdict of one check, plus what it observed.

    Non-scoreable results are informational: they are reported and logged but
    never touch the session tally.
    """

    name: str
    verdict: Verdict
    message: str
    metric: Metric | None = None
    weight: int = 1
    scoreable: bool = True
    details: tuple[str, ...] = ()

    @property
    def points(self) -> int:
        if not self.scoreable:
            return 0
        if self.verdict is Verdict.NORMAL:
            return self.weight
        if self.verdict is Verdict.WARNING:
            return self.weight // 2
        return 0


@dataclass(frozen=True)
class ScanSummary:
    score: int
    total: int
    percentage: int
    band: Band


@dataclass
class ScanSession:
    """One end-to-end run of a set of checks."""

    name: str
    banding: Banding = field(default_factory=Banding)
    status: SessionStatus = SessionStatus.IDLE
    results: list[CheckResult] = field(default_factory=list)
    score: int = 0
    total: int = 0
    summary: ScanSummary | None = None
    start_time: float | None = None
    end_time: float | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def start(self) -> ScanSession:
        if self.status is not SessionStatus.IDLE:
            raise RuntimeError(f"Session '{self.name}' already started")
        self.status = SessionStatus.RUNNING
        self.start_time = time.time()
        return self

    def record(self, result: CheckResult) -> ScanSession:
        if self.status is not SessionStatus.RUNNING:
            raise RuntimeError(
                f"Cannot record into session '{self.name}' in state {self.status.value}"
            )
        self.results.append(result)
        if result.scoreable:
            self.total += result.weight
            self.score += result.points
        return self

    def finalize(self) -> ScanSummary:
        if self.status is not SessionStatus.RUNNING:
            raise RuntimeError(
                f"Cannot finalize session '{self.name}' in state {self.status.value}"
            )
        percentage = self.score * 100 // self.total if self.total else 0
        self.summary = ScanSummary(
            score=self.score,
            total=self.total,
            percentage=percentage,
            band=band_for(percentage, self.banding),
        )
        self.status = SessionStatus.FINALIZED
        self.end_time = time.time()
        return self.summary

    @property
    def has_critical(self) -> bool:
        """A scored result was critical. Informational results never fail a scan."""
        return any(r.scoreable and r.verdict is Verdict.CRITICAL for r in self.results)

    def count(self, verdict: Verdict) -> int:
        return sum(1 for r in self.results if r.verdict is verdict)
