"""Scan runner: sequences checks into a ScanSession, isolating each one."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from archcare.checks.base import Check, CheckContext, Scan, unknown
from archcare.errors import ExternalFailure, ParseFailure, Unavailable
from archcare.report.logfile import MAIN
from archcare.session.models import CheckResult, ScanSession

if TYPE_CHECKING:
    from archcare.report.reporter import Reporter

logger = logging.getLogger(__name__)


class ScanRunner:
    """Runs the checks of a Scan in order and reports every result.

    A check that raises never stops the scan: the error becomes an ``unknown``
    result for that check and the next check runs.
    """

    def __init__(self, context: CheckContext, reporter: Reporter) -> None:
        self._context = context
        self._reporter = reporter

    def run(self, scan: Scan) -> ScanSession:
        session = ScanSession(name=scan.name, banding=self._context.rules.banding(scan.name))
        self._reporter.header(scan.title)
        session.start()
        logger.info("Scan '%s' started (session %s)", scan.name, session.id)
        self._reporter.log(scan.log_category, "INFO", f"{scan.name} scan started")

        for check in scan.checks:
            self._reporter.narrate(f"→ {check.title}")
            for result in self.run_check(check, category=scan.log_category):
                session.record(result)
                self._reporter.report_result(result, category=scan.log_category)

        session.finalize()
        logger.info("Scan '%s' finished: %d/%d", scan.name, session.score, session.total)
        self._reporter.summary(session, scan.band_messages, category=scan.log_category)
        return session

    def run_check(self, check: Check, *, category: str = MAIN) -> list[CheckResult]:
        """Results of one check. Results yielded before a failure are kept."""
        results: list[CheckResult] = []
        try:
            for result in check.func(self._context):
                results.append(result)
        except (Unavailable, ParseFailure) as e:
            logger.debug("Check '%s' unavailable: %s", check.name, e)
            results.append(self._unknown(check, e))
        except ExternalFailure as e:
            logger.error("Check '%s' failed: %s", check.name, e)
            self._reporter.log(category, "ERROR", f"{check.name}: {e}")
            results.append(self._unknown(check, e))
        except Exception as e:
            logger.error("Check '%s' crashed: %s", check.name, e, exc_info=True)
            self._reporter.log(category, "ERROR", f"{check.name}: unexpected error: {e}")
            results.append(self._unknown(check, e))
        return results

    def _unknown(self, check: Check, exc: Exception) -> CheckResult:
        return unknown(check.name, check.title, exc, weight=check.weight, scoreable=check.scoreable)
