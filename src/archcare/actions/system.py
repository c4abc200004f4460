"""System database refreshes: locate and man."""

from __future__ import annotations

from archcare.actions.base import ActionContext, ActionResult, run_confirmed
from archcare.report.logfile import MAIN


class LocateDatabase:
    name = "locate-database"
    title = "Updating locate database..."
    log_categories = (MAIN,)

    def execute(self, ctx: ActionContext) -> ActionResult:
        ctx.require("updatedb")
        return run_confirmed(
            ctx,
            self.name,
            ["updatedb"],
            sudo=True,
            question="Update locate database?",
            success="Locate database updated",
        )


class ManDatabase:
    name = "man-database"
    title = "Updating man database..."
    log_categories = (MAIN,)

    def execute(self, ctx: ActionContext) -> ActionResult:
        ctx.require("mandb")
        return run_confirmed(
            ctx,
            self.name,
            ["mandb", "--quiet"],
            sudo=True,
            question=None,
            success="Man database updated",
        )
