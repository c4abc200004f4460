"""Package actions: database refresh, upgrades, AUR helpers and orphans."""

from __future__ import annotations

import logging
from dataclasses import replace

from archcare.actions.base import ActionContext, ActionResult, Outcome, run_confirmed
from archcare.errors import ExternalFailure, ParseFailure, Unavailable
from archcare.report.logfile import MAIN, UPDATES

logger = logging.getLogger(__name__)

AUR_HELPERS = ("yay", "paru", "pikaur")


class UpdateDatabases:
    name = "update-databases"
    title = "Updating package databases..."
    log_categories = (MAIN, UPDATES)

    def execute(self, ctx: ActionContext) -> ActionResult:
        ctx.require("pacman")
        return run_confirmed(
            ctx,
            self.name,
            ["pacman", "-Sy"],
            sudo=True,
            question=None,
            success="Package databases updated successfully",
        )


class SystemUpgrade:
    """``pacman -Su`` once the pending list is known; offers a reboot for a new kernel."""

    name = "system-upgrade"
    title = "Checking for system updates..."
    log_categories = (MAIN, UPDATES)

    def execute(self, ctx: ActionContext) -> ActionResult:
        ctx.require("pacman")
        reader = ctx.reader
        updates = reader.pending_updates()
        if not updates:
            return ActionResult(self.name, Outcome.SKIPPED, "System is up to date")

        count = len(updates)
        details = tuple(
            f"{u.name} {u.current} -> {u.available}" if u.available else u.name for u in updates
        )
        result = run_confirmed(
            ctx,
            self.name,
            ["pacman", "-Su", "--noconfirm"],
            sudo=True,
            question=f"Proceed with system upgrade ({count} packages)?",
            success=f"System upgrade completed successfully ({count} packages)",
            details=details,
        )
        if result.outcome is not Outcome.SUCCEEDED or not self._kernel_changed(ctx):
            return result

        logger.info("Installed kernel differs from the running one")
        result = replace(result, message=f"{result.message}; kernel updated, reboot recommended")
        if ctx.config.auto_reboot and ctx.confirmer.confirm("Reboot now to load the new kernel?"):
            try:
                ctx.runner.run(["systemctl", "reboot"], sudo=True, capture=False).check()
            except (Unavailable, ExternalFailure) as e:
                logger.error("Reboot after upgrade failed: %s", e)
                result = replace(result, message=f"{result.message}; reboot failed: {e}")
        return result

    def _kernel_changed(self, ctx: ActionContext) -> bool:
        reader = ctx.reader
        try:
            installed = reader.installed_kernel()
        except (Unavailable, ExternalFailure, ParseFailure) as e:
            logger.debug("Cannot compare kernels: %s", e)
            return False
        return installed != reader.running_kernel()


class AurUpdate:
    name = "aur-update"
    title = "Checking AUR packages..."
    log_categories = (MAIN, UPDATES)

    def execute(self, ctx: ActionContext) -> ActionResult:
        helper = next((h for h in AUR_HELPERS if ctx.runner.available(h)), None)
        if helper is None:
            return ActionResult(self.name, Outcome.SKIPPED, "No AUR helper found, skipping AUR updates")
        # AUR helpers refuse to run as root; they call sudo themselves
        return run_confirmed(
            ctx,
            self.name,
            [helper, "-Sua", "--noconfirm"],
            question=f"Update AUR packages with {helper}?",
            success=f"AUR packages updated successfully with {helper}",
        )


class RemoveOrphans:
    name = "remove-orphans"
    title = "Checking for orphaned packages..."
    log_categories = (MAIN,)

    def execute(self, ctx: ActionContext) -> ActionResult:
        ctx.require("pacman")
        result = ctx.runner.run(["pacman", "-Qtdq"])
        if not result.ok and result.stderr.strip():
            result.check()
        orphans = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not orphans:
            return ActionResult(self.name, Outcome.SKIPPED, "No orphaned packages to remove")

        return run_confirmed(
            ctx,
            self.name,
            ["pacman", "-Rns", "--noconfirm", *orphans],
            sudo=True,
            question=f"Remove {len(orphans)} orphaned packages?",
            success=f"Removed {len(orphans)} orphaned packages",
            details=tuple(orphans),
        )
