"""Cleanup actions: package cache, journal and user temp files."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

from archcare.actions.base import ActionContext, ActionResult, Outcome, run_confirmed
from archcare.report.formatting import format_bytes
from archcare.report.logfile import MAIN

logger = logging.getLogger(__name__)

PACKAGE_CACHE = "var/cache/pacman/pkg"
_DAY = 24 * 60 * 60


def directory_size(path: Path) -> int:
    """Total size of regular files below ``path``; unreadable entries count as 0."""
    total = 0
    for entry in path.rglob("*"):
        try:
            if entry.is_file() and not entry.is_symlink():
                total += entry.stat().st_size
        except OSError:
            continue
    return total


def stale_files(root: Path, max_age_days: int, now: float | None = None) -> list[Path]:
    """Files below ``root`` not accessed within ``max_age_days``."""
    if not root.is_dir():
        return []
    cutoff = (now if now is not None else time.time()) - max_age_days * _DAY
    stale = []
    for entry in root.rglob("*"):
        try:
            if entry.is_file() and not entry.is_symlink() and entry.stat().st_atime < cutoff:
                stale.append(entry)
        except OSError:
            continue
    return stale


class PackageCache:
    name = "package-cache"
    title = "Cleaning package cache..."
    log_categories = (MAIN,)

    def execute(self, ctx: ActionContext) -> ActionResult:
        ctx.require("pacman")
        cache = ctx.sysfs.path(PACKAGE_CACHE)
        size = format_bytes(directory_size(cache)) if cache.is_dir() else "unknown"
        keep = ctx.config.cache_keep_versions

        if ctx.runner.available("paccache"):
            args = ["paccache", f"-rk{keep}"]
            success = f"Package cache cleaned with paccache, kept {keep} versions (was {size})"
        else:
            args = ["pacman", "-Sc", "--noconfirm"]
            success = f"Package cache cleaned (was {size})"
        return run_confirmed(
            ctx,
            self.name,
            args,
            sudo=True,
            question=f"Clean package cache ({size})?",
            success=success,
        )


class JournalVacuum:
    name = "journal-vacuum"
    title = "Cleaning system logs..."
    log_categories = (MAIN,)

    def execute(self, ctx: ActionContext) -> ActionResult:
        ctx.require("journalctl")
        days = ctx.config.log_retention_days
        return run_confirmed(
            ctx,
            self.name,
            ["journalctl", f"--vacuum-time={days}d"],
            sudo=True,
            question=f"Clean system logs (keep last {days} days)?",
            success=f"System logs cleaned, kept the last {days} days",
        )


class TempFiles:
    """Deletes stale ``~/.cache`` files and the ``~/.thumbnails`` directory.

    Runs in-process rather than through the CommandRunner; files that vanish
    or cannot be removed are skipped, as ``find -delete`` would.
    """

    name = "temp-files"
    title = "Cleaning temporary files..."
    log_categories = (MAIN,)

    def execute(self, ctx: ActionContext) -> ActionResult:
        days = ctx.config.temp_file_age_days
        stale = stale_files(ctx.home / ".cache", days)
        thumbnails = ctx.home / ".thumbnails"
        has_thumbnails = thumbnails.is_dir()
        if not stale and not has_thumbnails:
            return ActionResult(self.name, Outcome.SKIPPED, "No temporary files to clean")

        plan = f"{len(stale)} cache files older than {days} days"
        if has_thumbnails:
            plan += " and ~/.thumbnails"
        if ctx.dry_run:
            return ActionResult(self.name, Outcome.DRY_RUN, f"[DRY RUN] Would delete {plan}")
        question = f"Clean temporary files ({plan})?"
        if not ctx.confirmer.confirm(question):
            return ActionResult(self.name, Outcome.DECLINED, f"{question} Skipped by user.")

        removed = 0
        for path in stale:
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                logger.debug("Could not remove %s: %s", path, e)
        if has_thumbnails:
            shutil.rmtree(thumbnails, ignore_errors=True)
        message = f"Temporary files cleaned ({removed} cache files"
        message += ", thumbnails removed)" if has_thumbnails else ")"
        return ActionResult(self.name, Outcome.SUCCEEDED, message)
