"""CLI commands: archcare update | clean | all."""

from __future__ import annotations

import platform
import sys
import time

import click

from archcare.actions.cleanup import JournalVacuum, PackageCache, TempFiles
from archcare.actions.packages import AurUpdate, RemoveOrphans, SystemUpgrade, UpdateDatabases
from archcare.actions.system import LocateDatabase, ManDatabase
from archcare.checks import hardware, security, system
from archcare.cli.common import any_failed, metric_reader, perform, run_scan
from archcare.report.formatting import format_bytes
from archcare.report.logfile import MAIN


def update_actions() -> list:
    return [UpdateDatabases(), SystemUpgrade(), AurUpdate()]


def clean_actions() -> list:
    return [RemoveOrphans(), PackageCache(), JournalVacuum(), TempFiles()]


@click.command()
@click.pass_context
def update(ctx: click.Context) -> None:
    """Refresh databases, upgrade the system and update AUR packages."""
    if any_failed(perform(ctx.obj, "System Updates", update_actions())):
        sys.exit(1)


@click.command()
@click.pass_context
def clean(ctx: click.Context) -> None:
    """Remove orphans and clean the package cache, journal and temp files."""
    if any_failed(perform(ctx.obj, "Cleanup Tasks", clean_actions())):
        sys.exit(1)


@click.command(name="all")
@click.pass_context
def all_tasks(ctx: click.Context) -> None:
    """Full maintenance: health and security scans, updates, cleanup, service check."""
    obj = ctx.obj
    reporter = obj["reporter"]
    started = time.monotonic()
    reporter.log(MAIN, "INFO", "Maintenance session started")
    _system_info(obj)

    sessions = [run_scan(obj, hardware.SCAN), run_scan(obj, security.SCAN)]
    results = perform(obj, "System Updates", update_actions())
    results += perform(obj, "Cleanup Tasks", clean_actions())
    results += perform(obj, "System Databases", [LocateDatabase(), ManDatabase()])
    sessions.append(run_scan(obj, system.SCAN))

    elapsed = int(time.monotonic() - started)
    reporter.header("Maintenance Complete")
    reporter.info(f"Total execution time: {elapsed} seconds")
    reporter.log(MAIN, "INFO", f"Maintenance session completed in {elapsed} seconds")
    if reporter.logging_enabled:
        reporter.info(f"Logs saved to: {obj['config'].logs_path}/")

    if any(s.has_critical for s in sessions) or any_failed(results):
        sys.exit(1)


def _system_info(obj: dict) -> None:
    reporter = obj["reporter"]
    reader = metric_reader(obj)
    reporter.header("System Information")
    reporter.info(f"Kernel: {reader.running_kernel()}")
    reporter.info(f"Architecture: {platform.machine()}")
    reporter.info(f"Available memory: {format_bytes(reader.memory().available)}")
    if obj["dry_run"]:
        reporter.info("Mode: dry run, no changes will be made")
    else:
        reporter.info(f"Mode: confirmation policy '{obj['confirmer'].policy.value}'")
