"""CLI commands: archcare health | security | performance."""

from __future__ import annotations

import sys

import click

from archcare.actions.tuning import optimizations
from archcare.checks import hardware, performance as performance_checks, security as security_checks
from archcare.cli.common import any_failed, perform, run_scan


@click.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check hardware health: temperatures, disks, memory, load and battery."""
    session = run_scan(ctx.obj, hardware.SCAN)
    if session.has_critical:
        sys.exit(1)


@click.command()
@click.pass_context
def security(ctx: click.Context) -> None:
    """Scan security posture and verify hardening controls."""
    session = run_scan(ctx.obj, security_checks.SCAN)
    if session.has_critical:
        sys.exit(1)


@click.command()
@click.option(
    "--optimize",
    is_flag=True,
    help="Apply tuning: CPU frequency, memory, I/O schedulers, TRIM and network.",
)
@click.pass_context
def performance(ctx: click.Context, optimize: bool) -> None:
    """Summarize system performance, optionally applying tuning."""
    session = run_scan(ctx.obj, performance_checks.SCAN)
    failed = False
    if optimize:
        results = perform(
            ctx.obj,
            "Performance Optimization",
            optimizations(),
        )
        failed = any_failed(results)
    if session.has_critical or failed:
        sys.exit(1)
