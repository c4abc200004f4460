"""CLI entry point: Click group with global options."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import click

from archcare import __version__
from archcare.actions.confirm import Confirmer, ConfirmPolicy
from archcare.config import ArchCareConfig
from archcare.sources.command import SubprocessRunner
from archcare.sources.sysfs import SysFs
from archcare.report.reporter import Reporter
from archcare.rules.loader import apply_overrides, load_preset, load_rules


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="archcare")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a key=value config file.",
)
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a YAML rule file (thresholds and verdict tables).",
)
@click.option("--log-dir", type=click.Path(file_okay=False), help="Directory for maintenance logs.")
@click.option("--no-log", is_flag=True, help="Do not write maintenance logs.")
@click.option("--dry-run", is_flag=True, help="Show what would change without changing anything.")
@click.option("--auto", is_flag=True, help="Never prompt; confirm every action.")
@click.option(
    "--confirm",
    "confirm_policy",
    type=click.Choice([p.value for p in ConfirmPolicy]),
    default=None,
    help="How to answer confirmations (default: each, or always with --auto).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only print warnings and critical findings.")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: str | None,
    rules_path: str | None,
    log_dir: str | None,
    no_log: bool,
    dry_run: bool,
    auto: bool,
    confirm_policy: str | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """ArchCare: Arch Linux maintenance, health, security and performance checks.

    Runs the full maintenance (``all``) when no command is given.
    """
    if verbose and quiet:
        raise click.UsageError("--verbose and --quiet cannot be used together")

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = ArchCareConfig.load(config_path)
    config.verbose = config.verbose or verbose
    if log_dir is not None:
        config.log_dir = Path(log_dir).expanduser()
    if no_log:
        config.logging_enabled = False

    try:
        rules_file = rules_path or config.rules_file
        rules = load_rules(rules_file) if rules_file else load_preset()
        rules = apply_overrides(rules, config.threshold_overrides)
    except (ValueError, KeyError) as e:
        raise click.UsageError(f"Invalid rules: {e}") from e

    if confirm_policy is not None:
        policy = ConfirmPolicy(confirm_policy)
    else:
        policy = ConfirmPolicy.ALWAYS if auto else ConfirmPolicy.EACH

    ctx.ensure_object(dict)
    obj = ctx.obj
    obj.setdefault("runner", SubprocessRunner(non_interactive=auto))
    obj.setdefault("sysfs", SysFs())
    obj.setdefault(
        "reporter",
        Reporter(
            log_dir=config.logs_path if config.logging_enabled else None,
            verbose=config.verbose,
            quiet=quiet,
        ),
    )
    obj.setdefault("confirmer", Confirmer(policy))
    obj["config"] = config
    obj["rules"] = rules
    obj["dry_run"] = dry_run
    ctx.call_on_close(obj["reporter"].close)

    reporter = obj["reporter"]
    if os.geteuid() == 0:
        reporter.warning("Running as root; use a regular account, sudo is called when needed")
    if not obj["runner"].available("pacman"):
        reporter.warning("pacman not found; package actions will be skipped")

    if ctx.invoked_subcommand is None:
        ctx.invoke(main.get_command(ctx, "all"))


def _register_commands() -> None:
    from archcare.cli.maintain import all_tasks, clean, update  # noqa: F811
    from archcare.cli.scan import health, performance, security  # noqa: F811

    main.add_command(health)
    main.add_command(security)
    main.add_command(performance)
    main.add_command(update)
    main.add_command(clean)
    main.add_command(all_tasks)


_register_commands()
