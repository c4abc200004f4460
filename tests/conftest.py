"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Sequence
from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from archcare.actions.base import ActionContext
from archcare.actions.confirm import Confirmer, ConfirmPolicy
from archcare.checks.base import CheckContext
from archcare.config import ArchCareConfig
from archcare.errors import Unavailable
from archcare.sources.base import CommandResult
from archcare.sources.readers import MetricReader
from archcare.sources.sysfs import SysFs
from archcare.report.reporter import Reporter
from archcare.rules.loader import load_preset
from archcare.rules.models import RuleSet


class FakeRunner:
    """CommandRunner that answers from a table instead of running anything.

    Responses are looked up by the full argument tuple first, then by program
    name. Programs in ``missing`` are not on PATH. Unmatched commands succeed
    with empty output.
    """

    def __init__(self) -> None:
        self.responses: dict[object, CommandResult] = {}
        self.missing: set[str] = set()
        self.calls: list[dict] = []

    def respond(self, key: str | tuple[str, ...], stdout: str = "", stderr: str = "", exit_code: int = 0) -> None:
        args = key if isinstance(key, tuple) else (key,)
        self.responses[key] = CommandResult(args=args, stdout=stdout, stderr=stderr, exit_code=exit_code)

    def available(self, program: str) -> bool:
        return program not in self.missing

    def run(
        self,
        args: Sequence[str],
        *,
        sudo: bool = False,
        capture: bool = True,
        input: str | None = None,
    ) -> CommandResult:
        args = tuple(args)
        if args[0] in self.missing:
            raise Unavailable(args[0], "command not found")
        self.calls.append({"args": args, "sudo": sudo, "capture": capture, "input": input})
        result = self.responses.get(args) or self.responses.get(args[0])
        if result is None:
            return CommandResult(args=args)
        return CommandResult(args=args, stdout=result.stdout, stderr=result.stderr, exit_code=result.exit_code)

    def commands(self) -> list[tuple[str, ...]]:
        return [call["args"] for call in self.calls]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def sysfs(tmp_path: Path) -> SysFs:
    root = tmp_path / "root"
    root.mkdir()
    return SysFs(root)


@pytest.fixture
def write_file(sysfs: SysFs):
    """Write a file below the fake system root, creating parent directories."""

    def write(system_path: str, content: str) -> Path:
        path = sysfs.path(system_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return write


@pytest.fixture
def rules() -> RuleSet:
    return load_preset()


@pytest.fixture
def reader(fake_runner: FakeRunner, sysfs: SysFs) -> MetricReader:
    return MetricReader(fake_runner, sysfs)


@pytest.fixture
def check_context(reader: MetricReader, rules: RuleSet) -> CheckContext:
    return CheckContext(reader=reader, rules=rules)


@pytest.fixture
def console() -> Console:
    return Console(file=StringIO(), width=200, highlight=False, color_system=None)


@pytest.fixture
def reporter(console: Console) -> Reporter:
    return Reporter(console)


@pytest.fixture
def confirmer() -> Confirmer:
    return Confirmer(ConfirmPolicy.ALWAYS)


@pytest.fixture
def action_context(fake_runner: FakeRunner, confirmer: Confirmer, sysfs: SysFs, tmp_path: Path) -> ActionContext:
    home = tmp_path / "home"
    home.mkdir()
    return ActionContext(
        runner=fake_runner,
        confirmer=confirmer,
        config=ArchCareConfig(data_dir=tmp_path / "data", config_dir=tmp_path / "config"),
        home=home,
        sysfs=sysfs,
    )
