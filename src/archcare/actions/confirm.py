"""Confirmation policy for state-changing actions."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable

import click

logger = logging.getLogger(__name__)


class ConfirmPolicy(enum.Enum):
    ALWAYS = "always"
    NEVER = "never"
    EACH = "each"
    ONCE = "once"


def _click_prompt(question: str) -> bool:
    return click.confirm(question, default=False)


class Confirmer:
    """Answers "go ahead?" questions according to a ConfirmPolicy.

    ``once`` asks the first question and reuses that answer for the rest of
    the invocation. The prompt function is injected so policies can be
    exercised without a terminal.
    """

    def __init__(
        self,
        policy: ConfirmPolicy = ConfirmPolicy.EACH,
        prompt: Callable[[str], bool] | None = None,
    ) -> None:
        self.policy = policy
        self._prompt = prompt or _click_prompt
        self._answer: bool | None = None

    def confirm(self, question: str) -> bool:
        if self.policy is ConfirmPolicy.ALWAYS:
            logger.debug("Auto-confirmed: %s", question)
            return True
        if self.policy is ConfirmPolicy.NEVER:
            logger.debug("Auto-declined: %s", question)
            return False
        if self.policy is ConfirmPolicy.ONCE:
            if self._answer is None:
                self._answer = bool(self._prompt(question))
            return self._answer
        return bool(self._prompt(question))
