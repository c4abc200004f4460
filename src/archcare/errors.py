"""Error kinds raised by metric readers and actions.

Each check or action is isolated: these never cross a check boundary, the
session runner turns them into an ``unknown`` verdict (or a failed/skipped
action) and carries on with the next one.
"""

from __future__ import annotations


class ArchCareError(Exception):
    """Base class for all ArchCare errors."""


class Unavailable(ArchCareError):
    """A required tool, file or device is missing."""

    def __init__(self, source: str, detail: str = "") -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"{source}: {detail}" if detail else f"{source} not available")


class ExternalFailure(ArchCareError):
    """An external command ran but exited with a failure status."""

    def __init__(self, command: str, exit_code: int, stderr: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        message = f"'{command}' failed with exit code {exit_code}"
        first_line = stderr.strip().splitlines()[0] if stderr.strip() else ""
        if first_line:
            message += f": {first_line}"
        super().__init__(message)


class ParseFailure(ArchCareError):
    """External output did not match the expected text format."""

    def __init__(self, source: str, text: str = "") -> None:
        self.source = source
        self.text = text
        excerpt = text.strip().splitlines()[0][:60] if text.strip() else "empty output"
        super().__init__(f"Could not parse {source} output ({excerpt})")
