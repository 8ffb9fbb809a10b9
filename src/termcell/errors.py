"""Error types returned by TerminalSession.execute()."""

from __future__ import annotations

import signal


class ExecutionError(Exception):
    """Base class for everything execute() can report."""


class SetupError(ExecutionError):
    """The command never ran: empty command line, no terminal, no pty, spawn failure."""


class CommandFailedError(ExecutionError):
    """The command ran but exited with a non-zero status.

    ``returncode`` follows :mod:`subprocess` conventions: a negative value
    means the child was terminated by that signal.
    """

    def __init__(self, argv: list[str], returncode: int) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        super().__init__(self._describe())

    def _describe(self) -> str:
        name = self.argv[0] if self.argv else "command"
        if self.returncode < 0:
            try:
                sig = signal.Signals(-self.returncode).name
            except ValueError:
                sig = f"signal {-self.returncode}"
            return f"{name} terminated by {sig}"
        return f"{name} exited with status {self.returncode}"


class RelayError(ExecutionError):
    """An I/O relay died unexpectedly; the capture may be incomplete."""
