"""termcell — run a command in a pseudo-terminal and capture its rendered screen."""

from termcell.errors import CommandFailedError, ExecutionError, RelayError, SetupError
from termcell.pty import ScreenBuffer, SessionStatus, TerminalSession, execute

__version__ = "0.1.0"

__all__ = [
    "CommandFailedError",
    "ExecutionError",
    "RelayError",
    "ScreenBuffer",
    "SessionStatus",
    "SetupError",
    "TerminalSession",
    "execute",
]
