"""PTY capture — run a command in a pseudo-terminal and render what it printed.

The command is attached to a fresh pty whose output is relayed live to the
real terminal and, at the same time, fed into a :class:`ScreenBuffer` that
keeps only the final screen contents.
"""

from termcell.pty.screen import ScreenBuffer
from termcell.pty.session import SessionStatus, TerminalSession, execute, split_command
from termcell.pty.winsize import ResizeWatcher, TerminalMode, get_winsize, set_winsize

__all__ = [
    "ResizeWatcher",
    "ScreenBuffer",
    "SessionStatus",
    "TerminalMode",
    "TerminalSession",
    "execute",
    "get_winsize",
    "set_winsize",
    "split_command",
]
