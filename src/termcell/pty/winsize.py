"""Terminal geometry and mode helpers.

* :func:`get_winsize` / :func:`set_winsize` — TIOCGWINSZ / TIOCSWINSZ.
* :class:`TerminalMode` — save, enter raw mode, restore (idempotent).
* :class:`ResizeWatcher` — per-invocation SIGWINCH registration that keeps a
  pty the same size as the real terminal.
"""

from __future__ import annotations

import errno
import fcntl
import logging
import queue
import signal
import struct
import termios
import threading
import tty
from typing import Any

logger = logging.getLogger(__name__)

_WINSIZE_FORMAT = "HHHH"


def get_winsize(fd: int) -> tuple[int, int]:
    """Return ``(rows, columns)`` of the terminal behind ``fd``.

    Raises:
        OSError: ``fd`` is not a terminal, or it reports a zero size.
    """
    packed = fcntl.ioctl(fd, termios.TIOCGWINSZ, b"\x00" * 8)
    rows, cols, _xpixel, _ypixel = struct.unpack(_WINSIZE_FORMAT, packed)
    if rows == 0 or cols == 0:
        raise OSError(errno.ENOTTY, f"Terminal reports a zero size ({cols}x{rows})")
    return rows, cols


def set_winsize(fd: int, rows: int, cols: int) -> None:
    """Apply a window size to the terminal (or pty side) behind ``fd``."""
    packed = struct.pack(_WINSIZE_FORMAT, rows, cols, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, packed)


class TerminalMode:
    """Saved termios state of one terminal fd.

    ``restore()`` may be called any number of times; only the first call
    after ``enter_raw()`` touches the terminal.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self._saved: list[Any] | None = None

    @property
    def is_raw(self) -> bool:
        return self._saved is not None

    def enter_raw(self) -> None:
        """Save the current mode and switch to raw (no echo, no line buffering).

        Raises:
            termios.error: ``fd`` is not a terminal.
        """
        saved = termios.tcgetattr(self.fd)
        tty.setraw(self.fd, termios.TCSANOW)
        self._saved = saved

    def restore(self) -> None:
        saved, self._saved = self._saved, None
        if saved is None:
            return
        try:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, saved)
        except termios.error as e:
            logger.warning("Could not restore terminal mode on fd %d: %s", self.fd, e)


class ResizeWatcher:
    """Mirror the size of ``source_fd`` onto ``target_fd`` on every SIGWINCH.

    Used as a context manager around one command run.  On entry the SIGWINCH
    handler is installed and a worker thread started; on exit the previous
    handler is put back and the worker joined.  Signal handlers can only be
    installed from the main thread; elsewhere the watcher logs a warning
    and does nothing.
    """

    def __init__(self, source_fd: int, target_fd: int) -> None:
        self.source_fd = source_fd
        self.target_fd = target_fd
        self._events: queue.SimpleQueue[int | None] = queue.SimpleQueue()
        self._previous: Any = None
        self._installed = False
        self._worker: threading.Thread | None = None

    @property
    def active(self) -> bool:
        return self._installed

    def __enter__(self) -> ResizeWatcher:
        try:
            self._previous = signal.signal(signal.SIGWINCH, self._on_signal)
        except ValueError:
            logger.warning("Not on the main thread; terminal resizes will not be tracked")
            return self

        self._installed = True
        self._worker = threading.Thread(
            target=self._run, name="termcell-resize", daemon=True
        )
        self._worker.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._installed:
            return
        previous = self._previous if self._previous is not None else signal.SIG_DFL
        signal.signal(signal.SIGWINCH, previous)
        self._installed = False

        self._events.put(None)
        if self._worker is not None:
            self._worker.join()
            self._worker = None

    def apply(self) -> None:
        """Copy the current source size onto the target."""
        try:
            rows, cols = get_winsize(self.source_fd)
            set_winsize(self.target_fd, rows, cols)
        except OSError as e:
            logger.debug("Resize skipped: %s", e)
            return
        logger.debug("Resized pty fd %d to %dx%d", self.target_fd, cols, rows)

    def _on_signal(self, signum: int, frame: object) -> None:
        self._events.put(signum)

    def _run(self) -> None:
        while True:
            event = self._events.get()
            if event is None:
                break
            self.apply()

