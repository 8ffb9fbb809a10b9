"""Terminal session — run one command in a pty, relay it live, capture its screen."""

from __future__ import annotations

import concurrent.futures
import enum
import fcntl
import logging
import os
import pty
import selectors
import signal
import subprocess
import termios
import threading

from termcell.config import RelayConfig
from termcell.errors import CommandFailedError, ExecutionError, RelayError, SetupError
from termcell.pty.screen import ScreenBuffer
from termcell.pty.winsize import ResizeWatcher, TerminalMode, get_winsize, set_winsize

logger = logging.getLogger(__name__)


class SessionStatus(enum.Enum):
    """Lifecycle states for a terminal session."""

    IDLE = "idle"  # Nothing running (before the first run, or between runs)
    RUNNING = "running"
    EXITED = "exited"  # Last command exited on its own
    KILLED = "killed"  # Last command was signalled via kill()


def split_command(command_line: str) -> list[str]:
    """Split a command line on whitespace.

    There is no quoting, escaping or shell syntax: ``ls | wc`` becomes the
    three arguments ``ls``, ``|`` and ``wc``.
    """
    return command_line.split()


class TerminalSession:
    """Runs commands attached to a fresh pseudo-terminal.

    The command sees a real terminal sized like ours; everything it prints
    goes live to ``stdout_fd`` and into a :class:`ScreenBuffer`; everything
    typed on ``stdin_fd`` is forwarded to it.  While it runs, ``stdin_fd``
    is in raw mode and SIGWINCH is routed to the pty.

    One session runs one command at a time.  ``kill()`` may be called from
    another thread to stop it.
    """

    def __init__(
        self,
        relay: RelayConfig | None = None,
        stdin_fd: int = 0,
        stdout_fd: int = 1,
    ) -> None:
        self.relay = relay or RelayConfig()
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._proc: subprocess.Popen[bytes] | None = None
        self._status = SessionStatus.IDLE
        self._lock = threading.Lock()

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def pid(self) -> int | None:
        """PID of the running command, or None."""
        proc = self._proc
        return proc.pid if proc is not None else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute(self, command_line: str) -> tuple[str, ExecutionError | None]:
        """Run ``command_line`` and return ``(captured_text, error)``.

        ``error`` is None when the command exited with status 0, a
        :class:`CommandFailedError` (with the full capture alongside) when it
        exited otherwise, or a :class:`SetupError` (with an empty capture)
        when it could not be started at all.  A relay that dies unexpectedly
        is reported as a :class:`RelayError` with whatever was captured.
        """
        argv = split_command(command_line)
        if not argv:
            return "", SetupError("empty command")

        try:
            rows, cols = get_winsize(self.stdout_fd)
        except OSError as e:
            return "", SetupError(f"error getting terminal size: {e}")

        try:
            master_fd, proc = self._spawn(argv, rows, cols)
        except SetupError as e:
            return "", e

        try:
            return self._run(argv, proc, master_fd, ScreenBuffer(cols, rows))
        finally:
            os.close(master_fd)

    def kill(self, sig: int = signal.SIGKILL) -> None:
        """Signal the running command's whole process group."""
        with self._lock:
            proc = self._proc
            if proc is None or self._status is not SessionStatus.RUNNING:
                return
            self._status = SessionStatus.KILLED

        try:
            # start_new_session=True makes the child its own group leader
            os.killpg(proc.pid, sig)
            logger.info("Sent %s to pid %d", signal.Signals(sig).name, proc.pid)
        except ProcessLookupError:
            logger.debug("Process group already gone: %d", proc.pid)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _spawn(
        self, argv: list[str], rows: int, cols: int
    ) -> tuple[int, subprocess.Popen[bytes]]:
        """Open a pty sized ``rows`` x ``cols`` and start ``argv`` on its slave side."""
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise SetupError(f"error creating pseudo-terminal: {e}") from e

        try:
            set_winsize(slave_fd, rows, cols)
            proc = subprocess.Popen(
                argv,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
            )
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise SetupError(f"error starting {argv[0]}: {e}") from e
        finally:
            # Parent always closes the slave fd so reads on master end with EIO
            os.close(slave_fd)

        with self._lock:
            self._proc = proc
            self._status = SessionStatus.RUNNING

        logger.info(
            "Started pid=%d cmd=%s (%dx%d)", proc.pid, " ".join(argv), cols, rows
        )
        return master_fd, proc

    def _run(
        self,
        argv: list[str],
        proc: subprocess.Popen[bytes],
        master_fd: int,
        screen: ScreenBuffer,
    ) -> tuple[str, ExecutionError | None]:
        mode = TerminalMode(self.stdin_fd)
        hangup_r, hangup_w = os.pipe()
        try:
            with ResizeWatcher(self.stdout_fd, master_fd):
                try:
                    mode.enter_raw()
                except termios.error as e:
                    return "", SetupError(f"error setting raw mode: {e}")

                try:
                    returncode, failure = self._relay_until_exit(
                        proc, master_fd, screen, hangup_r, hangup_w
                    )
                finally:
                    mode.restore()
        finally:
            mode.restore()
            os.close(hangup_r)
            os.close(hangup_w)
            self._reap(proc)

        logger.info("pid=%d exited (code=%d)", proc.pid, returncode)
        text = screen.render()
        if failure is not None:
            err = RelayError(f"relay failed: {failure!r}")
            err.__cause__ = failure
            return text, err
        if returncode != 0:
            return text, CommandFailedError(argv, returncode)
        return text, None

    def _relay_until_exit(
        self,
        proc: subprocess.Popen[bytes],
        master_fd: int,
        screen: ScreenBuffer,
        hangup_r: int,
        hangup_w: int,
    ) -> tuple[int, BaseException | None]:
        """Run both relays while waiting for the command; join them before returning.

        Returns the exit status and the first exception a relay died with.
        """
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="termcell-relay"
        ) as pool:
            relays = [
                pool.submit(self._relay_input, master_fd, hangup_r),
                pool.submit(self._relay_output, master_fd, hangup_r, screen),
            ]
            try:
                returncode = proc.wait()
            finally:
                # Hang up: both relays watch this pipe
                os.write(hangup_w, b"\0")

            concurrent.futures.wait(relays)

        failure: BaseException | None = None
        for future in relays:
            exc = future.exception()
            if exc is not None:
                logger.error("Relay failed: %s", exc, exc_info=exc)
                failure = failure or exc
        return returncode, failure

    def _reap(self, proc: subprocess.Popen[bytes]) -> None:
        """Make sure the child is dead and waited for, then mark the session idle."""
        if proc.poll() is None:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            proc.wait()

        with self._lock:
            self._proc = None
            if self._status is SessionStatus.RUNNING:
                self._status = SessionStatus.EXITED

    # ------------------------------------------------------------------
    # Relays
    # ------------------------------------------------------------------

    def _relay_input(self, master_fd: int, hangup_fd: int) -> None:
        """Real terminal input -> pty, until end-of-input or hang-up."""
        with selectors.DefaultSelector() as sel:
            try:
                sel.register(self.stdin_fd, selectors.EVENT_READ)
                sel.register(hangup_fd, selectors.EVENT_READ)
                while True:
                    ready = {key.fd for key, _ in sel.select()}
                    if hangup_fd in ready:
                        logger.debug("Input relay: session hung up")
                        return
                    data = os.read(self.stdin_fd, self.relay.read_size)
                    if not data:
                        logger.debug("Input relay: end of input")
                        return
                    _write_all(master_fd, data)
            except OSError as e:
                logger.debug("Input relay ended: %s", e)

    def _relay_output(
        self, master_fd: int, hangup_fd: int, screen: ScreenBuffer
    ) -> None:
        """Pty output -> real terminal and screen, until the pty is exhausted.

        After hang-up the pty is drained: reading continues as long as data
        shows up within ``drain_timeout``.
        """
        with selectors.DefaultSelector() as sel:
            sel.register(master_fd, selectors.EVENT_READ)
            sel.register(hangup_fd, selectors.EVENT_READ)
            timeout: float | None = None
            while True:
                ready = {key.fd for key, _ in sel.select(timeout)}
                if master_fd in ready:
                    try:
                        data = os.read(master_fd, self.relay.read_size)
                    except OSError as e:
                        # EIO: every slave-side descriptor is closed
                        logger.debug("Output relay ended: %s", e)
                        return
                    if not data:
                        logger.debug("Output relay: end of output")
                        return
                    self._show(data)
                    screen.write(data)
                elif hangup_fd in ready:
                    sel.unregister(hangup_fd)
                    timeout = self.relay.drain_timeout
                else:
                    logger.debug("Output relay: drained after hang-up")
                    return

    def _show(self, data: bytes) -> None:
        try:
            _write_all(self.stdout_fd, data)
        except OSError as e:
            logger.debug("Live output write failed: %s", e)


def execute(command_line: str) -> tuple[str, ExecutionError | None]:
    """Run one command in a fresh :class:`TerminalSession` on stdin/stdout."""
    return TerminalSession().execute(command_line)


def _acquire_controlling_tty() -> None:
    # Runs in the child after setsid(); fd 0 is already the pty slave.
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]
