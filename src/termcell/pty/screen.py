"""Screen buffer — a fixed-size character grid fed with raw terminal output."""

from __future__ import annotations

import codecs
import enum
import re
import threading

_ESC = "\x1b"
_BEL = "\x07"

# ESC up to and including the next letter; anything Write() let through.
_RESIDUAL_ESCAPE_RE = re.compile(r"\x1b[^A-Za-z]*[A-Za-z]?")

# Longer parameter strings are consumed without being interpreted.
MAX_CSI_PARAMS = 64


class _ParseState(enum.Enum):
    GROUND = enum.auto()
    ESCAPE = enum.auto()  # ESC seen
    ESCAPE_INTERMEDIATE = enum.auto()  # ESC ( , ESC # ... waiting for the final byte
    CSI = enum.auto()  # ESC [ seen, collecting parameters
    CSI_IGNORE = enum.auto()  # over-long CSI, skipping to its final byte
    OSC = enum.auto()  # ESC ] seen, waiting for BEL or ST
    OSC_ESCAPE = enum.auto()  # ESC seen inside an OSC string


class ScreenBuffer:
    """Thread-safe character grid with a cursor.

    Raw pty output goes in through :meth:`write`; :meth:`render` turns the
    visible grid into plain text.  Only a handful of control sequences are
    interpreted:

    * ``ESC[H`` and ``ESC[row;colH`` move the cursor (1-indexed input).
    * ``ESC[2J`` blanks the grid and leaves the cursor where it is.

    Every other escape sequence (colors, modes, OSC titles, charset
    selection) is consumed and dropped, so none of its bytes reach the
    grid.  There is no scrollback: a line scrolled off the top is gone.
    """

    def __init__(self, columns: int = 80, rows: int = 24) -> None:
        if columns <= 0 or rows <= 0:
            raise ValueError(f"Screen size must be positive, got {columns}x{rows}")
        self._columns = columns
        self._rows = rows
        self._grid: list[list[str]] = [self._blank_row() for _ in range(rows)]
        self._row = 0
        self._col = 0
        self._state = _ParseState.GROUND
        self._params: list[str] = []
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._lock = threading.Lock()

    @property
    def columns(self) -> int:
        return self._columns

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cursor(self) -> tuple[int, int]:
        """Current (row, col), both 0-indexed."""
        with self._lock:
            return self._row, self._col

    def write(self, data: bytes) -> int:
        """Feed raw output bytes into the grid.

        Parser and UTF-8 decoder state carry over between calls, so a
        sequence or character split across two reads is handled.

        Returns:
            ``len(data)``, so the buffer can stand in for a file object.
        """
        with self._lock:
            for ch in self._decoder.decode(data):
                self._feed(ch)
        return len(data)

    def render(self) -> str:
        """Render the visible grid as plain text.

        Each row is right-trimmed; trailing blank rows are dropped.  Blank
        rows in the middle are kept so vertical layout survives.
        """
        with self._lock:
            rows = ["".join(row) for row in self._grid]

        lines = [_RESIDUAL_ESCAPE_RE.sub("", row).rstrip(" \t") for row in rows]
        while lines and not lines[-1].strip():
            lines.pop()
        return "\n".join(lines)

    def lines(self) -> list[str]:
        """All rows, right-trimmed, including trailing blank ones."""
        with self._lock:
            return ["".join(row).rstrip(" \t") for row in self._grid]

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _feed(self, ch: str) -> None:
        state = self._state

        if state is _ParseState.GROUND:
            self._feed_ground(ch)
        elif state is _ParseState.ESCAPE:
            if ch == "[":
                self._params = []
                self._state = _ParseState.CSI
            elif ch == "]":
                self._state = _ParseState.OSC
            elif "\x20" <= ch <= "\x2f":
                self._state = _ParseState.ESCAPE_INTERMEDIATE
            else:
                # Two-byte escape (ESC =, ESC 7, ESC M, ...)
                self._state = _ParseState.GROUND
        elif state is _ParseState.ESCAPE_INTERMEDIATE:
            if not "\x20" <= ch <= "\x2f":
                self._state = _ParseState.GROUND
        elif state is _ParseState.CSI:
            if "\x20" <= ch <= "\x3f":
                if len(self._params) < MAX_CSI_PARAMS:
                    self._params.append(ch)
                else:
                    self._params = []
                    self._state = _ParseState.CSI_IGNORE
            else:
                self._state = _ParseState.GROUND
                self._dispatch_csi("".join(self._params), ch)
        elif state is _ParseState.CSI_IGNORE:
            if not "\x20" <= ch <= "\x3f":
                self._state = _ParseState.GROUND
        elif state is _ParseState.OSC:
            if ch == _BEL:
                self._state = _ParseState.GROUND
            elif ch == _ESC:
                self._state = _ParseState.OSC_ESCAPE
        elif state is _ParseState.OSC_ESCAPE:
            if ch == "\\":
                self._state = _ParseState.GROUND
            else:
                # ESC inside OSC aborts it and starts a new escape
                self._state = _ParseState.ESCAPE
                self._feed(ch)
                return

        self._settle()

    def _feed_ground(self, ch: str) -> None:
        if ch == _ESC:
            self._state = _ParseState.ESCAPE
        elif ch == "\n":
            self._row += 1
            self._col = 0
        elif ch == "\r":
            self._col = 0
        elif ch == "\b":
            if self._col > 0:
                self._col -= 1
        elif ch == "\t" or ch.isprintable():
            self._grid[self._row][self._col] = ch
            self._col += 1
        # Remaining control characters (BEL, SO/SI, NUL, ...) are dropped.

    def _dispatch_csi(self, params: str, final: str) -> None:
        if final == "H":
            if not params:
                self._row, self._col = 0, 0
                return
            parts = params.split(";")
            row = _parse_number(parts[0])
            col = _parse_number(parts[1]) if len(parts) > 1 else 0
            self._row = _clamp(row - 1, self._rows)
            self._col = _clamp(col - 1, self._columns)
        elif final == "J" and params == "2":
            for row in self._grid:
                row[:] = " " * self._columns
        # Anything else is recognized and ignored.

    # ------------------------------------------------------------------
    # Cursor bookkeeping
    # ------------------------------------------------------------------

    def _settle(self) -> None:
        """Wrap and scroll so the cursor is back inside the grid."""
        if self._col >= self._columns:
            self._row += 1
            self._col = 0
        if self._row >= self._rows:
            self._scroll_up()

    def _scroll_up(self) -> None:
        del self._grid[0]
        self._grid.append(self._blank_row())
        self._row = self._rows - 1

    def _blank_row(self) -> list[str]:
        return [" "] * self._columns


def _parse_number(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def _clamp(value: int, limit: int) -> int:
    return max(0, min(value, limit - 1))
