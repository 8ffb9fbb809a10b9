"""Tests for termcell.pty.screen.ScreenBuffer."""

from __future__ import annotations

import pytest

from termcell.pty.screen import MAX_CSI_PARAMS, ScreenBuffer


class TestScreenBufferBasics:
    def test_empty(self) -> None:
        screen = ScreenBuffer(10, 3)
        assert screen.render() == ""
        assert screen.cursor == (0, 0)
        assert screen.lines() == ["", "", ""]

    def test_size(self) -> None:
        screen = ScreenBuffer(columns=132, rows=43)
        assert screen.columns == 132
        assert screen.rows == 43

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            ScreenBuffer(0, 24)
        with pytest.raises(ValueError):
            ScreenBuffer(80, -1)

    def test_write_returns_length(self) -> None:
        screen = ScreenBuffer()
        assert screen.write(b"hello\x1b[31m") == 10

    def test_plain_text(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"hello\nworld\n")
        assert screen.render() == "hello\nworld"

    def test_crlf(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"one\r\ntwo\r\n")
        assert screen.render() == "one\ntwo"

    def test_carriage_return_overwrites(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"hello\rHE")
        assert screen.render() == "HEllo"

    def test_trailing_whitespace_trimmed(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"abc   \ndef\t\n")
        assert screen.render() == "abc\ndef"

    def test_blank_lines_inside_kept(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"a\n\n\nb\n\n\n")
        assert screen.render() == "a\n\n\nb"

    def test_render_idempotent(self) -> None:
        screen = ScreenBuffer(20, 5)
        screen.write(b"first\nsecond\x1b[1;3Hx")
        assert screen.render() == screen.render()


class TestScreenBufferWrapAndScroll:
    def test_wrap_at_width(self) -> None:
        screen = ScreenBuffer(5, 3)
        screen.write(b"abcdefg")
        assert screen.render() == "abcde\nfg"
        assert screen.cursor == (1, 2)

    def test_exact_width_moves_to_next_row(self) -> None:
        screen = ScreenBuffer(5, 3)
        screen.write(b"abcde")
        assert screen.cursor == (1, 0)

    def test_scroll_evicts_first_line(self) -> None:
        screen = ScreenBuffer(10, 3)
        screen.write(b"1\n2\n3\n4")
        assert screen.render() == "2\n3\n4"

    def test_scroll_clears_bottom_row(self) -> None:
        screen = ScreenBuffer(10, 3)
        screen.write(b"1\n2\n3\n")
        assert screen.lines() == ["2", "3", ""]
        assert screen.cursor == (2, 0)

    def test_many_lines_keep_last_screenful(self) -> None:
        screen = ScreenBuffer(10, 4)
        screen.write(b"".join(f"line {i}\r\n".encode() for i in range(50)))
        # The final newline leaves an empty bottom row
        assert screen.render() == "line 47\nline 48\nline 49"

    def test_wrap_on_last_row_scrolls(self) -> None:
        screen = ScreenBuffer(3, 2)
        screen.write(b"abcdefgh")
        assert screen.lines() == ["def", "gh"]


class TestScreenBufferCursorSequences:
    def test_home(self) -> None:
        screen = ScreenBuffer(10, 3)
        screen.write(b"abc\ndef\x1b[H")
        assert screen.cursor == (0, 0)
        screen.write(b"X")
        assert screen.render() == "Xbc\ndef"

    def test_position(self) -> None:
        screen = ScreenBuffer(10, 5)
        screen.write(b"\x1b[3;5H")
        assert screen.cursor == (2, 4)
        screen.write(b"Z")
        assert screen.lines()[2] == "    Z"

    def test_position_clamped(self) -> None:
        screen = ScreenBuffer(10, 5)
        screen.write(b"\x1b[99;99H")
        assert screen.cursor == (4, 9)

    def test_missing_numbers_default_to_origin(self) -> None:
        screen = ScreenBuffer(10, 5)
        screen.write(b"abc\x1b[;H")
        assert screen.cursor == (0, 0)

    def test_missing_column(self) -> None:
        screen = ScreenBuffer(10, 5)
        screen.write(b"\x1b[2;H")
        assert screen.cursor == (1, 0)

    def test_row_only(self) -> None:
        screen = ScreenBuffer(10, 5)
        screen.write(b"abc\x1b[3H")
        assert screen.cursor == (2, 0)

    def test_clear_screen_keeps_cursor(self) -> None:
        screen = ScreenBuffer(10, 3)
        screen.write(b"abc\ndef")
        screen.write(b"\x1b[2J")
        assert screen.render() == ""
        assert screen.lines() == ["", "", ""]
        assert screen.cursor == (1, 3)

    def test_clear_then_home_redraw(self) -> None:
        screen = ScreenBuffer(20, 4)
        screen.write(b"old content\r\nmore\r\n")
        screen.write(b"\x1b[H\x1b[2Jnew frame")
        assert screen.render() == "new frame"

    def test_other_erase_ignored(self) -> None:
        screen = ScreenBuffer(10, 3)
        screen.write(b"abc\x1b[K\x1b[J\x1b[1J")
        assert screen.render() == "abc"


class TestScreenBufferIgnoredSequences:
    def test_colors_stripped(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"\x1b[1;31mred\x1b[0m plain")
        assert screen.render() == "red plain"

    def test_private_modes_stripped(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"\x1b[?25lhi\x1b[?25h\x1b[?2004h")
        assert screen.render() == "hi"

    def test_osc_title_with_bel(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"\x1b]0;user@host: ~\x07$ ls")
        assert screen.render() == "$ ls"

    def test_osc_title_with_string_terminator(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"\x1b]2;title\x1b\\after")
        assert screen.render() == "after"

    def test_charset_selection(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"\x1b(Babc\x1b)0")
        assert screen.render() == "abc"

    def test_two_byte_escape(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"\x1b=\x1b>ok\x1b7\x1b8")
        assert screen.render() == "ok"

    def test_sequence_split_across_writes(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"a\x1b[")
        screen.write(b"31mb")
        assert screen.render() == "ab"

    def test_position_split_across_writes(self) -> None:
        screen = ScreenBuffer(10, 5)
        screen.write(b"\x1b[2;")
        screen.write(b"3HX")
        assert screen.lines()[1] == "  X"

    def test_bell_dropped(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"a\x07b")
        assert screen.render() == "ab"

    def test_residual_escape_stripped_on_render(self) -> None:
        screen = ScreenBuffer(10, 2)
        screen.write(b"abc")
        screen._grid[0][3:7] = list("\x1b[1m")
        assert screen.render() == "abc"

    def test_overlong_parameters_discarded(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"\x1b[" + b"1" * 10000 + b"mok")
        assert screen.render() == "ok"
        assert len(screen._params) <= MAX_CSI_PARAMS

    def test_overlong_position_not_applied(self) -> None:
        screen = ScreenBuffer(10, 5)
        screen.write(b"ab\x1b[" + b"1;" * 100 + b"5HX")
        assert screen.cursor == (0, 3)
        assert screen.lines()[0] == "abX"

    def test_parameters_at_limit_still_dispatched(self) -> None:
        screen = ScreenBuffer(10, 5)
        params = b"0" * (MAX_CSI_PARAMS - 3) + b"3;2"
        assert len(params) == MAX_CSI_PARAMS
        screen.write(b"\x1b[" + params + b"HX")
        assert screen.lines()[2] == " X"


class TestScreenBufferCharacters:
    def test_utf8(self) -> None:
        screen = ScreenBuffer()
        screen.write("héllo ✓".encode())
        assert screen.render() == "héllo ✓"

    def test_utf8_split_across_writes(self) -> None:
        screen = ScreenBuffer()
        data = "é".encode()
        screen.write(data[:1])
        screen.write(data[1:])
        assert screen.render() == "é"
        assert screen.cursor == (0, 1)

    def test_invalid_utf8_replaced(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"a\xffb")
        assert screen.render() == "a�b"

    def test_backspace(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"abc\b\bX")
        assert screen.render() == "aXc"

    def test_backspace_stops_at_column_zero(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"\b\bab")
        assert screen.render() == "ab"

    def test_tab_is_literal(self) -> None:
        screen = ScreenBuffer()
        screen.write(b"a\tb")
        assert screen.render() == "a\tb"
