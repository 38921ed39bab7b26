"""Tests for ANSI-aware wrapping."""

import pytest

from intelx_cli.text import strip_ansi, style, visible_len, wrap_line


class TestVisibleLength:

    def test_style_codes_take_no_columns(self):
        styled = style("abc", "black on yellow")
        assert styled != "abc"
        assert visible_len(styled) == 3
        assert strip_ansi(styled) == "abc"

    def test_empty_text_is_not_styled(self):
        assert style("", "red") == ""


class TestWrapLine:

    def test_empty_input_gives_no_lines(self):
        assert wrap_line("", 10) == []

    def test_blank_input_gives_no_lines(self):
        assert wrap_line("     ", 10) == []

    def test_short_line_is_untouched(self):
        assert wrap_line("hello world", 40) == ["hello world"]

    def test_breaks_between_words(self):
        assert wrap_line("hello world foo bar", 11) == ["hello world", " foo bar"]

    def test_overflowing_space_flushes_an_empty_segment(self):
        assert wrap_line("abc def", 3) == ["abc", "", "def"]

    def test_column_separator_dropped_at_break(self):
        assert wrap_line("alpha     beta", 8) == ["alpha", "beta"]

    def test_column_separator_kept_when_it_fits(self):
        assert wrap_line("ab     cd", 20) == ["ab     cd"]

    def test_long_token_emitted_whole(self):
        lines = wrap_line("supercalifragilistic is long", 5)
        assert lines[0] == "supercalifragilistic"
        assert all(visible_len(line) <= 5 for line in lines[1:])

    def test_styled_text_measured_without_codes(self):
        text = style("foo", "black on yellow") + " bar"
        lines = wrap_line(text, 7)
        assert len(lines) == 1
        assert strip_ansi(lines[0]) == "foo bar"

    @pytest.mark.parametrize("width", [4, 8, 13, 20, 33])
    def test_segments_fit_unless_single_token(self, width):
        text = "user@example.com:hunter2   https://example.com/login   other words here and there"
        for segment in wrap_line(text, width):
            assert visible_len(segment) <= width or len(segment.split()) == 1

    @pytest.mark.parametrize("width", [5, 10, 25])
    def test_tokens_survive_wrapping(self, width):
        text = "one two  three     four five\tsix"
        assert " ".join(wrap_line(text, width)).split() == text.split()
