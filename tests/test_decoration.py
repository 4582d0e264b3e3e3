from __future__ import annotations

import pytest

from fleece.console.buffer import TextBuffer
from fleece.decoration import HOVER_MESSAGE, DecorationEngine, is_comment, shortcut_label
from fleece.host import Line, Position, Range


class CountingBuffer(TextBuffer):
    def __init__(self, text: str) -> None:
        super().__init__(text)
        self.overlay_calls = 0
        self.clear_calls = 0

    def set_overlay(self, span: Range, label: str, hover: str) -> None:
        self.overlay_calls += 1
        super().set_overlay(span, label, hover)

    def clear_overlay(self) -> None:
        self.clear_calls += 1
        super().clear_overlay()


@pytest.mark.parametrize(
    "text",
    ["# add numbers", "   // todo", "-- query", "<!-- markup -->", "; lisp", "/* block", "\t/// doc", "#"],
)
def test_comment_lines_match(text: str):
    assert is_comment(Line(0, text))


@pytest.mark.parametrize("text", ["x = 1", "", "    ", "print('#')", "return a // b"])
def test_other_lines_do_not_match(text: str):
    assert not is_comment(Line(0, text))


def test_shortcut_label_per_platform():
    assert shortcut_label("darwin") == "Code from Comment (⌘⌥C)"
    assert shortcut_label("linux") == "Code from Comment (Ctrl+Alt+C)"
    assert shortcut_label("win32") == "Code from Comment (Ctrl+Alt+C)"


def test_overlay_spans_the_comment_line():
    buffer = CountingBuffer("x = 1\n# sum two numbers")
    buffer.move_cursor(Position(1, 3))
    engine = DecorationEngine("label")

    assert engine.update(buffer)

    span, label, hover = buffer.overlay
    assert span == Range.on_line(1, 0, len("# sum two numbers"))
    assert (label, hover) == ("label", HOVER_MESSAGE)


def test_overlay_is_shown_once_while_cursor_stays_on_comments():
    buffer = CountingBuffer("# one\n# two")
    engine = DecorationEngine()

    engine.update(buffer)
    engine.update(buffer)
    buffer.move_cursor(Position(1, 0))
    engine.update(buffer)

    assert buffer.overlay_calls == 1
    assert engine.showing


def test_moving_off_a_comment_clears_the_overlay():
    buffer = CountingBuffer("# one\nx = 1")
    engine = DecorationEngine()
    engine.update(buffer)

    buffer.move_cursor(Position(1, 0))
    assert engine.update(buffer) is False

    assert buffer.overlay is None
    assert not engine.showing

    buffer.move_cursor(Position(0, 0))
    engine.update(buffer)
    assert buffer.overlay_calls == 2


def test_clear_without_overlay_is_harmless():
    buffer = CountingBuffer("x")
    engine = DecorationEngine()
    engine.clear(buffer)
    engine.clear(buffer)
    assert buffer.overlay is None
    assert not engine.showing
