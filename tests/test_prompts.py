from __future__ import annotations

from fleece.console.buffer import TextBuffer
from fleece.host import Position
from fleece.prompts import autocomplete_prompt, comment_to_code_prompt, line_or_selection, surrounding_lines


def test_comment_to_code_prompt_text():
    prompt = comment_to_code_prompt("python", "  # add two numbers  ")
    assert prompt == (
        "Write a python implementation for the following comment:\n"
        " '# add two numbers'\n"
        "\\begin{code}\n"
    )


def test_autocomplete_prompt_text():
    prompt = autocomplete_prompt("rust", "\nfn main() {\n")
    assert prompt == "Complete the following rust code:\n\\begin{code}\nfn main() {"


def test_line_or_selection_prefers_selection():
    buffer = TextBuffer("# first\n# second\nthird")
    buffer.select(Position(0, 2), Position(1, 4))
    assert line_or_selection(buffer) == "first\n# se"


def test_line_or_selection_falls_back_to_cursor_line():
    buffer = TextBuffer("a\n# the comment")
    buffer.move_cursor(Position(1, 5))
    assert line_or_selection(buffer) == "# the comment"


def test_surrounding_lines_takes_cursor_line_and_two_above():
    buffer = TextBuffer("l0\nl1\nl2\nl3\nl4")
    buffer.move_cursor(Position(3, 0))
    assert surrounding_lines(buffer) == "l1\nl2\nl3"


def test_surrounding_lines_near_the_top():
    buffer = TextBuffer("only\nsecond")
    assert surrounding_lines(buffer) == "only"
    buffer.move_cursor(Position(1, 0))
    assert surrounding_lines(buffer, count=5) == "only\nsecond"
