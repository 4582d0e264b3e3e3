"""Prompt templates and the editor text they are built from."""

from __future__ import annotations

from fleece.host import EditorSurface

CONTEXT_LINES = 3


def comment_to_code_prompt(language: str, comment: str) -> str:
    return f"Write a {language} implementation for the following comment:\n '{comment.strip()}'\n\\begin{{code}}\n"


def autocomplete_prompt(language: str, code: str) -> str:
    return f"Complete the following {language} code:\n\\begin{{code}}\n{code.strip()}"


def line_or_selection(editor: EditorSurface) -> str:
    """Selected text, or the whole cursor line when nothing is selected."""
    if not editor.selection().is_empty:
        return editor.selected_text()
    return editor.line_at(editor.cursor().line).text


def surrounding_lines(editor: EditorSurface, count: int = CONTEXT_LINES) -> str:
    """The cursor line and up to ``count - 1`` lines above it."""
    current = editor.cursor().line
    first = max(0, current - count + 1)
    return "\n".join(editor.line_at(number).text for number in range(first, current + 1))
