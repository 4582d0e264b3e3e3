"""Inline "code from comment" hint on comment lines."""

from __future__ import annotations

import re
import sys

from fleece.host import EditorSurface, Line

COMMENT_PATTERN = re.compile(r"^[\s\t]*((//|#|<!--|;|/\*|--\s*|<!--\s*|///|\*/)\s*(.*))$")
HOVER_MESSAGE = "Autogenerate code"


def shortcut_label(platform_kind: str = sys.platform) -> str:
    keys = "⌘⌥" if platform_kind == "darwin" else "Ctrl+Alt+"
    return f"Code from Comment ({keys}C)"


def is_comment(line: Line) -> bool:
    return not line.is_empty_or_whitespace and COMMENT_PATTERN.match(line.text) is not None


class DecorationEngine:
    """Keeps at most one overlay; ``showing`` is the whole state."""

    def __init__(self, label: str | None = None) -> None:
        self.label = label or shortcut_label()
        self.showing = False

    def update(self, editor: EditorSurface) -> bool:
        """Re-evaluate the cursor line after a selection change."""
        line = editor.line_at(editor.cursor().line)
        if is_comment(line):
            self.show(editor, line)
        else:
            self.clear(editor)
        return self.showing

    def show(self, editor: EditorSurface, line: Line) -> None:
        if self.showing:
            return
        editor.set_overlay(line.range, self.label, HOVER_MESSAGE)
        self.showing = True

    def clear(self, editor: EditorSurface) -> None:
        editor.clear_overlay()
        self.showing = False
