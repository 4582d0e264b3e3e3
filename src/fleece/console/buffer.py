"""In-memory text buffer standing in for an editor document."""

from __future__ import annotations

from typing import Callable, Optional

from fleece.host import Line, Position, Range

InsertListener = Callable[[str], None]


class TextBuffer:
    """A list of lines with a cursor, an optional selection and one overlay.

    Inserting at the cursor moves the cursor to the end of the inserted text,
    so consecutive streamed fragments land one after another.
    """

    def __init__(
        self,
        text: str = "",
        *,
        language_id: str = "plaintext",
        on_insert: Optional[InsertListener] = None,
    ) -> None:
        self.lines: list[str] = text.split("\n")
        self.language_id = language_id
        self._cursor = Position(0, 0)
        self._anchor: Optional[Position] = None
        self._on_insert = on_insert
        self.overlay: Optional[tuple[Range, str, str]] = None

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def cursor(self) -> Position:
        return self._cursor

    def selection(self) -> Range:
        if self._anchor is None:
            return Range(self._cursor, self._cursor)
        start, end = sorted((self._anchor, self._cursor))
        return Range(start, end)

    def select(self, start: Position, end: Position) -> None:
        self._anchor = self._clamp(start)
        self._cursor = self._clamp(end)

    def selected_text(self) -> str:
        span = self.selection()
        if span.is_empty:
            return ""
        if span.start.line == span.end.line:
            return self.lines[span.start.line][span.start.character : span.end.character]
        parts = [self.lines[span.start.line][span.start.character :]]
        parts.extend(self.lines[span.start.line + 1 : span.end.line])
        parts.append(self.lines[span.end.line][: span.end.character])
        return "\n".join(parts)

    def line_at(self, number: int) -> Line:
        return Line(number, self.lines[number])

    def line_count(self) -> int:
        return len(self.lines)

    def insert(self, position: Position, text: str) -> None:
        position = self._clamp(position)
        current = self.lines[position.line]
        head, tail = current[: position.character], current[position.character :]
        pieces = text.split("\n")
        pieces[0] = head + pieces[0]
        end = Position(position.line + len(pieces) - 1, len(pieces[-1]))
        pieces[-1] = pieces[-1] + tail
        self.lines[position.line : position.line + 1] = pieces
        if position == self._cursor:
            self._cursor = end
            self._anchor = None
        if self._on_insert is not None:
            self._on_insert(text)

    def delete(self, span: Range) -> None:
        start, end = self._clamp(span.start), self._clamp(span.end)
        if end < start:
            start, end = end, start
        merged = self.lines[start.line][: start.character] + self.lines[end.line][end.character :]
        self.lines[start.line : end.line + 1] = [merged]
        cursor = self._cursor
        if cursor <= start:
            pass
        elif cursor <= end:
            self._cursor = start
        elif cursor.line == end.line:
            self._cursor = Position(start.line, start.character + cursor.character - end.character)
        else:
            self._cursor = Position(cursor.line - (end.line - start.line), cursor.character)
        self._anchor = None

    def insert_line_after(self) -> None:
        line = self.selection().end.line
        self.lines.insert(line + 1, "")
        self._cursor = Position(line + 1, 0)
        self._anchor = None

    def move_cursor(self, position: Position) -> None:
        self._cursor = self._clamp(position)
        self._anchor = None

    def append_line(self, text: str) -> None:
        """Type a new line at the end of the buffer and put the cursor after it."""
        if self.lines == [""]:
            self.lines[0] = text
        else:
            self.lines.append(text)
        self.move_cursor(Position(len(self.lines) - 1, len(text)))

    def set_overlay(self, span: Range, label: str, hover: str) -> None:
        self.overlay = (span, label, hover)

    def clear_overlay(self) -> None:
        self.overlay = None

    def _clamp(self, position: Position) -> Position:
        line = min(max(position.line, 0), len(self.lines) - 1)
        character = min(max(position.character, 0), len(self.lines[line]))
        return Position(line, character)
