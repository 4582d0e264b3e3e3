"""Interfaces fleece needs from its host environment.

The host supplies the editor, named execution contexts (terminals) and
notifications. :mod:`fleece.console` implements all of them for a terminal
session; tests use small fakes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol


@dataclass(frozen=True, order=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    @classmethod
    def on_line(cls, line: int, start: int, end: int) -> "Range":
        return cls(Position(line, start), Position(line, end))


@dataclass(frozen=True)
class Line:
    number: int
    text: str

    @property
    def is_empty_or_whitespace(self) -> bool:
        return not self.text.strip()

    @property
    def range(self) -> Range:
        return Range.on_line(self.number, 0, len(self.text))


@dataclass(frozen=True)
class NotificationAction:
    title: str
    action: str


class EditorSurface(Protocol):
    language_id: str

    def cursor(self) -> Position: ...

    def selection(self) -> Range: ...

    def selected_text(self) -> str: ...

    def line_at(self, number: int) -> Line: ...

    def line_count(self) -> int: ...

    def insert(self, position: Position, text: str) -> None: ...

    def delete(self, span: Range) -> None: ...

    def insert_line_after(self) -> None: ...

    def move_cursor(self, position: Position) -> None: ...

    def set_overlay(self, span: Range, label: str, hover: str) -> None: ...

    def clear_overlay(self) -> None: ...


class ExecutionContext(Protocol):
    name: str

    def send_text(self, text: str) -> None: ...

    def process_id(self) -> Awaitable[int]: ...

    def on_close(self, callback: Callable[[Optional[int]], None]) -> None: ...

    def show(self) -> None: ...


class ExecutionHost(Protocol):
    def find(self, name: str) -> Optional[ExecutionContext]: ...

    def create(self, name: str) -> ExecutionContext: ...


class Notifier(Protocol):
    """Messages resolve to the chosen action, or None when dismissed.

    Both methods return immediately; callers that care about the answer await
    the returned future.
    """

    def info(self, message: str, *actions: NotificationAction) -> "asyncio.Future[Optional[NotificationAction]]": ...

    def error(self, message: str, *actions: NotificationAction) -> "asyncio.Future[Optional[NotificationAction]]": ...
