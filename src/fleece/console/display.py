"""Rich console output that cooperates with the prompt_toolkit REPL."""

from __future__ import annotations

from io import StringIO
from threading import Lock
from typing import Any, Iterable

from prompt_toolkit.formatted_text import ANSI  # type: ignore
from prompt_toolkit.shortcuts import print_formatted_text  # type: ignore
from rich.console import Console
from rich.table import Table
from rich.text import Text

from fleece.console.buffer import TextBuffer

# Render into a buffer, then hand ANSI to prompt_toolkit so output lands above the prompt.
_render_buffer = StringIO()
_render_console = Console(
    file=_render_buffer,
    force_terminal=True,
    color_system="standard",
    markup=False,
    highlight=False,
)
_render_lock = Lock()

LEVEL_STYLES = {"info": "cyan", "error": "bold red"}


def _render_and_print(*args: Any, **kwargs: Any) -> None:
    kwargs.setdefault("end", "\n")
    with _render_lock:
        _render_buffer.seek(0)
        _render_buffer.truncate(0)
        _render_console.print(*args, **kwargs)
        output = _render_buffer.getvalue()
    if output:
        print_formatted_text(ANSI(output), end="")


def print_delta(text: str) -> None:
    """Echo one streamed insertion as it reaches the buffer."""
    _render_and_print(Text(text, style="green"), end="")


def print_notification(level: str, message: str, choices: Iterable[tuple[int, str]] = ()) -> None:
    line = Text(f"[{level}] {message}", style=LEVEL_STYLES.get(level, "white"))
    for number, title in choices:
        line.append(f"  /pick {number} = {title}", style="yellow")
    _render_and_print(line)


def print_info(message: str) -> None:
    _render_and_print(Text(message, style="#aaaaaa"))


def print_buffer(buffer: TextBuffer) -> None:
    """Show the buffer with line numbers, the cursor line and any overlay."""
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("", justify="right", style="#666666")
    table.add_column("Text")
    cursor_line = buffer.cursor().line
    overlay_line = buffer.overlay[0].start.line if buffer.overlay else None
    for number, text in enumerate(buffer.lines):
        row = Text(text, style="bold" if number == cursor_line else "")
        if number == overlay_line and buffer.overlay is not None:
            row.append(f"  {buffer.overlay[1]}", style="#777777 italic")
        marker = ">" if number == cursor_line else " "
        table.add_row(f"{marker}{number + 1}", row)
    _render_and_print(table)


def print_commands(entries: Iterable[tuple[str, str]]) -> None:
    table = Table(show_header=False, box=None, border_style="cyan")
    table.add_column("Command", style="cyan")
    table.add_column("Description", style="white")
    for hint, description in entries:
        table.add_row(hint, description)
    _render_and_print(table)
