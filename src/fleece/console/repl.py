"""Interactive REPL driving fleece against the in-memory buffer."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable

from prompt_toolkit import PromptSession  # type: ignore
from prompt_toolkit.key_binding import KeyBindings  # type: ignore
from prompt_toolkit.patch_stdout import patch_stdout  # type: ignore

from fleece.app import FleeceApp
from fleece.commands import COMMANDS
from fleece.console.buffer import TextBuffer
from fleece.console.display import print_buffer, print_commands, print_info
from fleece.console.notifier import ConsoleNotifier
from fleece.host import Position

logger = logging.getLogger(__name__)

CANCEL_TOKEN = "__CANCEL__"


@dataclass
class ReplContext:
    app: FleeceApp
    buffer: TextBuffer
    notifier: ConsoleNotifier


SlashHandler = Callable[[ReplContext, str], Awaitable[bool] | bool]


@dataclass
class SlashCommandDef:
    description: str
    hint: str
    handler: SlashHandler


SLASH_HANDLERS: dict[str, SlashCommandDef] = {}

# Slash spellings of the app's command surface.
COMMAND_ALIASES = {
    "/start": "start-server",
    "/stop": "stop-generation",
    "/comment": "comment-to-code",
    "/complete": "autocomplete",
}


def register_slash_command(name: str, description: str, hint: str) -> Callable[[SlashHandler], SlashHandler]:
    def _decorator(func: SlashHandler) -> SlashHandler:
        SLASH_HANDLERS[name] = SlashCommandDef(description=description, hint=hint, handler=func)
        return func

    return _decorator


def _alias_handler(command: str) -> SlashHandler:
    async def _run(ctx: ReplContext, _argument: str) -> bool:
        return await ctx.app.execute(command)

    return _run


for _alias, _command in COMMAND_ALIASES.items():
    register_slash_command(_alias, COMMANDS[_command].description, _alias)(_alias_handler(_command))


@register_slash_command("/help", "Show available commands.", "/help")
def _handle_help(_ctx: ReplContext, _argument: str) -> bool:
    print_commands((entry.hint, entry.description) for entry in SLASH_HANDLERS.values())
    print_info("Any other line is typed into the buffer as a new line.")
    return True


@register_slash_command("/show", "Print the buffer with the cursor line marked.", "/show")
def _handle_show(ctx: ReplContext, _argument: str) -> bool:
    print_buffer(ctx.buffer)
    return True


@register_slash_command("/goto", "Move the cursor to the end of a line (1-based).", "/goto <line>")
def _handle_goto(ctx: ReplContext, argument: str) -> bool:
    if not argument.isdigit():
        print_info("Usage: /goto <line>")
        return True
    number = max(int(argument) - 1, 0)
    if number >= ctx.buffer.line_count():
        print_info(f"Buffer has {ctx.buffer.line_count()} lines.")
        return True
    ctx.buffer.move_cursor(Position(number, len(ctx.buffer.line_at(number).text)))
    ctx.app.on_selection_changed()
    print_buffer(ctx.buffer)
    return True


@register_slash_command("/lang", "Set the buffer language used in prompts.", "/lang <id>")
def _handle_lang(ctx: ReplContext, argument: str) -> bool:
    if argument:
        ctx.buffer.language_id = argument.split()[0]
    print_info(f"language: {ctx.buffer.language_id}")
    return True


@register_slash_command("/pick", "Answer a notification action by number.", "/pick <n>")
def _handle_pick(ctx: ReplContext, argument: str) -> bool:
    if not argument.isdigit() or not ctx.notifier.pick(int(argument)):
        pending = ", ".join(f"{n}={action.title}" for n, action in ctx.notifier.pending.items()) or "none"
        print_info(f"Usage: /pick <n> (pending: {pending})")
    return True


@register_slash_command("/quit", "Exit fleece.", "/quit")
def _handle_quit(_ctx: ReplContext, _argument: str) -> bool:
    print_info("[exiting]")
    raise SystemExit(0)


async def handle_slash_command(line: str, ctx: ReplContext) -> bool:
    """Dispatch a slash command, returning True if one was recognised."""
    trimmed = line.strip()
    if not trimmed.startswith("/"):
        return False
    command, _, argument = trimmed.partition(" ")
    entry = SLASH_HANDLERS.get(command)
    if entry is None:
        return False
    try:
        result = entry.handler(ctx, argument.strip())
        if asyncio.iscoroutine(result):
            await result
    except SystemExit:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.error("Slash command failed (%s): %s", command, exc)
    return True


async def interactive_loop(ctx: ReplContext) -> None:
    """Read lines until EOF or /quit; Escape stops the current generation."""
    kb = KeyBindings()

    @kb.add("escape")
    def _(event):  # type: ignore
        if not event.app.is_done:
            event.app.exit(result=CANCEL_TOKEN)

    session: PromptSession = PromptSession(key_bindings=kb)
    _handle_help(ctx, "")

    with patch_stdout():
        while True:
            try:
                line = await session.prompt_async(f"fleece [{ctx.buffer.language_id}]> ")
            except EOFError:
                break
            except KeyboardInterrupt:
                print("", file=sys.stderr)
                continue

            if line == CANCEL_TOKEN:
                ctx.app.stop_generation()
                print_info("[stopped]")
                continue
            if not line:
                continue
            if line.startswith("/"):
                if not await handle_slash_command(line, ctx):
                    print_info(f"Unknown command {line.split()[0]}; try /help")
                continue

            ctx.buffer.append_line(line)
            ctx.app.on_selection_changed()
            if ctx.buffer.overlay is not None:
                print_info(f"  {ctx.buffer.overlay[1]}: /comment")
