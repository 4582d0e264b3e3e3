"""Named commands exposed to the host's command palette."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable

from fleece.log_utils import log_context, log_event

if TYPE_CHECKING:
    from fleece.app import FleeceApp

logger = logging.getLogger(__name__)

CommandHandler = Callable[["FleeceApp"], Awaitable[object] | object]


@dataclass
class CommandDef:
    name: str
    description: str
    handler: CommandHandler


COMMANDS: dict[str, CommandDef] = {}


def register_command(name: str, description: str) -> Callable[[CommandHandler], CommandHandler]:
    """Decorator to register a zero-argument command."""

    def _decorator(func: CommandHandler) -> CommandHandler:
        COMMANDS[name] = CommandDef(name=name, description=description, handler=func)
        return func

    return _decorator


@register_command("start-server", "Start (or restart) the local Dalai server and reconnect.")
async def _start_server(app: FleeceApp) -> None:
    await app.start_server()


@register_command("stop-generation", "Stop the generation in progress.")
def _stop_generation(app: FleeceApp) -> None:
    app.stop_generation()


@register_command("comment-to-code", "Generate an implementation for the comment on the cursor line.")
async def _comment_to_code(app: FleeceApp) -> bool:
    return await app.comment_to_code()


@register_command("autocomplete", "Continue the code around the cursor.")
async def _autocomplete(app: FleeceApp) -> bool:
    return await app.autocomplete()


async def run_command(app: FleeceApp, name: str) -> bool:
    """Run a registered command, returning False for unknown names.

    Failures are logged and shown to the user; they never propagate into the
    caller's loop.
    """
    entry = COMMANDS.get(name)
    if entry is None:
        return False

    with log_context(command=name):
        log_event(logger, "command.run")
        try:
            result = entry.handler(app)
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:  # noqa: BLE001
            logger.error("Command failed (%s): %s", name, exc, exc_info=True)
            app.notifier.error(f"Fleece command {name} failed: {exc}")
    return True
