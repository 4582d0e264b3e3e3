"""Lifecycle of the local inference server inside a named execution context."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from fleece.constants import (
    DEFAULT_START_COMMAND,
    DEFAULT_STARTUP_DELAY,
    DEFAULT_TERMINAL_NAME,
    INTERRUPT_TEXT,
    STARTING_MESSAGE,
)
from fleece.errors import ProcessCrashed, ServerNotFound
from fleece.host import ExecutionContext, ExecutionHost, NotificationAction, Notifier
from fleece.log_utils import log_event

logger = logging.getLogger(__name__)

RESTART_ACTION = NotificationAction(title="Restart", action="restartServer")
CLOSED_MESSAGE = "Dalai server closed successfully"

Sleep = Callable[[float], Awaitable[None]]
RestartCallback = Callable[[], Awaitable[object]]


@dataclass
class ServerHandle:
    context: ExecutionContext
    pid_future: "asyncio.Future[int]"
    process_id: Optional[int] = None
    closed: bool = False
    observed: bool = field(default=False, repr=False)

    async def wait_for_pid(self) -> int:
        if self.process_id is None:
            self.process_id = await self.pid_future
        return self.process_id


class ProcessSupervisor:
    """Find, start and restart the server; report how it exits.

    Nothing here restarts on its own. A missing server is reported with a
    "Restart" action and ``restart`` only runs when the user picks it.
    """

    def __init__(
        self,
        host: ExecutionHost,
        notifier: Notifier,
        *,
        name: str = DEFAULT_TERMINAL_NAME,
        start_command: str = DEFAULT_START_COMMAND,
        startup_delay: float = DEFAULT_STARTUP_DELAY,
        restart: Optional[RestartCallback] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._host = host
        self._notifier = notifier
        self.name = name
        self.start_command = start_command
        self.startup_delay = startup_delay
        self._restart = restart
        self._sleep = sleep
        self.handle: Optional[ServerHandle] = None
        self._background: set[asyncio.Task] = set()

    def ensure_server(self) -> Optional[ServerHandle]:
        """Return the running server's handle, or None after offering a restart."""
        context = self._host.find(self.name)
        if context is None:
            error = ServerNotFound(self.name)
            log_event(logger, "server.not_found", level=logging.WARNING, name=self.name)
            self._offer_restart(self._notifier.error(error.message, RESTART_ACTION))
            return None
        return self._attach(context)

    async def start_or_restart(self) -> ServerHandle:
        """Interrupt whatever runs in the context, then start the server."""
        context = self._host.find(self.name)
        if context is not None:
            handle = self._attach(context)
            self._send_restart(context)
        else:
            context = self._host.create(self.name)
            handle = self._attach(context)
            pid = await handle.wait_for_pid()
            log_event(logger, "server.context.created", name=self.name, pid=pid)
            await self._sleep(self.startup_delay)
            self._send_restart(context)
        context.show()
        return handle

    def _send_restart(self, context: ExecutionContext) -> None:
        context.send_text(INTERRUPT_TEXT)
        context.send_text(self.start_command)
        log_event(logger, "server.starting", name=self.name, command=self.start_command)
        self._notifier.info(STARTING_MESSAGE)

    def _attach(self, context: ExecutionContext) -> ServerHandle:
        handle = self.handle
        if handle is None or handle.context is not context or handle.closed:
            pid_future = asyncio.ensure_future(context.process_id())
            handle = ServerHandle(context=context, pid_future=pid_future)
            pid_future.add_done_callback(lambda fut, h=handle: self._record_pid(h, fut))
            self.handle = handle
        if not handle.observed:
            context.on_close(lambda code, h=handle: self._on_closed(h, code))
            handle.observed = True
        return handle

    @staticmethod
    def _record_pid(handle: ServerHandle, future: "asyncio.Future[int]") -> None:
        if future.cancelled() or future.exception() is not None:
            return
        handle.process_id = future.result()

    def _on_closed(self, handle: ServerHandle, exit_code: Optional[int]) -> None:
        if handle.closed:
            return
        handle.closed = True
        if self.handle is handle:
            self.handle = None
        if exit_code == 0:
            log_event(logger, "server.closed", name=self.name)
            self._notifier.info(CLOSED_MESSAGE)
        else:
            crash = ProcessCrashed(exit_code)
            log_event(logger, "server.crashed", level=logging.ERROR, name=self.name, exit_code=exit_code)
            self._notifier.error(crash.message)

    def _offer_restart(self, answer: "asyncio.Future[Optional[NotificationAction]]") -> None:
        async def _wait() -> None:
            selection = await answer
            if selection is not None and selection.action == RESTART_ACTION.action and self._restart is not None:
                await self._restart()

        task = asyncio.ensure_future(_wait())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
