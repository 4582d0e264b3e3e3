"""The orchestrating layer: owns all state and runs the dispatch loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

from fleece.channel import ChannelClient
from fleece.commands import COMMANDS, run_command
from fleece.config import FleeceSettings
from fleece.constants import DONE_MESSAGE, THINKING_MESSAGE, UNREACHABLE_MESSAGE
from fleece.decoration import DecorationEngine, shortcut_label
from fleece.errors import ChannelUnreachable, InvalidEndpoint
from fleece.events import ChannelEvent, ChannelFailure, Connected, Disconnected, Fragment
from fleece.host import EditorSurface, ExecutionHost, NotificationAction, Notifier, Position, Range
from fleece.log_utils import log_event
from fleece.prompts import autocomplete_prompt, comment_to_code_prompt, line_or_selection, surrounding_lines
from fleece.reconciler import DISCARD, Action, Decision, reconcile
from fleece.sanitize import current_platform
from fleece.session import Session, SessionController
from fleece.supervisor import RESTART_ACTION, ProcessSupervisor, Sleep

logger = logging.getLogger(__name__)

STOP_ACTION = NotificationAction(title="Stop autocomplete", action="stopAutocomplete")


class FleeceApp:
    """Wires the channel, session, supervisor and decorations to one host.

    Channel events are handled strictly one at a time by :meth:`run`. Commands
    run from the host's own tasks and only suspend while waiting for the
    server's pid or the startup delay.
    """

    def __init__(
        self,
        editor: EditorSurface,
        host: ExecutionHost,
        notifier: Notifier,
        settings: Optional[FleeceSettings] = None,
        *,
        channel: Optional[ChannelClient] = None,
        platform_kind: Optional[str] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.editor = editor
        self.notifier = notifier
        self.settings = settings or FleeceSettings()
        self.platform_kind = platform_kind or current_platform()
        self.session = Session()
        self.channel = channel or ChannelClient(connect_window=self.settings.connect_window)
        self.controller = SessionController(
            self.session,
            self.channel,
            notifier,
            self.settings.generation_config(),
            self.platform_kind,
        )
        self.supervisor = ProcessSupervisor(
            host,
            notifier,
            name=self.settings.terminal_name,
            start_command=self.settings.start_command,
            startup_delay=self.settings.startup_delay,
            restart=self.start_server,
            sleep=sleep,
        )
        self.decorations = DecorationEngine(shortcut_label(self.platform_kind))
        self._background: set[asyncio.Task] = set()
        self._thinking: Optional[asyncio.Future] = None

    # lifecycle

    def activate(self) -> bool:
        """Open the channel to the configured server URL."""
        log_event(logger, "app.activated", url=self.settings.url, platform=self.platform_kind)
        try:
            self.channel.connect(self.settings.url)
        except InvalidEndpoint as exc:
            log_event(logger, "channel.invalid_url", level=logging.ERROR, url=str(self.settings.url))
            self.notifier.error(exc.message)
            return False
        return True

    async def run(self) -> None:
        while True:
            event = await self.channel.events.get()
            await self.dispatch(event)

    async def shutdown(self) -> None:
        for task in list(self._background):
            task.cancel()
        for task in list(self._background):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.channel.close()

    # events

    async def dispatch(self, event: ChannelEvent) -> None:
        if isinstance(event, Fragment):
            self.handle_fragment(event.payload)
        elif isinstance(event, Connected):
            log_event(logger, "app.channel.ready", url=event.url)
        elif isinstance(event, Disconnected):
            log_event(logger, "app.channel.lost", reason=event.reason)
        elif isinstance(event, ChannelFailure):
            self._report_channel_failure(event)

    def handle_fragment(self, payload: object) -> Decision:
        # Residue of a stopped generation keeps arriving after /stop.
        if not self.session.generating:
            return DISCARD
        decision = reconcile(
            self.session,
            payload,
            self.platform_kind,
            strip_width=self.settings.marker_strip_width,
        )
        self.apply(decision)
        return decision

    def apply(self, decision: Decision) -> None:
        if decision.action is Action.INSERT:
            self.editor.insert(self.editor.cursor(), decision.text)
        elif decision.action is Action.COMPLETE:
            self.notifier.info(DONE_MESSAGE)
            self.controller.finish()
        elif decision.action is Action.CANCEL:
            self.controller.stop()
            self.notifier.info(DONE_MESSAGE)
        elif decision.action is Action.STRIP_MARKER:
            cursor = self.editor.cursor()
            start = max(0, cursor.character - decision.strip_width)
            self.editor.delete(Range.on_line(cursor.line, start, cursor.character))
            self.controller.stop()
            self.notifier.info(DONE_MESSAGE)
        if decision.ends_generation:
            self._dismiss_thinking()
            log_event(logger, "generation.ended", action=decision.action.value)

    def _report_channel_failure(self, event: ChannelFailure) -> None:
        if event.unreachable:
            answer = self.notifier.error(UNREACHABLE_MESSAGE, RESTART_ACTION)
            self._when_chosen(answer, RESTART_ACTION, self.start_server)
        else:
            self.notifier.error(event.error.message)

    def on_selection_changed(self) -> None:
        self.decorations.update(self.editor)

    # commands

    async def execute(self, name: str) -> bool:
        return await run_command(self, name)

    @staticmethod
    def command_names() -> list[str]:
        return list(COMMANDS)

    async def start_server(self) -> None:
        self._dismiss_thinking()
        self.session.reset()
        # The channel retries while the server boots, so the server goes first.
        await self.supervisor.start_or_restart()
        try:
            await self.channel.restart(self.settings.url)
        except InvalidEndpoint as exc:
            self.notifier.error(exc.message)

    def stop_generation(self) -> None:
        self.controller.stop()
        self._dismiss_thinking()

    async def comment_to_code(self) -> bool:
        if not await self._server_ready():
            return False
        if not self._channel_ready():
            return False
        prompt = comment_to_code_prompt(self.editor.language_id, line_or_selection(self.editor))
        if not self.controller.submit(prompt):
            return False
        self._go_to_next_line()
        self._show_thinking()
        return True

    async def autocomplete(self) -> bool:
        if not await self._server_ready():
            return False
        if not self._channel_ready():
            return False
        prompt = autocomplete_prompt(self.editor.language_id, surrounding_lines(self.editor))
        if not self.controller.submit(prompt):
            return False
        self._show_thinking()
        return True

    async def _server_ready(self) -> bool:
        handle = self.supervisor.ensure_server()
        if handle is None:
            return False
        await handle.wait_for_pid()
        return True

    def _channel_ready(self) -> bool:
        if self.channel.connected:
            return True
        log_event(logger, "app.channel.not_connected", level=logging.WARNING, url=self.settings.url)
        self._report_channel_failure(ChannelFailure(ChannelUnreachable("not connected")))
        return False

    def _go_to_next_line(self) -> None:
        selection = self.editor.selection()
        line = selection.end.line + 1
        self.editor.insert_line_after()
        self.editor.move_cursor(Position(line, 0))

    def _show_thinking(self) -> None:
        self._dismiss_thinking()
        self._thinking = self.notifier.info(THINKING_MESSAGE, STOP_ACTION)
        self._when_chosen(self._thinking, STOP_ACTION, self.stop_generation)

    def _dismiss_thinking(self) -> None:
        thinking, self._thinking = self._thinking, None
        if thinking is not None and not thinking.done():
            thinking.set_result(None)

    def _when_chosen(
        self,
        answer: "asyncio.Future[Optional[NotificationAction]]",
        action: NotificationAction,
        callback: Callable[[], Awaitable[object] | object],
    ) -> None:
        async def _wait() -> None:
            selection = await answer
            if selection is None or selection.action != action.action:
                return
            log_event(logger, "notification.action", action=action.action)
            result = callback()
            if asyncio.iscoroutine(result):
                await result

        task = asyncio.ensure_future(_wait())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
