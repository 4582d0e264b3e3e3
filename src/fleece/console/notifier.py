"""Notifications printed to the console and answered with ``/pick``."""

from __future__ import annotations

import asyncio
import itertools
import logging

from fleece.console.display import print_notification
from fleece.host import NotificationAction
from fleece.log_utils import log_event

logger = logging.getLogger(__name__)


class ConsoleNotifier:
    """Every action offered gets a number; picking one answers its message."""

    def __init__(self) -> None:
        self._numbers = itertools.count(1)
        self._choices: dict[int, tuple[NotificationAction, asyncio.Future]] = {}

    def info(self, message: str, *actions: NotificationAction) -> asyncio.Future:
        return self._notify("info", message, actions)

    def error(self, message: str, *actions: NotificationAction) -> asyncio.Future:
        return self._notify("error", message, actions)

    @property
    def pending(self) -> dict[int, NotificationAction]:
        return {number: action for number, (action, _) in self._choices.items()}

    def pick(self, number: int) -> bool:
        """Answer the message that offered choice ``number``."""
        choice = self._choices.get(number)
        if choice is None:
            return False
        action, future = choice
        self._forget(future)
        if not future.done():
            future.set_result(action)
        log_event(logger, "notification.picked", action=action.action)
        return True

    def dismiss_all(self) -> None:
        for _, future in list(self._choices.values()):
            self._forget(future)
            if not future.done():
                future.set_result(None)

    def _notify(self, level: str, message: str, actions: tuple[NotificationAction, ...]) -> asyncio.Future:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        numbered = [(next(self._numbers), action) for action in actions]
        for number, action in numbered:
            self._choices[number] = (action, future)
        log_event(logger, "notification.shown", level_name=level, text=message, actions=len(numbered))
        print_notification(level, message, [(number, action.title) for number, action in numbered])
        if numbered:
            # Answered elsewhere, the choices are no longer pickable.
            future.add_done_callback(self._forget)
        else:
            future.set_result(None)
        return future

    def _forget(self, future: asyncio.Future) -> None:
        for number in [n for n, (_, f) in self._choices.items() if f is future]:
            del self._choices[number]
