from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Optional

from fleece.channel import validate_url
from fleece.host import NotificationAction


async def settle(rounds: int = 10) -> None:
    """Let background tasks scheduled on the loop run to their next await."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class RecordingNotifier:
    """Notifier that records messages and answers from a canned table.

    ``answers`` maps a message to the action id to pick; anything else is
    answered as dismissed.
    """

    def __init__(self, answers: Optional[dict[str, str]] = None) -> None:
        self.answers = answers or {}
        self.messages: list[tuple[str, str, tuple[NotificationAction, ...]]] = []

    def info(self, message: str, *actions: NotificationAction) -> asyncio.Future:
        return self._record("info", message, actions)

    def error(self, message: str, *actions: NotificationAction) -> asyncio.Future:
        return self._record("error", message, actions)

    def texts(self, level: Optional[str] = None) -> list[str]:
        return [message for kind, message, _ in self.messages if level is None or kind == level]

    def _record(self, level: str, message: str, actions: tuple[NotificationAction, ...]) -> asyncio.Future:
        self.messages.append((level, message, actions))
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        wanted = self.answers.get(message)
        future.set_result(next((action for action in actions if action.action == wanted), None))
        return future


class RecordingSender:
    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.sent: list[tuple[str, Any]] = []

    def send(self, event: str, data: Any) -> bool:
        if not self.connected:
            return False
        self.sent.append((event, data))
        return True


class FakeChannelClient(RecordingSender):
    """Stands in for ChannelClient inside the app; no network involved."""

    def __init__(self, connected: bool = True) -> None:
        super().__init__(connected)
        self.events: asyncio.Queue = asyncio.Queue()
        self.urls: list[str] = []
        self.restarts = 0
        self.closed = False

    def connect(self, url: object) -> None:
        self.urls.append(validate_url(url))

    async def restart(self, url: object) -> None:
        self.restarts += 1
        self.urls.append(validate_url(url))

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, name: str, pid: int = 4242) -> None:
        self.name = name
        self.pid = pid
        self.sent: list[str] = []
        self.shown = 0
        self.close_callbacks: list[Callable[[Optional[int]], None]] = []

    def send_text(self, text: str) -> None:
        self.sent.append(text)

    async def process_id(self) -> int:
        return self.pid

    def on_close(self, callback: Callable[[Optional[int]], None]) -> None:
        self.close_callbacks.append(callback)

    def show(self) -> None:
        self.shown += 1

    def close(self, exit_code: Optional[int]) -> None:
        for callback in list(self.close_callbacks):
            callback(exit_code)


class FakeHost:
    def __init__(self, existing: Iterable[FakeContext] = ()) -> None:
        self.contexts = {context.name: context for context in existing}
        self.created: list[FakeContext] = []

    def find(self, name: str) -> Optional[FakeContext]:
        return self.contexts.get(name)

    def create(self, name: str) -> FakeContext:
        context = FakeContext(name)
        self.contexts[name] = context
        self.created.append(context)
        return context


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeWebSocket:
    """Async-iterable websocket fed from a queue; ``None`` ends the stream."""

    def __init__(self, frames: Iterable[Any] = ()) -> None:
        self.incoming: asyncio.Queue = asyncio.Queue()
        for frame in frames:
            self.incoming.put_nowait(frame)
        self.sent: list[str] = []
        self.closed = False

    def feed(self, frame: Any) -> None:
        self.incoming.put_nowait(frame)

    async def send(self, frame: str) -> None:
        self.sent.append(frame)

    async def close(self) -> None:
        self.closed = True
        self.incoming.put_nowait(None)

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> Any:
        item = await self.incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def __aenter__(self) -> "FakeWebSocket":
        return self

    async def __aexit__(self, *exc_info: object) -> bool:
        self.closed = True
        return False


class FakeConnector:
    """Hands out the given websockets in order and records the URLs dialled.

    The first ``refuse_first`` dials are refused, as while the server boots.
    """

    def __init__(
        self,
        *sockets: FakeWebSocket,
        error: Optional[BaseException] = None,
        refuse_first: int = 0,
    ) -> None:
        self.sockets = list(sockets)
        self.error = error
        self.refuse_first = refuse_first
        self.urls: list[str] = []

    def __call__(self, url: str) -> FakeWebSocket:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        if len(self.urls) <= self.refuse_first:
            raise ConnectionRefusedError(111, "Connection refused")
        return self.sockets.pop(0)
