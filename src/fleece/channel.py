"""Duplex channel to the inference server.

The client owns at most one live :class:`Channel`. Everything the connection
observes is pushed, in arrival order, onto a single ``asyncio.Queue`` of
:mod:`fleece.events` values; the app's dispatch loop is the only consumer.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from fleece.constants import DEFAULT_CONNECT_WINDOW, MAX_RETRY_DELAY, RESULT_EVENT, RETRY_DELAY, URL_SCHEME_PREFIX
from fleece.errors import ChannelError, ChannelUnreachable, InvalidEndpoint
from fleece.events import ChannelEvent, ChannelFailure, Connected, Disconnected, Fragment
from fleece.log_utils import log_chunks_enabled, log_event
from fleece.wire import CONNECT_FRAME, PONG_FRAME, PacketKind, WireError, decode, encode_event, socketio_url

logger = logging.getLogger(__name__)

Connector = Callable[[str], Any]
Sleep = Callable[[float], Awaitable[None]]


def validate_url(url: object) -> str:
    """Reject anything that is not a ``ws://`` URL before connecting."""
    if not isinstance(url, str) or not url.startswith(URL_SCHEME_PREFIX):
        raise InvalidEndpoint(url)
    return url


def classify_failure(exc: BaseException) -> ChannelUnreachable | ChannelError:
    """Split transport failures into "server not running" and everything else."""
    if isinstance(exc, (ChannelUnreachable, ChannelError)):
        return exc
    if isinstance(exc, (OSError, asyncio.TimeoutError)):
        return ChannelUnreachable(str(exc) or type(exc).__name__)
    if isinstance(exc, (InvalidHandshake, InvalidURI)):
        return ChannelError(str(exc))
    return ChannelError(str(exc) or type(exc).__name__)


@dataclass
class Channel:
    url: str
    connected: bool = False
    closing: bool = False
    websocket: Any = None
    task: Optional[asyncio.Task] = None
    pending_sends: set[asyncio.Task] = field(default_factory=set)


class ChannelClient:
    """Connect, send and tear down the server channel.

    A refused connection is retried with backoff for up to ``connect_window``
    seconds, since the server is usually still booting when the channel is
    opened. Once connected, a lost connection is final.
    """

    def __init__(
        self,
        events: Optional[asyncio.Queue[ChannelEvent]] = None,
        *,
        connector: Optional[Connector] = None,
        connect_window: float = DEFAULT_CONNECT_WINDOW,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.events: asyncio.Queue[ChannelEvent] = events if events is not None else asyncio.Queue()
        self.connect_window = connect_window
        self._connector = connector or websockets.connect
        self._sleep = sleep
        self._channel: Optional[Channel] = None

    @property
    def channel(self) -> Optional[Channel]:
        return self._channel

    @property
    def connected(self) -> bool:
        return self._channel is not None and self._channel.connected

    def connect(self, url: object) -> Channel:
        """Open a new channel; the outcome arrives later as an event."""
        valid_url = validate_url(url)
        channel = Channel(url=valid_url)
        channel.task = asyncio.get_running_loop().create_task(self._run(channel), name="fleece-channel")
        self._channel = channel
        log_event(logger, "channel.connect", url=valid_url)
        return channel

    async def restart(self, url: object) -> Channel:
        """Drop the current channel and force a brand-new connection."""
        valid_url = validate_url(url)
        await self.close()
        return self.connect(valid_url)

    async def close(self) -> None:
        channel, self._channel = self._channel, None
        if channel is None:
            return
        channel.closing = True
        channel.connected = False
        if channel.task is not None and not channel.task.done():
            channel.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await channel.task
        log_event(logger, "channel.closed", url=channel.url)

    def send(self, event: str, data: Any) -> bool:
        """Write one event if connected; otherwise drop it and return False."""
        channel = self._channel
        if channel is None or not channel.connected or channel.websocket is None:
            log_event(logger, "channel.send.dropped", level=logging.DEBUG, send_event=event)
            return False
        task = asyncio.get_running_loop().create_task(channel.websocket.send(encode_event(event, data)))
        channel.pending_sends.add(task)
        task.add_done_callback(lambda done: self._send_finished(channel, done))
        return True

    def _send_finished(self, channel: Channel, task: asyncio.Task) -> None:
        channel.pending_sends.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_event(logger, "channel.send.failed", level=logging.WARNING, error=str(exc))

    def _emit(self, channel: Channel, event: ChannelEvent) -> None:
        if channel.closing or channel is not self._channel:
            return
        self.events.put_nowait(event)

    async def _run(self, channel: Channel) -> None:
        reason = "closed by server"
        try:
            await self._connect_with_retry(channel)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as exc:
            reason = str(exc)
        except Exception as exc:  # noqa: BLE001 - every transport failure becomes an event
            error = classify_failure(exc)
            log_event(
                logger,
                "channel.error",
                level=logging.ERROR,
                unreachable=isinstance(error, ChannelUnreachable),
                error=str(exc),
            )
            self._emit(channel, ChannelFailure(error))
            reason = str(exc)
        finally:
            was_connected = channel.connected
            channel.connected = False
            channel.websocket = None
            if was_connected:
                log_event(logger, "channel.disconnected", reason=reason)
                self._emit(channel, Disconnected(reason))

    async def _connect_with_retry(self, channel: Channel) -> None:
        waited = 0.0
        delay = RETRY_DELAY
        while True:
            try:
                await self._receive(channel)
                return
            except (OSError, asyncio.TimeoutError) as exc:
                if channel.connected or waited >= self.connect_window:
                    raise
                log_event(logger, "channel.retry", level=logging.DEBUG, delay=delay, error=str(exc))
                await self._sleep(delay)
                waited += delay
                delay = min(delay * 2, MAX_RETRY_DELAY)

    async def _receive(self, channel: Channel) -> None:
        async with self._connector(socketio_url(channel.url)) as ws:
            channel.websocket = ws
            async for raw in ws:
                await self._handle_frame(channel, ws, raw)

    async def _handle_frame(self, channel: Channel, ws: Any, raw: Any) -> None:
        try:
            packet = decode(raw)
        except WireError as exc:
            log_event(logger, "channel.frame.invalid", level=logging.WARNING, error=str(exc))
            return

        if packet.kind is PacketKind.PING:
            await ws.send(PONG_FRAME)
        elif packet.kind is PacketKind.OPEN:
            await ws.send(CONNECT_FRAME)
        elif packet.kind is PacketKind.CONNECT:
            channel.connected = True
            log_event(logger, "channel.connected", url=channel.url)
            self._emit(channel, Connected(channel.url))
        elif packet.kind is PacketKind.EVENT and packet.event == RESULT_EVENT:
            response = packet.data.get("response") if isinstance(packet.data, dict) else None
            if log_chunks_enabled():
                log_event(logger, "channel.fragment", level=logging.DEBUG, response=repr(response))
            self._emit(channel, Fragment(response))
        elif packet.kind is PacketKind.CONNECT_ERROR:
            detail = packet.data.get("message") if isinstance(packet.data, dict) else packet.data
            raise ChannelError(str(detail))
        elif packet.kind in (PacketKind.DISCONNECT, PacketKind.CLOSE):
            await ws.close()
