"""Socket.IO v4 framing over a raw websocket.

Only the subset the Dalai server uses: the default namespace, text event
packets without acknowledgements, and Engine.IO heartbeats. A frame is one
Engine.IO packet; Socket.IO packets ride inside Engine.IO ``message`` (``4``)
packets.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any

ENGINE_IO_VERSION = 4
SOCKET_IO_PATH = "/socket.io/"

CONNECT_FRAME = "40"
PONG_FRAME = "3"


class WireError(ValueError):
    """Raised for frames that cannot be decoded."""


class PacketKind(enum.Enum):
    OPEN = "open"
    CLOSE = "close"
    PING = "ping"
    PONG = "pong"
    NOOP = "noop"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    EVENT = "event"
    CONNECT_ERROR = "connect_error"
    OTHER = "other"


_ENGINE_KINDS = {
    "0": PacketKind.OPEN,
    "1": PacketKind.CLOSE,
    "2": PacketKind.PING,
    "3": PacketKind.PONG,
    "6": PacketKind.NOOP,
}

_SOCKET_KINDS = {
    "0": PacketKind.CONNECT,
    "1": PacketKind.DISCONNECT,
    "2": PacketKind.EVENT,
    "4": PacketKind.CONNECT_ERROR,
}


@dataclass(frozen=True)
class Packet:
    kind: PacketKind
    event: str | None = None
    data: Any = None


def socketio_url(url: str) -> str:
    """Turn ``ws://host:port`` into the Engine.IO websocket endpoint."""
    return f"{url.rstrip('/')}{SOCKET_IO_PATH}?EIO={ENGINE_IO_VERSION}&transport=websocket"


def encode_event(event: str, data: Any) -> str:
    return "42" + json.dumps([event, data], separators=(",", ":"))


def _load_json(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise WireError(f"malformed packet payload: {text[:80]!r}") from exc


def _strip_namespace_and_ack(body: str) -> str:
    if body.startswith("/"):
        _, _, body = body.partition(",")
    index = 0
    while index < len(body) and body[index].isdigit():
        index += 1
    return body[index:]


def decode(frame: str | bytes) -> Packet:
    """Decode one text frame received from the server."""
    if isinstance(frame, bytes):
        raise WireError("binary frames are not supported")
    if not frame:
        raise WireError("empty frame")

    engine_type, body = frame[0], frame[1:]
    if engine_type in _ENGINE_KINDS:
        kind = _ENGINE_KINDS[engine_type]
        return Packet(kind, data=_load_json(body) if kind is PacketKind.OPEN else None)
    if engine_type != "4" or not body:
        return Packet(PacketKind.OTHER, data=frame)

    kind = _SOCKET_KINDS.get(body[0], PacketKind.OTHER)
    payload = _load_json(_strip_namespace_and_ack(body[1:]))
    if kind is not PacketKind.EVENT:
        return Packet(kind, data=payload)
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], str):
        raise WireError(f"event packet without a name: {frame[:80]!r}")
    return Packet(kind, event=payload[0], data=payload[1] if len(payload) > 1 else None)
