"""Inbound channel events consumed by the dispatch loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from fleece.errors import ChannelError, ChannelUnreachable


@dataclass(frozen=True)
class Connected:
    url: str


@dataclass(frozen=True)
class Disconnected:
    reason: str = ""


@dataclass(frozen=True)
class Fragment:
    """Raw ``response`` value of one ``result`` event, unvalidated."""

    payload: Any


@dataclass(frozen=True)
class ChannelFailure:
    error: Union[ChannelUnreachable, ChannelError]

    @property
    def unreachable(self) -> bool:
        return isinstance(self.error, ChannelUnreachable)


ChannelEvent = Union[Connected, Disconnected, Fragment, ChannelFailure]
