"""Failure taxonomy.

Every failure is terminal to the action that triggered it; recovery is always
a new explicit user action. The ``message`` of each error is what the user
sees in a notification.
"""

from __future__ import annotations

from fleece.constants import UNREACHABLE_MESSAGE


class FleeceError(Exception):
    """Base class for fleece failures."""

    message = "Fleece error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidEndpoint(FleeceError, ValueError):
    message = "Invalid URL"

    def __init__(self, url: object) -> None:
        super().__init__(f"Invalid URL: {url!r} (expected ws://...)")
        self.url = url


class ChannelUnreachable(FleeceError):
    """The server is not accepting connections; a restart is offered."""

    message = UNREACHABLE_MESSAGE

    def __init__(self, detail: str = "") -> None:
        super().__init__()
        self.detail = detail


class ChannelError(FleeceError):
    """Any other transport failure, surfaced verbatim."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Socket Error: {detail}")
        self.detail = detail


class AlreadyGenerating(FleeceError):
    message = "Fleece is already generating!"


class ServerNotFound(FleeceError):
    message = UNREACHABLE_MESSAGE

    def __init__(self, name: str) -> None:
        super().__init__()
        self.name = name


class ProcessCrashed(FleeceError):
    def __init__(self, exit_code: int | None) -> None:
        super().__init__(f"Dalai server crashed unexpectedly (Code: {exit_code})")
        self.exit_code = exit_code
