"""The single generation session and its submit/stop controller."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from fleece.config import GenerationConfig
from fleece.constants import REQUEST_EVENT, STOP_PROMPT
from fleece.errors import AlreadyGenerating
from fleece.host import Notifier
from fleece.log_utils import log_event
from fleece.sanitize import sanitize_for_shell

logger = logging.getLogger(__name__)


class Sender(Protocol):
    def send(self, event: str, data: Any) -> bool: ...


@dataclass
class Session:
    """State of the current (or most recently finished) generation.

    When ``generating`` is False every other field holds its reset value.
    """

    prompt: str = ""
    prompt_newline_count: int = 0
    accumulated_token: str = ""
    generating: bool = False
    consecutive_blank_runs: int = 0

    def reset(self) -> None:
        self.prompt = ""
        self.prompt_newline_count = 0
        self.accumulated_token = ""
        self.generating = False
        self.consecutive_blank_runs = 0

    @property
    def is_fresh(self) -> bool:
        return self == Session()


def build_request(
    baseline: GenerationConfig,
    prompt: str,
    override: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    """Merge baseline and override (override wins per key), then the prompt."""
    return {**baseline.model_dump(), **dict(override or {}), "prompt": prompt}


class SessionController:
    """Start and cancel generations against one :class:`Session`."""

    def __init__(
        self,
        session: Session,
        sender: Sender,
        notifier: Notifier,
        baseline: GenerationConfig,
        platform_kind: str,
    ) -> None:
        self.session = session
        self._sender = sender
        self._notifier = notifier
        self._baseline = baseline
        self._platform_kind = platform_kind

    def submit(self, prompt: str, override_config: Optional[Mapping[str, Any]] = None) -> bool:
        session = self.session
        if session.generating:
            error = AlreadyGenerating()
            log_event(logger, "session.submit.rejected", level=logging.WARNING)
            self._notifier.error(error.message)
            return False

        session.prompt = sanitize_for_shell(self._platform_kind, prompt)
        session.prompt_newline_count = session.prompt.count("\n")
        # The sanitized copy only sizes the echo; the server gets the prompt as typed.
        delivered = self._sender.send(REQUEST_EVENT, build_request(self._baseline, prompt, override_config))
        session.generating = True
        log_event(
            logger,
            "session.submitted",
            prompt_chars=len(session.prompt),
            prompt_newlines=session.prompt_newline_count,
            delivered=delivered,
        )
        return True

    def stop(self) -> None:
        """Ask the server to stop and reset immediately, without waiting."""
        if not self.session.generating:
            return
        self._sender.send(REQUEST_EVENT, {"prompt": STOP_PROMPT})
        self.session.reset()
        log_event(logger, "session.stopped")

    def finish(self) -> None:
        """Reset after the server itself reported the end of generation."""
        if self.session.generating:
            self.session.reset()
            log_event(logger, "session.finished")
