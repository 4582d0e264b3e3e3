"""Turn raw streamed fragments into editor decisions.

The server re-sends the prompt before generating, leaks its own log lines
into the stream, pads with blank fragments and signals the end with literal
sentinels. :func:`reconcile` folds one fragment into the :class:`Session` and
says what the editor should do with it. Checks run in a fixed order:

1. noise (non-text, server diagnostics) is dropped before touching state;
2. the fragment is accumulated;
3. while the accumulated text is no longer than the prompt echo, nothing is
   emitted, so an echoed sentinel is never mistaken for a real one;
4. sentinels end the generation;
5. only the second and later blank fragments in a row are dropped;
6. a hard-end marker that arrived split across fragments is stripped back out
   of the editor;
7. anything left is inserted verbatim.

The caller gates on ``session.generating`` before calling in.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from fleece.constants import DEFAULT_MARKER_STRIP_WIDTH, HARD_END, SERVER_DIAGNOSTIC_MARKER, SOFT_END
from fleece.sanitize import sanitize_for_shell
from fleece.session import Session


class Action(enum.Enum):
    DISCARD = "discard"
    INSERT = "insert"
    COMPLETE = "complete"
    CANCEL = "cancel"
    STRIP_MARKER = "strip_marker"


@dataclass(frozen=True)
class Decision:
    action: Action
    text: str = ""
    strip_width: int = 0

    @property
    def ends_generation(self) -> bool:
        return self.action in (Action.COMPLETE, Action.CANCEL, Action.STRIP_MARKER)


DISCARD = Decision(Action.DISCARD)


def is_noise(response: Any) -> bool:
    return not isinstance(response, str) or SERVER_DIAGNOSTIC_MARKER in response


def echo_bound(session: Session) -> int:
    """Accumulated length up to which the server is still echoing the prompt.

    The echo ends with one newline per prompt line break on top of the prompt.
    """
    return len(session.prompt) + session.prompt_newline_count


def reconcile(
    session: Session,
    response: Any,
    platform_kind: str,
    *,
    strip_width: int = DEFAULT_MARKER_STRIP_WIDTH,
) -> Decision:
    if is_noise(response):
        return DISCARD

    session.accumulated_token = (session.accumulated_token + sanitize_for_shell(platform_kind, response)).strip()

    if len(session.accumulated_token) <= echo_bound(session):
        return DISCARD

    if response == SOFT_END:
        return Decision(Action.COMPLETE)
    if response == HARD_END:
        return Decision(Action.CANCEL)

    if not response.strip():
        session.consecutive_blank_runs += 1
        if session.consecutive_blank_runs > 1:
            return DISCARD
    else:
        session.consecutive_blank_runs = 0

    if HARD_END in session.accumulated_token:
        return Decision(Action.STRIP_MARKER, strip_width=strip_width)

    return Decision(Action.INSERT, text=response)
