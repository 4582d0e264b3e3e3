"""Escaping for text that crosses into the server's shell command line."""

from __future__ import annotations

import sys

WINDOWS = "win32"


def current_platform() -> str:
    return sys.platform


def _is_windows(platform_kind: str) -> bool:
    return platform_kind.lower() == WINDOWS


def escape_double_quotes(platform_kind: str, text: str) -> str:
    if _is_windows(platform_kind):
        return text.replace('"', '`"')
    return text.replace('"', '\\"')


def escape_newlines(platform_kind: str, text: str) -> str:
    if _is_windows(platform_kind):
        return text.replace("\n", "\\n").replace("\r", "\\r")
    return text


def sanitize_for_shell(platform_kind: str, text: str) -> str:
    """Escape quotes and, on Windows, line breaks.

    Escaping is a per-character mapping, so sanitizing fragments one at a time
    and concatenating gives the same result as sanitizing the concatenation.
    """
    return escape_newlines(platform_kind, escape_double_quotes(platform_kind, text))


def unescape_for_shell(platform_kind: str, text: str) -> str:
    """Literal inverse of :func:`sanitize_for_shell` for text it produced."""
    if _is_windows(platform_kind):
        out: list[str] = []
        i = 0
        while i < len(text):
            pair = text[i : i + 2]
            if pair == "\\n":
                out.append("\n")
            elif pair == "\\r":
                out.append("\r")
            elif pair == '`"':
                out.append('"')
            else:
                out.append(text[i])
                i += 1
                continue
            i += 2
        return "".join(out)
    return text.replace('\\"', '"')
