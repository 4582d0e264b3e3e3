"""Command-line entrypoint: run fleece in the terminal host."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from fleece.app import FleeceApp
from fleece.config import load_settings
from fleece.console.buffer import TextBuffer
from fleece.console.display import print_delta
from fleece.console.notifier import ConsoleNotifier
from fleece.console.repl import ReplContext, interactive_loop
from fleece.console.terminal import LocalTerminalHost
from fleece.log_utils import build_log_config, configure_logging, log_event, parse_level

logger = logging.getLogger(__name__)

LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".rs": "rust",
    ".go": "go",
    ".c": "c",
    ".cpp": "cpp",
    ".java": "java",
    ".rb": "ruby",
    ".sh": "shellscript",
    ".sql": "sql",
    ".lua": "lua",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleece", description="Stream code from a local Dalai server.")
    parser.add_argument("--url", help="Server URL (ws://...); overrides the url setting.")
    parser.add_argument("--file", type=Path, help="Load this file into the buffer.")
    parser.add_argument("--language", help="Language id used in prompts (default: from --file suffix).")
    parser.add_argument("--start", action="store_true", help="Start the local server before the prompt.")
    parser.add_argument("--log-level", default=None, help="Log level (default: FLEECE_LOG_LEVEL or INFO).")
    return parser


def _load_buffer(path: Optional[Path], language: Optional[str]) -> TextBuffer:
    text = path.read_text(encoding="utf-8") if path else ""
    if language is None:
        language = LANGUAGE_BY_SUFFIX.get(path.suffix.lower(), "plaintext") if path else "plaintext"
    return TextBuffer(text, language_id=language, on_insert=print_delta)


async def run(argv: Sequence[str]) -> int:
    args = build_parser().parse_args(list(argv))
    configure_logging(build_log_config(default_level=parse_level(args.log_level, logging.INFO)))

    settings = load_settings()
    if args.url:
        settings = settings.model_copy(update={"url": args.url})

    try:
        buffer = _load_buffer(args.file, args.language)
    except OSError as exc:
        print(f"Cannot read {args.file}: {exc}", file=sys.stderr)
        return 1

    notifier = ConsoleNotifier()
    host = LocalTerminalHost()
    app = FleeceApp(buffer, host, notifier, settings)
    app.activate()
    dispatcher = asyncio.create_task(app.run(), name="fleece-dispatch")
    log_event(logger, "cli.started", url=settings.url, language=buffer.language_id)

    try:
        if args.start:
            await app.execute("start-server")
        await interactive_loop(ReplContext(app=app, buffer=buffer, notifier=notifier))
        return 0
    finally:
        notifier.dismiss_all()
        dispatcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await dispatcher
        await app.shutdown()
        await host.close_all()


def main_entry() -> None:
    try:
        raise SystemExit(asyncio.run(run(sys.argv[1:])))
    except KeyboardInterrupt:
        raise SystemExit(130)
