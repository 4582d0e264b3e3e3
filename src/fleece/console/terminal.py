"""Named shell sessions standing in for editor terminals.

Each :class:`LocalTerminal` is one long-lived shell reading command lines from
its stdin, like a terminal panel with a prompt. ``"\\x03"`` is delivered the
way a terminal delivers Ctrl+C: SIGINT to the foreground process group. The
shell traps INT so that interrupting a server leaves the shell alive for the
next command.
"""

from __future__ import annotations

import asyncio
import asyncio.subprocess as aio_subprocess
import contextlib
import logging
import os
import signal
import subprocess
from pathlib import Path
from typing import Callable, Optional

from fleece.console.display import print_info
from fleece.constants import INTERRUPT_TEXT
from fleece.log_utils import log_event
from fleece.paths import server_log_file

logger = logging.getLogger(__name__)

CloseCallback = Callable[[Optional[int]], None]

IS_WINDOWS = os.name == "nt"


def default_shell() -> list[str]:
    if IS_WINDOWS:
        return [os.environ.get("COMSPEC", "cmd.exe"), "/Q"]
    return ["/bin/sh"]


class LocalTerminal:
    """A shell subprocess spawned in the background on construction."""

    def __init__(
        self,
        name: str,
        *,
        shell: Optional[list[str]] = None,
        cwd: Optional[Path] = None,
        output_path: Optional[Path] = None,
    ) -> None:
        self.name = name
        self.exit_code: Optional[int] = None
        self.closed = False
        self._shell = shell or default_shell()
        self._cwd = cwd or Path.cwd()
        self._output_path = output_path or server_log_file()
        self._proc: Optional[aio_subprocess.Process] = None
        self._queued: list[str] = []
        self._close_callbacks: list[CloseCallback] = []
        self._pid: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        self._task = asyncio.ensure_future(self._run())

    def process_id(self) -> "asyncio.Future[int]":
        return self._pid

    def send_text(self, text: str) -> None:
        """Send one command line, or Ctrl+C for ``"\\x03"``."""
        if self.closed:
            return
        if self._proc is None:
            self._queued.append(text)
            return
        self._deliver(text)

    def on_close(self, callback: CloseCallback) -> None:
        self._close_callbacks.append(callback)

    def show(self) -> None:
        print_info(f"[{self.name}] output -> {self._output_path}")

    async def close(self) -> None:
        """Terminate the shell (and whatever it runs) and wait for it."""
        proc = self._proc
        if proc is None:
            self._task.cancel()
        elif proc.returncode is None:
            self._interrupt()
            if proc.stdin is not None:
                proc.stdin.close()
            with contextlib.suppress(ProcessLookupError):
                proc.terminate()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def _run(self) -> None:
        try:
            with open(self._output_path, "ab") as output:
                proc = await aio_subprocess.create_subprocess_exec(
                    *self._shell,
                    cwd=str(self._cwd),
                    stdin=aio_subprocess.PIPE,
                    stdout=output,
                    stderr=aio_subprocess.STDOUT,
                    env=os.environ.copy(),
                    **_session_kwargs(),
                )
        except OSError as exc:
            log_event(logger, "terminal.spawn_failed", level=logging.ERROR, name=self.name, error=str(exc))
            self._pid.set_exception(exc)
            self._finish(None)
            return

        self._proc = proc
        self._pid.set_result(proc.pid)
        log_event(logger, "terminal.spawned", name=self.name, pid=proc.pid, shell=self._shell[0])
        if not IS_WINDOWS:
            self._write("trap : INT")
        queued, self._queued = self._queued, []
        for text in queued:
            self._deliver(text)
        self._finish(await proc.wait())

    def _finish(self, exit_code: Optional[int]) -> None:
        self.closed = True
        self.exit_code = exit_code
        log_event(logger, "terminal.closed", name=self.name, exit_code=exit_code)
        for callback in list(self._close_callbacks):
            try:
                callback(exit_code)
            except Exception:  # noqa: BLE001
                logger.exception("Close observer failed for terminal %s", self.name)

    def _deliver(self, text: str) -> None:
        if text == INTERRUPT_TEXT:
            self._interrupt()
        else:
            self._write(text)

    def _write(self, line: str) -> None:
        proc = self._proc
        if proc is None or proc.stdin is None or proc.returncode is not None:
            return
        proc.stdin.write((line + os.linesep).encode())

    def _interrupt(self) -> None:
        proc = self._proc
        if proc is None or proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            if IS_WINDOWS:
                proc.send_signal(signal.CTRL_BREAK_EVENT)
            else:
                os.killpg(proc.pid, signal.SIGINT)
        log_event(logger, "terminal.interrupted", name=self.name)


def _session_kwargs() -> dict:
    if IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


class LocalTerminalHost:
    """Registry of named terminals; a closed terminal is no longer found."""

    def __init__(self, *, cwd: Optional[Path] = None, shell: Optional[list[str]] = None) -> None:
        self._cwd = cwd
        self._shell = shell
        self._terminals: dict[str, LocalTerminal] = {}

    def find(self, name: str) -> Optional[LocalTerminal]:
        terminal = self._terminals.get(name)
        if terminal is None or terminal.closed:
            return None
        return terminal

    def create(self, name: str) -> LocalTerminal:
        terminal = LocalTerminal(name, shell=self._shell, cwd=self._cwd)
        terminal.on_close(lambda _code: self._retire(name, terminal))
        self._terminals[name] = terminal
        return terminal

    def _retire(self, name: str, terminal: LocalTerminal) -> None:
        if self._terminals.get(name) is terminal:
            del self._terminals[name]

    async def close_all(self) -> None:
        for terminal in list(self._terminals.values()):
            await terminal.close()
