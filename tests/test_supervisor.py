from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from fleece.constants import DEFAULT_TERMINAL_NAME, INTERRUPT_TEXT, STARTING_MESSAGE, UNREACHABLE_MESSAGE
from fleece.supervisor import CLOSED_MESSAGE, RESTART_ACTION, ProcessSupervisor
from tests.utils import FakeContext, FakeHost, RecordingNotifier, RecordingSleep, settle


def _supervisor(host: FakeHost, notifier: RecordingNotifier, **kwargs) -> ProcessSupervisor:
    kwargs.setdefault("sleep", RecordingSleep())
    return ProcessSupervisor(host, notifier, **kwargs)


@pytest.mark.asyncio
async def test_restart_in_existing_context_interrupts_then_starts():
    context = FakeContext(DEFAULT_TERMINAL_NAME)
    host = FakeHost([context])
    notifier = RecordingNotifier()
    sleep = RecordingSleep()
    supervisor = _supervisor(host, notifier, sleep=sleep)

    handle = await supervisor.start_or_restart()

    assert context.sent == [INTERRUPT_TEXT, "npx dalai serve"]
    assert notifier.texts("info") == [STARTING_MESSAGE]
    assert sleep.delays == []
    assert host.created == []
    assert context.shown == 1
    assert handle.context is context


@pytest.mark.asyncio
async def test_fresh_context_waits_for_pid_and_delay_before_starting():
    host = FakeHost()
    notifier = RecordingNotifier()
    sleep = RecordingSleep()
    supervisor = _supervisor(host, notifier, sleep=sleep, startup_delay=2.5, start_command="dalai serve --x")

    handle = await supervisor.start_or_restart()

    (context,) = host.created
    assert context.name == DEFAULT_TERMINAL_NAME
    assert handle.process_id == 4242
    assert sleep.delays == [2.5]
    assert context.sent == [INTERRUPT_TEXT, "dalai serve --x"]
    assert context.shown == 1


@pytest.mark.asyncio
async def test_repeated_restarts_register_one_close_observer():
    context = FakeContext(DEFAULT_TERMINAL_NAME)
    supervisor = _supervisor(FakeHost([context]), RecordingNotifier())

    first = await supervisor.start_or_restart()
    second = await supervisor.start_or_restart()

    assert first is second
    assert len(context.close_callbacks) == 1
    assert context.sent == [INTERRUPT_TEXT, "npx dalai serve"] * 2


@pytest.mark.asyncio
async def test_ensure_server_returns_handle_with_pid():
    context = FakeContext(DEFAULT_TERMINAL_NAME, pid=77)
    supervisor = _supervisor(FakeHost([context]), RecordingNotifier())

    handle = supervisor.ensure_server()

    assert handle is not None
    assert await handle.wait_for_pid() == 77
    assert context.sent == []


@pytest.mark.asyncio
async def test_missing_server_offers_restart_without_starting():
    restart = AsyncMock()
    notifier = RecordingNotifier()
    host = FakeHost()
    supervisor = _supervisor(host, notifier, restart=restart)

    assert supervisor.ensure_server() is None
    await settle()

    ((level, message, actions),) = notifier.messages
    assert (level, message) == ("error", UNREACHABLE_MESSAGE)
    assert actions == (RESTART_ACTION,)
    restart.assert_not_awaited()
    assert host.created == []


@pytest.mark.asyncio
async def test_picking_restart_runs_the_restart_callback():
    restart = AsyncMock()
    notifier = RecordingNotifier(answers={UNREACHABLE_MESSAGE: RESTART_ACTION.action})
    supervisor = _supervisor(FakeHost(), notifier, restart=restart)

    supervisor.ensure_server()
    await settle()

    restart.assert_awaited_once()


@pytest.mark.asyncio
async def test_clean_exit_reported_once_and_handle_retired():
    context = FakeContext(DEFAULT_TERMINAL_NAME)
    notifier = RecordingNotifier()
    supervisor = _supervisor(FakeHost([context]), notifier)
    handle = await supervisor.start_or_restart()

    context.close(0)
    context.close(0)

    assert notifier.texts() == [STARTING_MESSAGE, CLOSED_MESSAGE]
    assert handle.closed
    assert supervisor.handle is None


@pytest.mark.asyncio
async def test_crash_reports_exit_code():
    context = FakeContext(DEFAULT_TERMINAL_NAME)
    notifier = RecordingNotifier()
    supervisor = _supervisor(FakeHost([context]), notifier)
    await supervisor.start_or_restart()

    context.close(137)

    assert notifier.texts("error") == ["Dalai server crashed unexpectedly (Code: 137)"]


@pytest.mark.asyncio
async def test_new_handle_after_close_observes_again():
    context = FakeContext(DEFAULT_TERMINAL_NAME)
    notifier = RecordingNotifier()
    supervisor = _supervisor(FakeHost([context]), notifier)
    first = await supervisor.start_or_restart()
    context.close(1)

    second = await supervisor.start_or_restart()

    assert second is not first
    assert len(context.close_callbacks) == 2
