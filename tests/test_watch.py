from __future__ import annotations

import asyncio
import os
import signal
from pathlib import Path
from types import SimpleNamespace

import pytest

from conftest import make_session, wait_until

from cpjudge.builder import BuildResult
from cpjudge.errors import SelectionError
from cpjudge.watch import CycleOutcome, EventKind, TerminalKeySource, WatchController, WatchState, start_watch


class FakeActions:
    def __init__(self, build_ok: bool = True, gated: bool = False):
        self.build_ok = build_ok
        self.gated = gated
        self.gate: asyncio.Event | None = None
        self.builds = 0
        self.tests = 0

    async def build(self, session) -> BuildResult:
        self.builds += 1
        if self.gated:
            await self.gate.wait()
        return BuildResult(self.build_ok, "", "", None if self.build_ok else "Command failed")

    async def test(self, session) -> list:
        self.tests += 1
        return []


def _setup(tmp_path: Path, actions: FakeActions, **kwargs):
    main = tmp_path / "main.cpp"
    main.write_text("int main() {}\n", encoding="utf-8")
    session = make_session(tmp_path, main_file=str(main))
    completed: list[CycleOutcome] = []
    controller = WatchController(
        session,
        on_cycle_complete=completed.append,
        handle_signals=kwargs.pop("handle_signals", False),
        build_action=actions.build,
        test_action=kwargs.pop("test_action", actions.test),
        **kwargs,
    )
    return controller, main, completed


def test_file_change_runs_build_then_test(tmp_path: Path):
    actions = FakeActions()
    controller, main, completed = _setup(tmp_path, actions)

    async def scenario():
        task = asyncio.create_task(controller.run())
        await asyncio.sleep(0.05)
        os.utime(main, (1000, 1000))
        await wait_until(lambda: len(completed) == 1)
        controller.feed_key("q")
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())
    assert (actions.builds, actions.tests) == (1, 1)
    assert completed[0].trigger is EventKind.FILE_CHANGED
    assert completed[0].results == []
    assert controller.state is WatchState.STOPPED


def test_failed_build_skips_the_test_batch(tmp_path: Path):
    actions = FakeActions(build_ok=False)
    controller, main, completed = _setup(tmp_path, actions)

    async def scenario():
        task = asyncio.create_task(controller.run())
        await asyncio.sleep(0.05)
        os.utime(main, (1000, 1000))
        await wait_until(lambda: len(completed) == 1)
        controller.feed_key("q")
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())
    assert (actions.builds, actions.tests) == (1, 0)
    assert completed[0].results is None


def test_keys_run_build_only_and_test_only(tmp_path: Path):
    actions = FakeActions()
    controller, _, completed = _setup(tmp_path, actions)

    async def scenario():
        task = asyncio.create_task(controller.run())
        controller.feed_key("b")
        await wait_until(lambda: len(completed) == 1)
        assert (actions.builds, actions.tests) == (1, 0)
        controller.feed_key("T")
        await wait_until(lambda: len(completed) == 2)
        assert (actions.builds, actions.tests) == (1, 1)
        controller.feed_key("q")
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())
    assert [o.trigger for o in completed] == [EventKind.BUILD, EventKind.TEST]


def test_triggers_while_busy_are_dropped(tmp_path: Path):
    actions = FakeActions(gated=True)
    controller, main, completed = _setup(tmp_path, actions)

    async def scenario():
        actions.gate = asyncio.Event()
        task = asyncio.create_task(controller.run())
        await asyncio.sleep(0.05)
        os.utime(main, (1000, 1000))
        await wait_until(lambda: actions.builds == 1)
        assert controller.state is WatchState.BUSY

        os.utime(main, (2000, 2000))
        controller.feed_key("b")
        controller.feed_key("t")
        await asyncio.sleep(0.1)
        assert (actions.builds, actions.tests) == (1, 0)

        actions.gate.set()
        await wait_until(lambda: controller.state is WatchState.IDLE)
        await asyncio.sleep(0.1)
        controller.feed_key("q")
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())
    assert (actions.builds, actions.tests) == (1, 1)
    assert len(completed) == 1


def test_quit_stops_file_watching(tmp_path: Path):
    actions = FakeActions()
    controller, main, completed = _setup(tmp_path, actions)

    async def scenario():
        task = asyncio.create_task(controller.run())
        await asyncio.sleep(0.05)
        assert controller.watching
        controller.feed_key("q")
        await asyncio.wait_for(task, 5)
        assert not controller.watching
        os.utime(main, (3000, 3000))
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert actions.builds == 0
    assert completed == []
    assert controller.state is WatchState.STOPPED


def test_quit_mid_cycle_waits_for_the_cycle(tmp_path: Path):
    actions = FakeActions(gated=True)
    controller, main, completed = _setup(tmp_path, actions)

    async def scenario():
        actions.gate = asyncio.Event()
        task = asyncio.create_task(controller.run())
        controller.feed_key("b")
        await wait_until(lambda: actions.builds == 1)

        controller.feed_key("q")
        await wait_until(lambda: not controller.watching)
        assert controller.state is WatchState.BUSY
        assert not task.done()

        os.utime(main, (4000, 4000))
        controller.feed_key("t")
        await asyncio.sleep(0.1)

        actions.gate.set()
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())
    assert (actions.builds, actions.tests) == (1, 0)
    assert len(completed) == 1
    assert controller.state is WatchState.STOPPED


def test_signal_mid_cycle_is_acted_on_when_idle(tmp_path: Path):
    actions = FakeActions(gated=True)
    controller, _, completed = _setup(tmp_path, actions)

    async def scenario():
        actions.gate = asyncio.Event()
        task = asyncio.create_task(controller.run())
        controller.feed_key("b")
        await wait_until(lambda: actions.builds == 1)
        controller.notify_signal(signal.SIGTERM)
        await asyncio.sleep(0.05)
        assert controller.state is WatchState.BUSY
        assert not task.done()
        actions.gate.set()
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())
    assert len(completed) == 1
    assert controller.state is WatchState.STOPPED


def test_real_termination_signal_stops_the_loop(tmp_path: Path):
    actions = FakeActions()
    controller, _, _ = _setup(tmp_path, actions, handle_signals=True)

    async def scenario():
        task = asyncio.create_task(controller.run())
        await asyncio.sleep(0.05)
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())
    assert controller.state is WatchState.STOPPED
    assert actions.builds == 0


def test_harness_error_returns_to_idle(tmp_path: Path):
    actions = FakeActions()

    async def failing_test(session):
        raise SelectionError("Problem is not selected")

    controller, _, completed = _setup(tmp_path, actions, test_action=failing_test)

    async def scenario():
        task = asyncio.create_task(controller.run())
        controller.feed_key("t")
        await wait_until(lambda: len(completed) == 1)
        assert controller.state is WatchState.IDLE
        controller.feed_key("b")
        await wait_until(lambda: len(completed) == 2)
        controller.feed_key("q")
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())
    assert isinstance(completed[0].error, SelectionError)
    assert completed[1].error is None
    assert actions.builds == 1


def test_unknown_key_is_reported(tmp_path: Path, capsys):
    actions = FakeActions()
    controller, _, completed = _setup(tmp_path, actions)

    async def scenario():
        task = asyncio.create_task(controller.run())
        controller.feed_key("x")
        controller.feed_key("q")
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())
    assert "Unknown command: x" in capsys.readouterr().err
    assert actions.builds == 0
    assert completed == []


def test_controller_runs_only_once(tmp_path: Path):
    actions = FakeActions()
    controller, _, _ = _setup(tmp_path, actions)

    async def scenario():
        task = asyncio.create_task(controller.run())
        controller.feed_key("q")
        await asyncio.wait_for(task, 5)
        with pytest.raises(RuntimeError):
            await controller.run()

    asyncio.run(scenario())


def test_key_source_reads_from_a_file_descriptor(tmp_path: Path):
    actions = FakeActions()
    read_fd, write_fd = os.pipe()
    key_source = TerminalKeySource(stream=SimpleNamespace(fileno=lambda: read_fd))
    controller, _, completed = _setup(tmp_path, actions, key_source=key_source)

    async def scenario():
        task = asyncio.create_task(controller.run())
        await asyncio.sleep(0.05)
        os.write(write_fd, b"b")
        await wait_until(lambda: len(completed) == 1)
        os.write(write_fd, b"q")
        await asyncio.wait_for(task, 5)

    try:
        asyncio.run(scenario())
    finally:
        os.close(read_fd)
        os.close(write_fd)
    assert actions.builds == 1


def test_start_watch_resolves_once_on_quit(tmp_path: Path):
    main = tmp_path / "main.cpp"
    main.write_text("", encoding="utf-8")
    session = make_session(tmp_path, main_file=str(main))
    read_fd, write_fd = os.pipe()
    key_source = TerminalKeySource(stream=SimpleNamespace(fileno=lambda: read_fd))
    os.write(write_fd, b"q")

    async def scenario():
        return await asyncio.wait_for(
            start_watch(session, key_source=key_source, handle_signals=False), 5
        )

    try:
        assert asyncio.run(scenario()) is None
    finally:
        os.close(read_fd)
        os.close(write_fd)


def test_quit_posted_before_the_loop_starts_is_honoured(tmp_path: Path):
    actions = FakeActions()
    controller, _, _ = _setup(tmp_path, actions)

    async def scenario():
        task = asyncio.create_task(controller.run())
        controller.feed_key("q")
        await asyncio.wait_for(task, 2)

    asyncio.run(scenario())
    assert controller.state is WatchState.STOPPED
    assert not controller.watching


def test_signal_and_key_queued_before_run_are_handled_in_order(tmp_path: Path):
    actions = FakeActions()
    controller, _, completed = _setup(tmp_path, actions)
    controller.feed_key("b")
    controller.notify_signal(signal.SIGINT)

    async def scenario():
        await asyncio.wait_for(controller.run(), 2)

    asyncio.run(scenario())
    assert actions.builds == 1
    assert [o.trigger for o in completed] == [EventKind.BUILD]
    assert controller.state is WatchState.STOPPED
