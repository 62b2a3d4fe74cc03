"""
Watch mode: rebuild and retest on file change or single-key commands.

Three event sources (a file poller, a key source and termination signals)
feed one asyncio queue. A single loop consumes the queue and owns the
controller state, so at most one build/test cycle runs at a time. Triggers
that arrive while a cycle is in flight are dropped, not queued.
"""
import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from . import report
from .batch_runner import run_batch
from .builder import BuildResult, build
from .errors import HarnessError
from .judge import JudgeResult
from .session import Session

LOGGER = logging.getLogger(__name__)


class WatchState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


class EventKind(Enum):
    FILE_CHANGED = "file_changed"
    BUILD = "build"
    TEST = "test"
    QUIT = "quit"
    SIGNAL = "signal"
    UNKNOWN_KEY = "unknown_key"
    CYCLE_DONE = "cycle_done"


KEY_BINDINGS = {"b": EventKind.BUILD, "t": EventKind.TEST, "q": EventKind.QUIT}


@dataclass(frozen=True)
class WatchEvent:
    kind: EventKind
    detail: Any = None


@dataclass
class CycleOutcome:
    """What one build/test cycle produced."""
    trigger: EventKind
    build: Optional[BuildResult] = None
    results: Optional[List[JudgeResult]] = None
    error: Optional[BaseException] = None


BuildAction = Callable[[Session], Awaitable[BuildResult]]
TestAction = Callable[[Session], Awaitable[List[JudgeResult]]]


class FilePoller:
    """Posts FILE_CHANGED whenever the modification time of a file changes."""

    def __init__(self, path: str, interval_ms: int, post: Callable[[WatchEvent], None]):
        self.path = path
        self.interval = interval_ms / 1000
        self._post = post
        self._previous = None
        self._task: Optional[asyncio.Task] = None

    def _mtime(self) -> int:
        try:
            return os.stat(self.path).st_mtime_ns
        except FileNotFoundError:
            return 0

    def start(self) -> None:
        self._previous = self._mtime()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            current = self._mtime()
            if current != self._previous:
                self._previous = current
                self._post(WatchEvent(EventKind.FILE_CHANGED))

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    @property
    def active(self) -> bool:
        return self._task is not None


class TerminalKeySource:
    """
    Reads single key presses from a terminal.

    The terminal is switched to cbreak mode so keys arrive without Enter
    while Ctrl+C still raises SIGINT. The previous mode is restored on close.
    """

    def __init__(self, stream=None):
        self.stream = stream or sys.stdin
        self._fd: Optional[int] = None
        self._saved_mode = None
        self._on_key: Optional[Callable[[str], None]] = None

    def start(self, on_key: Callable[[str], None]) -> None:
        self._on_key = on_key
        self._fd = self.stream.fileno()
        if os.isatty(self._fd):
            import termios
            import tty
            self._saved_mode = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
        asyncio.get_running_loop().add_reader(self._fd, self._on_readable)

    def _on_readable(self) -> None:
        data = os.read(self._fd, 64)
        if not data:
            # EOF, nothing more will arrive
            asyncio.get_running_loop().remove_reader(self._fd)
            return
        for key in data.decode("utf-8", errors="ignore"):
            self._on_key(key)

    def close(self) -> None:
        if self._fd is None:
            return
        asyncio.get_running_loop().remove_reader(self._fd)
        if self._saved_mode is not None:
            import termios
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_mode)
            self._saved_mode = None
        self._fd = None


async def default_build_action(session: Session) -> BuildResult:
    print("Started to build")
    result = await build(session.config.build_command)
    report.print_build_result(result)
    return result


async def default_test_action(session: Session) -> List[JudgeResult]:
    print("Started to test")
    results = await run_batch(session)
    report.print_batch_results(results)
    return results


class WatchController:
    """
    State machine behind watch mode.

    IDLE accepts triggers and moves to BUSY for the duration of one cycle.
    Quit (key ``q``) and termination signals release every event source at
    once; the controller reaches STOPPED immediately when idle, or when the
    in-flight cycle completes.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(
        self,
        session: Session,
        on_cycle_complete: Optional[Callable[[CycleOutcome], None]] = None,
        key_source=None,
        handle_signals: bool = True,
        build_action: BuildAction = default_build_action,
        test_action: TestAction = default_test_action,
    ):
        self.session = session
        self.on_cycle_complete = on_cycle_complete
        self.key_source = key_source
        self.handle_signals = handle_signals
        self.build_action = build_action
        self.test_action = test_action

        self._state = WatchState.IDLE
        self._events: Optional[asyncio.Queue] = None
        # events posted before run() creates the queue
        self._pending: List[WatchEvent] = []
        self._poller: Optional[FilePoller] = None
        self._installed_signals: List[int] = []
        self._stop_requested: Optional[EventKind] = None
        self._cycle: Optional[asyncio.Task] = None
        self._started = False
        self._released = False

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def watching(self) -> bool:
        return self._poller is not None and self._poller.active

    # -- event sources -----------------------------------------------------

    def _post(self, event: WatchEvent) -> None:
        if self._events is None:
            self._pending.append(event)
        else:
            self._events.put_nowait(event)

    def feed_key(self, key: str) -> None:
        """Translate one key press into an event."""
        if key in ("\r", "\n", " ", "\x03"):
            return
        kind = KEY_BINDINGS.get(key.lower())
        if kind is None:
            self._post(WatchEvent(EventKind.UNKNOWN_KEY, key))
        else:
            self._post(WatchEvent(kind))

    def notify_signal(self, signum: int) -> None:
        self._post(WatchEvent(EventKind.SIGNAL, signum))

    def _start_sources(self) -> None:
        config = self.session.config
        self._poller = FilePoller(config.main_file, config.watch_interval_ms, self._post)
        self._poller.start()

        if self.key_source is not None:
            self.key_source.start(self.feed_key)

        if self.handle_signals:
            loop = asyncio.get_running_loop()
            for signum in self.SIGNALS:
                try:
                    loop.add_signal_handler(signum, self.notify_signal, signum)
                except (NotImplementedError, RuntimeError):
                    LOGGER.debug("Cannot install handler for %s", signum)
                    continue
                self._installed_signals.append(signum)

    def _release_sources(self) -> None:
        if self._released:
            return
        self._released = True
        if self._poller is not None:
            self._poller.stop()
        if self.key_source is not None:
            self.key_source.close()
        loop = asyncio.get_running_loop()
        for signum in self._installed_signals:
            loop.remove_signal_handler(signum)
        self._installed_signals = []

    # -- state machine -------------------------------------------------------

    async def run(self) -> None:
        """Run until quit or a termination signal; returns once, when STOPPED."""
        if self._started:
            raise RuntimeError("A watch controller can only be run once")
        self._started = True
        self._events = asyncio.Queue()
        for event in self._pending:
            self._events.put_nowait(event)
        self._pending = []
        self._start_sources()
        try:
            while self._state is not WatchState.STOPPED:
                event = await self._events.get()
                self._dispatch(event)
        finally:
            self._release_sources()

    def _dispatch(self, event: WatchEvent) -> None:
        kind = event.kind
        if kind in (EventKind.QUIT, EventKind.SIGNAL):
            self._request_stop(event)
        elif kind is EventKind.CYCLE_DONE:
            self._finish_cycle(event.detail)
        elif kind is EventKind.UNKNOWN_KEY:
            report.error(f"Unknown command: {event.detail}")
        elif self._state is WatchState.BUSY or self._stop_requested is not None:
            LOGGER.debug("Dropping %s, a cycle is in flight", kind.value)
        else:
            if kind is EventKind.FILE_CHANGED:
                print("Change detected")
                print(report.HR)
            self._state = WatchState.BUSY
            self._cycle = asyncio.get_running_loop().create_task(self._run_cycle(kind))

    def _request_stop(self, event: WatchEvent) -> None:
        if self._stop_requested is not None:
            return
        self._stop_requested = event.kind
        self._release_sources()
        if event.kind is EventKind.QUIT:
            report.warning("\nQuitting auto mode...")
        else:
            report.warning("\nTerminated.")
        if self._state is WatchState.BUSY:
            LOGGER.debug("Stop requested, waiting for the running cycle")
        else:
            self._state = WatchState.STOPPED

    def _finish_cycle(self, outcome: CycleOutcome) -> None:
        self._cycle = None
        self._state = WatchState.IDLE
        if outcome.error is not None and not isinstance(outcome.error, HarnessError):
            self._state = WatchState.STOPPED
            raise outcome.error
        if self.on_cycle_complete is not None:
            self.on_cycle_complete(outcome)
        if self._stop_requested is not None:
            self._state = WatchState.STOPPED

    async def _run_cycle(self, trigger: EventKind) -> None:
        outcome = CycleOutcome(trigger=trigger)
        try:
            if trigger in (EventKind.FILE_CHANGED, EventKind.BUILD):
                outcome.build = await self.build_action(self.session)
            run_tests = trigger is EventKind.TEST or (
                trigger is EventKind.FILE_CHANGED and outcome.build.success
            )
            if run_tests:
                outcome.results = await self.test_action(self.session)
        except HarnessError as exc:
            report.error(str(exc))
            outcome.error = exc
        except Exception as exc:
            outcome.error = exc
        finally:
            self._post(WatchEvent(EventKind.CYCLE_DONE, outcome))


async def start_watch(
    session: Session,
    on_cycle_complete: Optional[Callable[[CycleOutcome], None]] = None,
    **kwargs,
) -> None:
    """Run watch mode until the user quits; see WatchController."""
    controller = WatchController(session, on_cycle_complete=on_cycle_complete, **kwargs)
    await controller.run()
