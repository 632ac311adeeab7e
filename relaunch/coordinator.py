"""
Restart Layer - Debounced restarts driven by filesystem events.

The coordinator spawns the initial process, subscribes to every watch
path, and turns change events into restart cycles: kill the current
process, wait a fixed delay, spawn a replacement. Events arriving while a
cycle is in flight are dropped.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Sequence

from .core.util import display_name, join_paths
from .display import Channel, Display
from .supervisor import ProcessSupervisor, SupervisedProcess
from .watcher import ChangeCallback, ChangeEvent, WatchTarget


RESTART_DELAY = 2.0


class RestartState(Enum):
    IDLE = "idle"
    RESTARTING = "restarting"


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]


class WatchBackend(Protocol):
    def watch(self, path: str, callback: ChangeCallback, recursive: bool = True) -> WatchTarget: ...
    def start(self) -> None: ...
    def stop(self) -> None: ...


def schedule_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Run ``callback`` once on a daemon timer thread after ``delay`` seconds."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class RestartCoordinator:
    """Debounce/restart state machine around one supervised process."""

    def __init__(self, supervisor: ProcessSupervisor, watcher: WatchBackend,
                 display: Display, delay: float = RESTART_DELAY,
                 schedule: Scheduler = schedule_timer):
        if delay < 0:
            raise ValueError("restart delay must be >= 0")
        self.supervisor = supervisor
        self.watcher = watcher
        self.display = display
        self.delay = delay
        self.schedule = schedule

        self.start_file: Optional[str] = None
        self._state = RestartState.IDLE
        self._process: Optional[SupervisedProcess] = None
        self._pending: Optional[Cancellable] = None
        # Reentrant: a signal handler may call stop() while stop() holds it
        self._lock = threading.RLock()
        self._halted = threading.Event()
        self._failure: Optional[BaseException] = None

    @property
    def state(self) -> RestartState:
        return self._state

    @property
    def process(self) -> Optional[SupervisedProcess]:
        return self._process

    def start(self, start_file: str, watch_paths: Sequence[str]) -> None:
        """Spawn the initial process and subscribe to every watch path.

        Returns once the subscriptions are in place.

        Raises:
            WatchError: If a path cannot be watched. The initial process
                is killed before the error propagates.
        """
        self.start_file = start_file
        self.display(
            f"Starting {display_name(start_file)}, watching {join_paths(watch_paths) or 'nothing'} ...",
            Channel.STATUS,
        )
        self._process = self.supervisor.spawn(start_file)
        self._state = RestartState.IDLE

        try:
            for path in watch_paths:
                self.watcher.watch(path, self._on_change, recursive=True)
            self.watcher.start()
        except BaseException:
            self._terminate_current()
            raise

    def wait(self) -> None:
        """Block until the coordinator halts. Re-raises the failure, if any."""
        while not self._halted.wait(1.0):
            pass
        self.watcher.stop()
        if self._failure is not None:
            raise self._failure

    def stop(self) -> None:
        """Shut down: cancel a pending respawn and stop the current process."""
        with self._lock:
            pending, self._pending = self._pending, None
            self._halted.set()
        if pending is not None:
            pending.cancel()
        self.watcher.stop()
        self._terminate_current()

    def _on_change(self, event: ChangeEvent) -> None:
        with self._lock:
            if self._halted.is_set():
                return
            if self._state is RestartState.RESTARTING:
                dropped = True
            else:
                dropped = False
                self._state = RestartState.RESTARTING
                old = self._process

        if dropped:
            self.display(f"Ignoring {event.event_type} {event.path}, restart in progress", Channel.DEBUG)
            return

        try:
            self.display(f"Change detected in {event.path}, restarting...", Channel.STATUS)
            if old is not None:
                self.supervisor.kill(old)
            pending = self.schedule(self.delay, lambda: self._respawn(old))
            with self._lock:
                halted = self._halted.is_set()
                if not halted:
                    self._pending = pending
            if halted:
                pending.cancel()
        except Exception as exc:
            self._fail(exc)

    def _respawn(self, old: Optional[SupervisedProcess]) -> None:
        try:
            if old is not None:
                self.supervisor.reap(old)
            with self._lock:
                self._pending = None
                if self._halted.is_set():
                    return
            process = self.supervisor.spawn(self.start_file)
            with self._lock:
                self._process = process
                self._state = RestartState.IDLE
            if self._halted.is_set():
                # stop() ran while the replacement was being spawned
                self._terminate_current()
        except Exception as exc:
            self._fail(exc)

    def _fail(self, exc: BaseException) -> None:
        with self._lock:
            if self._failure is None:
                self._failure = exc
            self._halted.set()
        self.display(f"Supervisor failed: {exc}", Channel.STATUS)
        self._terminate_current()

    def _terminate_current(self) -> None:
        process = self._process
        if process is None:
            return
        self.supervisor.kill(process)
        self.supervisor.reap(process)
