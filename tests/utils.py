from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import Callable

from relaunch.display import Channel
from relaunch.watcher import ChangeCallback, ChangeEvent, WatchError, WatchTarget


class RecordingDisplay:
    def __init__(self) -> None:
        self.records: list[tuple[str, Channel]] = []

    def __call__(self, message: str, channel: Channel) -> None:
        self.records.append((message, channel))

    def text(self, channel: Channel) -> str:
        return "".join(message for message, ch in list(self.records) if ch is channel)

    def messages(self, channel: Channel) -> list[str]:
        return [message for message, ch in list(self.records) if ch is channel]


@dataclass
class ScheduledTask:
    due: float
    delay: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler with a simulated clock; tasks run on ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.tasks: list[ScheduledTask] = []
        self.delays: list[float] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(self.now + delay, delay, callback)
        self.tasks.append(task)
        self.delays.append(delay)
        return task

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [t for t in self.tasks if not t.cancelled and t.due <= self.now + 1e-9]
        for task in due:
            self.tasks.remove(task)
            task.callback()

    @property
    def pending(self) -> list[ScheduledTask]:
        return [t for t in self.tasks if not t.cancelled]


@dataclass
class FakeProcess:
    start_file: str
    number: int
    killed: bool = False
    reaped: bool = False


@dataclass
class FakeSupervisor:
    clock: ManualScheduler
    calls: list[tuple[str, object, float]] = field(default_factory=list)
    spawn_error: Exception | None = None

    def spawn(self, start_file: str) -> FakeProcess:
        if self.spawn_error is not None:
            raise self.spawn_error
        process = FakeProcess(start_file, len(self.spawned) + 1)
        self.calls.append(("spawn", process, self.clock.now))
        return process

    def kill(self, process: FakeProcess) -> None:
        if process.killed:
            return
        process.killed = True
        self.calls.append(("kill", process, self.clock.now))

    def reap(self, process: FakeProcess) -> None:
        process.reaped = True
        self.calls.append(("reap", process, self.clock.now))

    def _of(self, kind: str) -> list:
        return [c for c in self.calls if c[0] == kind]

    @property
    def spawned(self) -> list:
        return self._of("spawn")

    @property
    def killed(self) -> list:
        return self._of("kill")


class FakeWatcher:
    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.subscriptions: list[tuple[str, ChangeCallback, bool]] = []
        self.started = False
        self.stopped = False

    def watch(self, path: str, callback: ChangeCallback, recursive: bool = True) -> WatchTarget:
        if path == self.fail_on:
            raise WatchError(f"Path does not exist: {path}")
        self.subscriptions.append((path, callback, recursive))
        return WatchTarget(path, recursive)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def fire(self, path: str, event_type: str = "modified") -> None:
        for watched, callback, _ in self.subscriptions:
            if watched == path:
                callback(ChangeEvent(event_type, path))


def wait_for(predicate: Callable[[], bool], timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()




def pid_alive(pid: int) -> bool:
    """True while ``pid`` exists and is not a zombie awaiting its parent."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    try:
        with open(f"/proc/{pid}/stat", encoding="ascii") as stat:
            state = stat.read().rsplit(")", 1)[1].split()[0]
    except (OSError, IndexError):
        return True
    return state not in ("Z", "X")
