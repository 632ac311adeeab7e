from __future__ import annotations

from typing import Iterator

import pytest

from .utils import FakeSupervisor, FakeWatcher, ManualScheduler, RecordingDisplay


@pytest.fixture
def display() -> RecordingDisplay:
    return RecordingDisplay()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def supervisor(scheduler: ManualScheduler) -> FakeSupervisor:
    return FakeSupervisor(scheduler)


@pytest.fixture
def watcher() -> FakeWatcher:
    return FakeWatcher()


@pytest.fixture
def no_color(monkeypatch) -> Iterator[None]:
    monkeypatch.setenv("NO_COLOR", "1")
    yield
