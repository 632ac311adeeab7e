"""
Watcher Layer - Filesystem monitoring.

Wraps a watchdog observer behind a small ``watch(path, callback)``
interface. Access-only events and ignored paths are filtered out before
the callback sees them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core import paths


DEFAULT_IGNORE: Tuple[str, ...] = (
    ".git",
    ".hg",
    ".svn",
    "__pycache__",
    "*.pyc",
    "*.pyo",
    "*.swp",
    "*.swx",
    "*~",
    ".DS_Store",
)

# Reads do not change anything
ACCESS_EVENTS = frozenset({"opened", "closed_no_write"})


class RelaunchError(Exception):
    """Base error for relaunch."""


class WatchError(RelaunchError):
    """A path could not be watched."""


@dataclass(frozen=True)
class WatchTarget:
    path: str
    recursive: bool = True


@dataclass(frozen=True)
class ChangeEvent:
    event_type: str
    path: str


ChangeCallback = Callable[[ChangeEvent], None]


class RelaunchEventHandler(FileSystemEventHandler):
    """Forwards relevant watchdog events for one watch target."""

    def __init__(self, callback: ChangeCallback, ignore: Iterable[str] = DEFAULT_IGNORE,
                 only: Optional[str] = None, root: Optional[str] = None):
        super().__init__()
        self.callback = callback
        self.ignore = tuple(ignore)
        self.only = only
        self.root = root

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle any filesystem event."""
        if event.event_type in ACCESS_EVENTS:
            return

        path = self._relevant_path(event)
        if path is None:
            return

        self.callback(ChangeEvent(event.event_type, path))

    def _relevant_path(self, event: FileSystemEvent) -> Optional[str]:
        candidates = [_as_str(event.src_path)]
        dest = _as_str(getattr(event, "dest_path", "") or "")
        if dest:
            candidates.append(dest)

        for candidate in candidates:
            if self.only is not None and os.path.abspath(candidate) != self.only:
                continue
            if self._should_ignore_path(candidate):
                continue
            return candidate
        return None

    def _should_ignore_path(self, path: str) -> bool:
        """Check if path should be ignored based on the ignore patterns.

        Only components below the watch root count, so a project checked out
        under an ignored directory name is still watched.
        """
        return paths.matches_any(path, self.ignore, root=self.root)


def _as_str(path) -> str:
    if isinstance(path, bytes):
        return os.fsdecode(path)
    return str(path)


class Watcher:
    """Recursive filesystem subscriptions backed by one watchdog observer."""

    def __init__(self, ignore: Iterable[str] = DEFAULT_IGNORE):
        self.ignore = tuple(ignore)
        self.targets: List[WatchTarget] = []
        self._observer = Observer()
        self._started = False

    def watch(self, path: str, callback: ChangeCallback, recursive: bool = True) -> WatchTarget:
        """Subscribe ``callback`` to changes under ``path``.

        Args:
            path: File or directory to watch
            callback: Called with a ChangeEvent for every relevant change
            recursive: Watch subdirectories too (directories only)

        Returns:
            WatchTarget: The registered target

        Raises:
            WatchError: If the path does not exist or cannot be watched
        """
        watch_path = paths.resolve(path)
        if not os.path.exists(watch_path):
            raise WatchError(f"Path does not exist: {path}")

        if os.path.isdir(watch_path):
            handler = RelaunchEventHandler(callback, self.ignore, root=watch_path)
            scheduled, scheduled_recursive = watch_path, recursive
        else:
            # Watch the parent and keep only events for this file
            handler = RelaunchEventHandler(
                callback, self.ignore, only=watch_path, root=os.path.dirname(watch_path)
            )
            scheduled, scheduled_recursive = os.path.dirname(watch_path), False

        try:
            self._observer.schedule(handler, scheduled, recursive=scheduled_recursive)
        except OSError as exc:
            raise WatchError(f"Cannot watch {path}: {exc}") from exc

        target = WatchTarget(watch_path, recursive)
        self.targets.append(target)
        return target

    def start(self) -> None:
        try:
            self._observer.start()
        except OSError as exc:
            raise WatchError(f"Failed to start filesystem watching: {exc}") from exc
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self._observer.stop()
        self._observer.join()
