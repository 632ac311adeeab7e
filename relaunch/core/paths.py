from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Iterable, Optional


def resolve(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path))


def is_script(path: str) -> bool:
    return os.path.isfile(resolve(path))


def missing_paths(paths: Iterable[str]) -> list[str]:
    return [p for p in paths if not os.path.exists(resolve(p))]


def relative_to(path: str, root: Optional[str]) -> str:
    """``path`` relative to ``root``, or unchanged when it lies outside it."""
    if root is None:
        return path
    try:
        return str(Path(os.path.abspath(path)).relative_to(root))
    except ValueError:
        return path


def matches_any(path: str, patterns: Iterable[str], root: Optional[str] = None) -> bool:
    """True if any component of ``path`` below ``root`` matches one of ``patterns``."""
    parts = [p for p in os.path.normpath(relative_to(path, root)).split(os.sep) if p and p != "."]
    for pattern in patterns:
        for part in parts:
            if fnmatch.fnmatch(part, pattern):
                return True
    return False
