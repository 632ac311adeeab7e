from __future__ import annotations

import re
from typing import Iterable, TypeVar


T = TypeVar("T")

LEADING_DOT_SLASH_RE = re.compile(r"^(?:\./)?(.+?)$")


def display_name(path: str) -> str:
    m = LEADING_DOT_SLASH_RE.match(path)
    return m.group(1) if m else path


def join_paths(paths: Iterable[str]) -> str:
    return ", ".join(display_name(p) for p in paths)


def dedupe(items: Iterable[T]) -> list[T]:
    seen: set[T] = set()
    out: list[T] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out
