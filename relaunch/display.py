"""
Console output for relaunch.

Renders status lines and relays child output, with optional ANSI colors.
"""

from __future__ import annotations

import os
import sys
import threading
from enum import Enum
from typing import Callable, Optional, TextIO


PREFIX = "[relaunch] "


class Channel(Enum):
    STATUS = "app-status"
    OUTPUT = "child-output"
    ERROR = "child-error"
    DEBUG = "app-debug"


class Colors:
    """ANSI color codes."""

    RESET = "\033[0m"
    DIM = "\033[2m"
    RED = "\033[31m"
    CYAN = "\033[36m"


Display = Callable[[str, Channel], None]


def color_supported(stream: TextIO, disabled: bool = False) -> bool:
    """Decide whether escape codes should be written to ``stream``.

    Args:
        stream: The stream status lines are written to
        disabled: True when the user asked for plain output

    Returns:
        bool: True if colors should be used
    """
    if disabled or os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def render(message: str, channel: Channel, color: bool = True) -> str:
    """Render ``message`` for ``channel``.

    Child output is returned untouched. Status and debug messages get the
    ``[relaunch]`` prefix. With ``color`` false no escape codes are added.
    """
    if channel is Channel.OUTPUT:
        return message
    if channel is Channel.ERROR:
        if not color or not message:
            return message
        return f"{Colors.RED}{message}{Colors.RESET}"

    text = PREFIX + message
    if not color:
        return text
    if channel is Channel.DEBUG:
        return f"{Colors.DIM}{text}{Colors.RESET}"
    return f"{Colors.CYAN}{text}{Colors.RESET}"


class Console:
    """Callable display writing to stdout/stderr."""

    def __init__(self, color: bool = True, verbose: bool = False,
                 stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None):
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.color = color
        self.verbose = verbose
        self._lock = threading.Lock()

    def __call__(self, message: str, channel: Channel) -> None:
        if channel is Channel.DEBUG and not self.verbose:
            return

        text = render(message, channel, self.color)
        if channel in (Channel.STATUS, Channel.DEBUG):
            text += "\n"
        stream = self.stderr if channel is Channel.ERROR else self.stdout

        with self._lock:
            stream.write(text)
            stream.flush()
