"""
Process Layer - Spawning, output relay and termination of the child.

Runs the target script under an interpreter, forwards its stdout/stderr
to the display from background threads, and terminates it on request.
"""

from __future__ import annotations

import codecs
import os
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from typing import IO, List, Optional, Sequence

from .core.util import display_name
from .display import Channel, Display


CHUNK_SIZE = 4096
REAP_TIMEOUT = 5.0


@dataclass
class SupervisedProcess:
    """A running child process and its relay threads."""
    start_file: str
    popen: subprocess.Popen
    readers: List[threading.Thread] = field(default_factory=list)
    killed: bool = False

    @property
    def pid(self) -> int:
        return self.popen.pid

    def alive(self) -> bool:
        return self.popen.poll() is None

    def join_output(self, timeout: Optional[float] = None) -> None:
        """Wait for both output streams to reach EOF."""
        for reader in self.readers:
            reader.join(timeout)


def _relay(pipe: IO[bytes], channel: Channel, display: Display) -> None:
    """Target function for reader threads. Forwards chunks as they arrive."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    try:
        for chunk in iter(lambda: pipe.read1(CHUNK_SIZE), b""):
            text = decoder.decode(chunk)
            if text:
                display(text, channel)
        tail = decoder.decode(b"", final=True)
        if tail:
            display(tail, channel)
    except (ValueError, OSError):
        # Pipe closed underneath us
        pass
    finally:
        pipe.close()


def _signal_group(popen: subprocess.Popen, force: bool = False) -> None:
    if os.name == "nt":
        if force:
            popen.kill()
        else:
            popen.terminate()
        return
    sig = signal.SIGKILL if force else signal.SIGTERM
    try:
        os.killpg(popen.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError:
        # Group not ours to signal (a member changed uid); the leader still is
        popen.send_signal(sig)


class ProcessSupervisor:
    """Owns the lifetime of one child process at a time."""

    def __init__(self, display: Display, interpreter: Optional[str] = None,
                 script_args: Sequence[str] = (), reap_timeout: float = REAP_TIMEOUT):
        self.display = display
        self.interpreter = interpreter or sys.executable
        self.script_args = list(script_args)
        self.reap_timeout = reap_timeout
        self._lock = threading.Lock()

    def command(self, start_file: str) -> List[str]:
        return [self.interpreter, start_file, *self.script_args]

    def spawn(self, start_file: str) -> SupervisedProcess:
        """Launch ``start_file`` and start relaying its output.

        Returns as soon as the child is started. A script that does not
        exist is not an error here; the interpreter reports it on the
        child's stderr.

        Args:
            start_file: Path of the script to run

        Returns:
            SupervisedProcess: Handle for the new child

        Raises:
            OSError: If the interpreter itself cannot be executed
        """
        env = dict(os.environ)
        env["PYTHONUNBUFFERED"] = "1"

        popen_kwargs = {}
        if os.name == "nt":
            popen_kwargs["creationflags"] = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        else:
            popen_kwargs["start_new_session"] = True

        popen = subprocess.Popen(
            self.command(start_file),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
            **popen_kwargs,
        )
        process = SupervisedProcess(start_file=start_file, popen=popen)

        for pipe, channel in ((popen.stdout, Channel.OUTPUT), (popen.stderr, Channel.ERROR)):
            reader = threading.Thread(
                target=_relay,
                args=(pipe, channel, self.display),
                name=f"relay-{channel.name.lower()}-{popen.pid}",
                daemon=True,
            )
            reader.start()
            process.readers.append(reader)

        threading.Thread(
            target=self._report_exit,
            args=(process,),
            name=f"exit-{popen.pid}",
            daemon=True,
        ).start()

        self.display(f"Started {display_name(start_file)} (pid {popen.pid})", Channel.DEBUG)
        return process

    def kill(self, process: SupervisedProcess) -> None:
        """Request termination of ``process``. Repeated calls are no-ops."""
        with self._lock:
            if process.killed:
                return
            process.killed = True
        if os.name == "nt" and not process.alive():
            return
        _signal_group(process.popen)

    def reap(self, process: SupervisedProcess) -> None:
        """Wait for a killed process to exit, force-killing it on timeout."""
        try:
            process.popen.wait(timeout=self.reap_timeout)
        except subprocess.TimeoutExpired:
            self.display(
                f"{display_name(process.start_file)} (pid {process.pid}) ignored SIGTERM, killing",
                Channel.DEBUG,
            )
            _signal_group(process.popen, force=True)
            process.popen.wait()
            return
        if os.name != "nt":
            # Leftover members of the child's process group
            _signal_group(process.popen, force=True)

    def _report_exit(self, process: SupervisedProcess) -> None:
        code = process.popen.wait()
        process.join_output()
        if process.killed:
            return
        self.display(
            f"{display_name(process.start_file)} exited with code {code}, waiting for changes...",
            Channel.STATUS,
        )
