from __future__ import annotations

import argparse
import signal
import sys
from dataclasses import dataclass
from typing import Sequence, Tuple

from relaunch import __version__
from relaunch.coordinator import RESTART_DELAY, RestartCoordinator
from relaunch.core import paths
from relaunch.core.util import dedupe
from relaunch.display import Console, color_supported
from relaunch.supervisor import ProcessSupervisor
from relaunch.watcher import DEFAULT_IGNORE, RelaunchError, Watcher


@dataclass(frozen=True)
class Options:
    start_file: str
    watch_paths: Tuple[str, ...]
    color: bool = True
    delay: float = RESTART_DELAY
    interpreter: str | None = None
    ignore: Tuple[str, ...] = DEFAULT_IGNORE
    verbose: bool = False
    script_args: Tuple[str, ...] = ()


def _die(msg: str) -> None:
    print(f"relaunch: {msg}", file=sys.stderr)
    sys.exit(1)


def _non_negative_seconds(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid delay: {raw!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError("delay must be >= 0")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relaunch",
        description="Run a script and restart it whenever watched files change.",
        epilog="Arguments after `--` are passed to the script.",
    )
    parser.add_argument(
        "--version", action="version", version=f"relaunch {__version__}"
    )
    parser.add_argument("script", help="script to run")
    parser.add_argument("watch", nargs="*", help="files or directories to watch (recursively)")
    parser.add_argument("--no-color", action="store_true", help="disable colored output")
    parser.add_argument(
        "--delay",
        type=_non_negative_seconds,
        default=RESTART_DELAY,
        help=f"seconds between stopping and restarting the script (default {RESTART_DELAY})",
    )
    parser.add_argument(
        "--exec",
        dest="interpreter",
        metavar="INTERPRETER",
        help="interpreter used to run the script (default: this Python)",
    )
    parser.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="PATTERN",
        help="ignore paths with a component matching PATTERN (repeatable)",
    )
    parser.add_argument("--verbose", action="store_true", help="show debug output")
    return parser


def parse_args(argv: Sequence[str]) -> Options:
    """Parse ``argv`` (without the program name) into Options.

    The script is always watched along with the given paths.
    """
    argv = list(argv)
    script_args: list[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, script_args = argv[:split], argv[split + 1:]

    args = build_parser().parse_args(argv)
    return Options(
        start_file=args.script,
        watch_paths=tuple(dedupe([args.script, *args.watch])),
        color=not args.no_color,
        delay=args.delay,
        interpreter=args.interpreter,
        ignore=tuple(dedupe([*DEFAULT_IGNORE, *args.ignore])),
        verbose=args.verbose,
        script_args=tuple(script_args),
    )


def _validate(options: Options) -> None:
    if not paths.is_script(options.start_file):
        _die(f"script not found: {options.start_file}")
    missing = paths.missing_paths(options.watch_paths)
    if missing:
        _die(f"cannot watch missing path(s): {', '.join(missing)}")


def _install_signal_handlers(coordinator: RestartCoordinator) -> None:
    """Stop the child before exiting when relaunch itself is terminated.

    The child runs in its own session, so it would not see a SIGTERM or
    SIGHUP sent to relaunch and would outlive it.
    """

    def _handle_signal(signum, _frame):
        coordinator.stop()
        sys.exit(0)

    for name in ("SIGTERM", "SIGHUP", "SIGBREAK"):
        sig = getattr(signal, name, None)
        if sig is not None:
            signal.signal(sig, _handle_signal)


def run(options: Options) -> None:
    _validate(options)

    display = Console(
        color=color_supported(sys.stdout, disabled=not options.color),
        verbose=options.verbose,
    )
    supervisor = ProcessSupervisor(
        display, interpreter=options.interpreter, script_args=options.script_args
    )
    coordinator = RestartCoordinator(
        supervisor, Watcher(options.ignore), display, delay=options.delay
    )
    _install_signal_handlers(coordinator)

    try:
        coordinator.start(options.start_file, options.watch_paths)
    except (RelaunchError, OSError) as exc:
        _die(str(exc))
    except KeyboardInterrupt:
        sys.exit(0)

    try:
        coordinator.wait()
    except KeyboardInterrupt:
        print()
        coordinator.stop()
    except Exception as exc:
        _die(f"stopped: {exc}")


def main(argv: Sequence[str] | None = None) -> None:
    options = parse_args(sys.argv[1:] if argv is None else argv)
    run(options)


if __name__ == "__main__":
    main()
