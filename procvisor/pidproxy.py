"""Runs a daemonizing command and forwards signals to the daemon it leaves."""

from __future__ import annotations

import os
import queue
import re
import signal
import subprocess
import sys
import time
from typing import Sequence

_CHECK_INTERVAL = 5.0
_POLL_INTERVAL = 0.5

_FORWARDED_SIGNALS = tuple(
    getattr(signal, name)
    for name in ("SIGTERM", "SIGHUP", "SIGINT", "SIGUSR1", "SIGUSR2", "SIGQUIT", "SIGCHLD")
    if hasattr(signal, name)
)
_EXIT_SIGNALS = frozenset(
    getattr(signal, name) for name in ("SIGTERM", "SIGINT", "SIGQUIT") if hasattr(signal, name)
)
_PID_RE = re.compile(r"\s*([+-]?\d+)")


def _allow_forward(sig: int) -> bool:
    return sig != getattr(signal, "SIGCHLD", None)


def _signal_name(sig: int) -> str:
    try:
        return signal.Signals(sig).name
    except ValueError:
        return str(sig)


def read_pid(pidfile: str) -> int:
    """Return the number at the start of pidfile; ValueError if there is none."""
    with open(pidfile, encoding="utf-8") as f:
        text = f.read()
    match = _PID_RE.match(text)
    if match is None:
        raise ValueError(f"Fail to get pid from file {pidfile}")
    return int(match.group(1))


def is_process_alive(pid: int) -> bool:
    """Tell whether a signal can be sent to the process."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


def forward_signal(sig: int, pidfile: str) -> bool:
    """Send sig to the process named in pidfile; return whether it was sent."""
    name = _signal_name(sig)
    try:
        pid = read_pid(pidfile)
    except (OSError, ValueError) as exc:
        print(f"Fail to read pid from file {pidfile} with error:{exc}")
        return False
    print(f"Read pid {pid} from file {pidfile}")
    try:
        if pid <= 0:
            raise ProcessLookupError(f"invalid pid {pid}")
        os.kill(pid, sig)
    except OSError as exc:
        print(f"Fail to send signal {name} to process {pid} with error:{exc}")
        return False
    print(f"Succeed to send signal {name} to process {pid}")
    return True


def start_application(command: str, args: Sequence[str]) -> None:
    """Run the command to completion; exit with status 1 if it fails."""
    try:
        result = subprocess.run([command, *args])
    except OSError as exc:
        print(f"Fail to start program with error {exc}")
        raise SystemExit(1) from exc
    if result.returncode == 0:
        print(f"Succeed to start program:{command}")
        return
    print(f"Fail to start program with error exit status {result.returncode}")
    raise SystemExit(1)


def install_signal_and_forward(pidfile: str, exit_if_daemon_stopped: bool) -> None:
    """Forward received signals to the daemon until a terminating one arrives.

    Every five seconds the daemon is checked; if it has gone and
    exit_if_daemon_stopped is set, exits with status 1. A SIGTERM, SIGINT
    or SIGQUIT exits with status 0 after being forwarded.
    """
    received: queue.SimpleQueue[int] = queue.SimpleQueue()

    def handler(signum, frame):
        received.put(signum)

    previous = {sig: signal.signal(sig, handler) for sig in _FORWARDED_SIGNALS}
    try:
        next_check = time.monotonic() + _CHECK_INTERVAL
        while True:
            remaining = next_check - time.monotonic()
            if remaining > 0:
                try:
                    sig = received.get(timeout=min(remaining, _POLL_INTERVAL))
                except queue.Empty:
                    continue
                print(f"Get a signal {_signal_name(sig)}")
                if _allow_forward(sig):
                    forward_signal(sig, pidfile)
                if sig in _EXIT_SIGNALS:
                    raise SystemExit(0)
                continue
            next_check = time.monotonic() + _CHECK_INTERVAL
            try:
                pid = read_pid(pidfile)
            except (OSError, ValueError):
                continue
            if not is_process_alive(pid):
                print(f"Process {pid} is not alive")
                if exit_if_daemon_stopped:
                    raise SystemExit(1)
    finally:
        for sig, old in previous.items():
            signal.signal(sig, signal.SIG_DFL if old is None else old)


def _print_usage() -> None:
    print("Usage: pidproxy [-exit-daemon-stop] <pidfile> <command> [args...]")
    print("exit-daemon-stop  exit this pidproxy if the started daemon exits")


def main(argv: Sequence[str] | None = None) -> None:
    """Command line entry: pidproxy [-exit-daemon-stop] <pidfile> <command> [args...]."""
    args = list(sys.argv[1:] if argv is None else argv)
    exit_if_daemon_stopped = False
    if args and args[0] == "-exit-daemon-stop":
        exit_if_daemon_stopped = True
        args = args[1:]
    if len(args) < 2:
        _print_usage()
        return
    pidfile, command = args[0], args[1]
    start_application(command, args[2:])
    install_signal_and_forward(pidfile, exit_if_daemon_stopped)