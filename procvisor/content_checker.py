"""Readiness checks of started programs by output, script, TCP or HTTP."""

from __future__ import annotations

import queue
import socket
import subprocess
import threading
import time
import urllib.error
import urllib.request
from typing import Iterable, Sequence

_RETRY_DELAY = 0.1


class BaseChecker:
    """Waits until every include string has appeared in the written data."""

    def __init__(self, includes: Iterable[str], timeout: float) -> None:
        self.includes = list(includes)
        self.deadline = time.monotonic() + timeout
        self.data = ""
        self._queue: queue.Queue[str] = queue.Queue()

    def write(self, b: bytes | str) -> int:
        """Hand data to the checker."""
        text = b.decode("utf-8", errors="replace") if isinstance(b, (bytes, bytearray)) else str(b)
        self._queue.put(text)
        return len(b)

    def _is_ready(self) -> bool:
        return all(include in self.data for include in self.includes)

    def check(self) -> bool:
        """Return True once all includes are seen, False at the timeout."""
        while True:
            remaining = self.deadline - time.monotonic()
            if remaining <= 0:
                return False
            try:
                chunk = self._queue.get(timeout=remaining)
            except queue.Empty:
                return False
            self.data += chunk
            if self._is_ready():
                return True


class ScriptChecker:
    """Runs a command; the check succeeds if it exits with status 0."""

    def __init__(self, args: Sequence[str]) -> None:
        self.args = list(args)

    def check(self) -> bool:
        try:
            result = subprocess.run(self.args)
        except OSError:
            return False
        return result.returncode == 0


def _close_socket(conn: socket.socket) -> None:
    try:
        conn.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    conn.close()


class TCPChecker:
    """Connects to host:port and checks the data it sends."""

    def __init__(self, host: str, port: int, includes: Iterable[str], timeout: float) -> None:
        self.host = host
        self.port = port
        self._base = BaseChecker(includes, timeout)
        self._lock = threading.Lock()
        self._conn: socket.socket | None = None
        self._done = False
        threading.Thread(target=self._run, name=f"tcp-check-{host}:{port}",
                         daemon=True).start()

    def _connect(self) -> socket.socket | None:
        while True:
            remaining = self._base.deadline - time.monotonic()
            try:
                conn = socket.create_connection(
                    (self.host, self.port), timeout=max(remaining, _RETRY_DELAY))
                conn.settimeout(None)
                return conn
            except OSError:
                if time.monotonic() >= self._base.deadline:
                    return None
                time.sleep(_RETRY_DELAY)

    def _run(self) -> None:
        conn = self._connect()
        if conn is None:
            return
        with self._lock:
            if self._done:
                _close_socket(conn)
                return
            self._conn = conn
        while True:
            try:
                data = conn.recv(1024)
            except OSError:
                return
            if not data:
                return
            self._base.write(data)

    def check(self) -> bool:
        """Return whether the expected data arrived in time; closes the connection."""
        ready = self._base.check()
        with self._lock:
            self._done = True
            conn, self._conn = self._conn, None
        if conn is not None:
            _close_socket(conn)
        return ready


class HTTPChecker:
    """Requests a URL until it answers; a 2xx status means ready."""

    def __init__(self, url: str, timeout: float) -> None:
        self.url = url
        self.deadline = time.monotonic() + timeout

    def check(self) -> bool:
        while True:
            remaining = self.deadline - time.monotonic()
            if remaining <= 0:
                return False
            try:
                with urllib.request.urlopen(self.url, timeout=max(remaining, _RETRY_DELAY)) as resp:
                    return 200 <= resp.status < 300
            except urllib.error.HTTPError as exc:
                exc.close()
                return 200 <= exc.code < 300
            except OSError:
                time.sleep(min(_RETRY_DELAY, max(remaining, 0)))