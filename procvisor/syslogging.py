"""Writing program output to a local or remote syslog daemon."""

from __future__ import annotations

import datetime
import logging
import os
import queue
import re
import socket
import sys
import threading

log = logging.getLogger(__name__)

LOG_EMERG = 0
LOG_ALERT = 1
LOG_CRIT = 2
LOG_ERR = 3
LOG_WARNING = 4
LOG_NOTICE = 5
LOG_INFO = 6
LOG_DEBUG = 7

LOG_KERN = 0 << 3
LOG_USER = 1 << 3
LOG_MAIL = 2 << 3
LOG_DAEMON = 3 << 3
LOG_AUTH = 4 << 3
LOG_SYSLOG = 5 << 3
LOG_LPR = 6 << 3
LOG_NEWS = 7 << 3
LOG_UUCP = 8 << 3
LOG_CRON = 9 << 3
LOG_AUTHPRIV = 10 << 3
LOG_FTP = 11 << 3
LOG_LOCAL0 = 16 << 3
LOG_LOCAL1 = 17 << 3
LOG_LOCAL2 = 18 << 3
LOG_LOCAL3 = 19 << 3
LOG_LOCAL4 = 20 << 3
LOG_LOCAL5 = 21 << 3
LOG_LOCAL6 = 22 << 3
LOG_LOCAL7 = 23 << 3

_LEVELS = {
    name: level
    for names, level in (
        (("EMERG", "LOG_EMERG"), LOG_EMERG),
        (("ALERT", "LOG_ALERT"), LOG_ALERT),
        (("CRIT", "CRITICAL", "LOG_CRIT", "LOG_CRITICAL"), LOG_CRIT),
        (("ERR", "ERROR", "LOG_ERR", "LOG_ERROR"), LOG_ERR),
        (("WARNING", "WARN", "LOG_WARNING", "LOG_WARN"), LOG_WARNING),
        (("NOTICE", "LOG_NOTICE"), LOG_NOTICE),
        (("INFO", "LOG_INFO"), LOG_INFO),
        (("DEBUG", "LOG_DEBUG"), LOG_DEBUG),
    )
    for name in names
}

_FACILITIES = {
    name: facility
    for names, facility in (
        (("KERN", "KERNEL", "LOG_KERN", "LOG_KERNEL"), LOG_KERN),
        (("USER", "LOG_USER"), LOG_USER),
        (("MAIL", "LOG_MAIL"), LOG_MAIL),
        (("DAEMON", "LOG_DAEMON"), LOG_DAEMON),
        (("AUTH", "LOG_AUTH"), LOG_AUTH),
        (("SYSLOG", "LOG_SYSLOG"), LOG_SYSLOG),
        (("LPR", "LOG_LPR"), LOG_LPR),
        (("NEWS", "LOG_NEWS"), LOG_NEWS),
        (("UUCP", "LOG_UUCP"), LOG_UUCP),
        (("CRON", "LOG_CRON"), LOG_CRON),
        (("AUTHPRIV", "LOG_AUTHPRIV"), LOG_AUTHPRIV),
        (("FTP", "LOG_FTP"), LOG_FTP),
        (("LOCAL0", "LOG_LOCAL0"), LOG_LOCAL0),
        (("LOCAL1", "LOG_LOCAL1"), LOG_LOCAL1),
        (("LOCAL2", "LOG_LOCAL2"), LOG_LOCAL2),
        (("LOCAL3", "LOG_LOCAL3"), LOG_LOCAL3),
        (("LOCAL4", "LOG_LOCAL4"), LOG_LOCAL4),
        (("LOCAL5", "LOG_LOCAL5"), LOG_LOCAL5),
        (("LOCAL6", "LOG_LOCAL6"), LOG_LOCAL6),
        (("LOCAL7", "LOG_LOCAL7"), LOG_LOCAL7),
    )
    for name in names
}

_LOCAL_PATHS = ("/dev/log", "/var/run/syslog", "/var/run/log")
_CONNECT_TIMEOUT = 10.0
_PORT_RE = re.compile(r"[+-]?\d+")


def to_syslog_level(log_level: str) -> int:
    """Return the syslog severity named by log_level; LOG_INFO if unknown."""
    return _LEVELS.get(log_level.upper(), LOG_INFO)


def to_syslog_facility(facility: str) -> int:
    """Return the syslog facility named by facility; LOG_LOCAL0 if unknown."""
    return _FACILITIES.get(facility.upper(), LOG_LOCAL0)


def get_syslog_priority(props: dict[str, str]) -> int:
    """Combine syslog_priority (default notice) and syslog_facility (default local0)."""
    level = LOG_NOTICE
    if "syslog_priority" in props:
        level = to_syslog_level(props["syslog_priority"])
    facility = LOG_LOCAL0
    if "syslog_facility" in props:
        facility = to_syslog_facility(props["syslog_facility"])
    return level | facility


def _parse_port(text: str) -> int:
    if not _PORT_RE.fullmatch(text):
        raise ValueError(f"invalid port: {text!r}")
    return int(text)


def parse_syslog_config(config: str) -> tuple[str, str, int]:
    """Parse "[protocol:]host[:port]" into (protocol, host, port).

    The protocol defaults to udp; the port defaults to 514 for udp and
    6514 for tcp. Raises ValueError on a malformed setting.
    """
    fields = config.split(":")
    if len(fields) == 1:
        return "udp", fields[0], 514
    if len(fields) == 2:
        if fields[0] == "tcp":
            return "tcp", fields[1], 6514
        if fields[0] == "udp":
            return "udp", fields[1], 514
        return "udp", fields[0], _parse_port(fields[1])
    if len(fields) == 3:
        return fields[0], fields[1], _parse_port(fields[2])
    raise ValueError("invalid format")


def _unix_socket(network: str, path: str) -> socket.socket:
    family = getattr(socket, "AF_UNIX", None)
    if family is None:
        raise OSError("unix sockets are not supported on this platform")
    socktype = socket.SOCK_DGRAM if network == "unixgram" else socket.SOCK_STREAM
    sock = socket.socket(family, socktype)
    try:
        sock.connect(path)
    except OSError:
        sock.close()
        raise
    return sock


def _dial(network: str, raddr: str) -> socket.socket:
    if network in ("unix", "unixgram"):
        return _unix_socket(network, raddr)
    kind, suffix = network[:3], network[3:]
    families = {"": socket.AF_UNSPEC, "4": socket.AF_INET, "6": socket.AF_INET6}
    if kind not in ("tcp", "udp") or suffix not in families:
        raise OSError(f"unknown network {network}")
    host, sep, port = raddr.rpartition(":")
    if not sep:
        raise OSError(f"missing port in address {raddr}")
    socktype = socket.SOCK_STREAM if kind == "tcp" else socket.SOCK_DGRAM
    last_error: OSError | None = None
    for family, stype, proto, _, addr in socket.getaddrinfo(
            host, port, families[suffix], socktype):
        sock = socket.socket(family, stype, proto)
        try:
            sock.settimeout(_CONNECT_TIMEOUT)
            sock.connect(addr)
            sock.settimeout(None)
            return sock
        except OSError as exc:
            sock.close()
            last_error = exc
    raise last_error or OSError(f"cannot connect to {raddr}")


def _dial_local() -> socket.socket:
    for network in ("unixgram", "unix"):
        for path in _LOCAL_PATHS:
            try:
                return _unix_socket(network, path)
            except OSError:
                continue
    raise OSError("Unix syslog delivery error")


class _SyslogWriter:
    """A connection to a syslog daemon; an empty network means the local one."""

    def __init__(self, network: str, raddr: str, priority: int, tag: str) -> None:
        self.network = network
        self.raddr = raddr
        self.priority = priority
        self.tag = tag or os.path.basename(sys.argv[0]) or "python"
        try:
            self.hostname = socket.gethostname()
        except OSError:
            self.hostname = "localhost"
        self._lock = threading.Lock()
        self._sock: socket.socket | None = None
        self._local = not network
        self._connect()

    def _connect(self) -> None:
        self._sock = _dial(self.network, self.raddr) if self.network else _dial_local()

    def _close_socket(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None

    def _format(self, msg: str) -> bytes:
        nl = "" if msg.endswith("\n") else "\n"
        now = datetime.datetime.now().astimezone()
        pid = os.getpid()
        if self._local:
            stamp = f"{now:%b} {now.day:2d} {now:%H:%M:%S}"
            line = f"<{self.priority}>{stamp} {self.tag}[{pid}]: {msg}{nl}"
        else:
            stamp = now.isoformat(timespec="seconds")
            line = f"<{self.priority}>{stamp} {self.hostname} {self.tag}[{pid}]: {msg}{nl}"
        return line.encode("utf-8")

    def write(self, b: bytes | str) -> int:
        """Send one message, reconnecting once if the connection broke."""
        msg = b.decode("utf-8", errors="replace") if isinstance(b, (bytes, bytearray)) else str(b)
        with self._lock:
            if self._sock is not None:
                try:
                    self._sock.sendall(self._format(msg))
                    return len(b)
                except OSError:
                    self._close_socket()
            self._connect()
            self._sock.sendall(self._format(msg))
        return len(b)

    def close(self) -> None:
        with self._lock:
            self._close_socket()


class BackendSysLogWriter:
    """Sends messages to a syslog daemon from a background thread.

    The connection is made lazily and retried for every message until it
    succeeds; messages written while it cannot be made are dropped.
    """

    def __init__(self, network: str, raddr: str, priority: int, tag: str) -> None:
        self.network = network
        self.raddr = raddr
        self.priority = priority
        self.tag = tag
        self._queue: queue.Queue[bytes | None] = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(
            target=self._run, name=f"syslog-{raddr}", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        writer: _SyslogWriter | None = None
        while True:
            item = self._queue.get()
            if item is None:
                if writer is not None:
                    writer.close()
                return
            if writer is None:
                try:
                    writer = _SyslogWriter(self.network, self.raddr, self.priority, self.tag)
                except OSError as exc:
                    log.debug("cannot connect to syslog %s: %s", self.raddr, exc)
                    continue
            try:
                writer.write(item)
            except OSError:
                writer.close()
                writer = None

    def write(self, b: bytes | str) -> int:
        """Queue a message; raises ValueError once the writer is closed."""
        if self._closed:
            raise ValueError("write to a closed syslog writer")
        data = b.encode("utf-8") if isinstance(b, str) else bytes(b)
        self._queue.put(data)
        return len(b)

    def close(self) -> None:
        """Stop the background thread after the queued messages are sent."""
        if not self._closed:
            self._closed = True
            self._queue.put(None)


def open_syslog_writer(name: str, props: dict[str, str]):
    """Connect to the local syslog daemon; return None if that fails."""
    priority = get_syslog_priority(props)
    tag = props.get("syslog_tag", name)
    try:
        return _SyslogWriter("", "", priority, tag)
    except OSError as exc:
        log.debug("cannot connect to local syslog: %s", exc)
        return None


def open_remote_syslog_writer(name: str, config: str, props: dict[str, str]):
    """Connect to the syslog daemon given by config, "[protocol:]host[:port]".

    Falls back to the local daemon when config is empty or malformed, and
    to a background writer that keeps retrying when the connection fails.
    """
    if not config:
        return open_syslog_writer(name, props)
    try:
        protocol, host, port = parse_syslog_config(config)
    except ValueError:
        return open_syslog_writer(name, props)
    priority = get_syslog_priority(props)
    tag = props.get("syslog_tag", name)
    raddr = f"{host}:{port}"
    try:
        return _SyslogWriter(protocol, raddr, priority, tag)
    except OSError:
        return BackendSysLogWriter(protocol, raddr, priority, name)