"""Event listeners: delivery of events to listener programs and capture of
process communication events from program output."""

from __future__ import annotations

import codecs
import logging
import threading
import time
from collections import deque
from typing import BinaryIO, Callable, Iterable

from procvisor.events import (
    EVENT_SYS_VERSION,
    EVENT_TYPE_DERIVES,
    PROC_COMMON_BEGIN,
    PROC_COMMON_END,
    Event,
    ProcCommEvent,
    TickEvent,
    event_pool_serial,
)

log = logging.getLogger(__name__)

_READ_ERRORS = (OSError, ValueError, EOFError)


class EventListener:
    """Feeds queued events to a listener program over its stdin/stdout.

    ``stdin`` is what the listener program writes (READY and RESULT lines),
    ``stdout`` is where encoded events are sent to it. Delivery runs in a
    background thread; an event is dropped from the queue only once the
    program answers OK.
    """

    def __init__(self, pool: str, server: str, stdin: BinaryIO, stdout: BinaryIO,
                 buffer_size: int) -> None:
        self.pool = pool
        self.server = server
        self.buffer_size = buffer_size
        self._stdin = stdin
        self._stdout = stdout
        self._cond = threading.Condition()
        self._events: deque[bytes] = deque()
        self._thread = threading.Thread(
            target=self._run, name=f"event-listener-{pool}", daemon=True
        )
        self._thread.start()

    def __repr__(self) -> str:
        return f"EventListener(pool={self.pool!r}, pending={self.pending})"

    @property
    def pending(self) -> int:
        """Number of events waiting to be acknowledged."""
        with self._cond:
            return len(self._events)

    def handle_event(self, event: Event) -> None:
        """Queue an event for delivery, discarding it if the buffer is full."""
        encoded = self.encode_event(event)
        with self._cond:
            if len(self._events) <= self.buffer_size:
                self._events.append(encoded)
                self._cond.notify()
            else:
                log.error("events reach the buffer size of listener %s, "
                          "discard the event", self.pool)

    def encode_event(self, event: Event) -> bytes:
        """Return the header line followed by the event body."""
        body = event.body().encode("utf-8")
        header = (
            f"ver:{EVENT_SYS_VERSION} server:{self.server} serial:{event.serial} "
            f"pool:{self.pool} poolserial:{event_pool_serial.next_serial(self.pool)} "
            f"eventname:{event.event_type} len:{len(body)}\n"
        )
        return header.encode("utf-8") + body

    def _first_event(self) -> bytes:
        with self._cond:
            while not self._events:
                self._cond.wait()
            return self._events[0]

    def _remove_first_event(self) -> None:
        with self._cond:
            if self._events:
                self._events.popleft()

    def _run(self) -> None:
        while True:
            try:
                self._wait_for_ready()
            except _READ_ERRORS:
                log.warning("fail to read from event listener %s, "
                            "the event listener may exit", self.pool)
                return
            while True:
                data = self._first_event()
                try:
                    self._stdout.write(data)
                    flush = getattr(self._stdout, "flush", None)
                    if flush is not None:
                        flush()
                except (OSError, ValueError):
                    log.warning("fail to send event to listener %s", self.pool)
                    break
                try:
                    result = self._read_result()
                except _READ_ERRORS:
                    log.warning("fail to read result from listener %s", self.pool)
                    break
                if result == "OK":
                    log.info("succeed to send the event to listener %s", self.pool)
                    self._remove_first_event()
                    break
                if result == "FAIL":
                    log.warning("listener %s failed to handle the event", self.pool)
                    break
                log.warning("unknown result %r from listener %s", result, self.pool)

    def _wait_for_ready(self) -> None:
        log.debug("waiting for event listener %s to be ready", self.pool)
        while True:
            line = self._stdin.readline()
            if not line:
                raise EOFError("event listener closed its output")
            if line == b"READY\n":
                log.debug("the event listener %s is ready", self.pool)
                return

    def _read_result(self) -> str:
        line = self._stdin.readline()
        if not line:
            raise EOFError("event listener closed its output")
        fields = line.split()
        if len(fields) != 2 or fields[0] != b"RESULT":
            raise ValueError("Fail to read the result")
        n = int(fields[1])
        if n < 0:
            raise ValueError("Fail to read the result because the result "
                             "bytes is less than 0")
        data = self._stdin.read(n) if n else b""
        if len(data) < n:
            raise EOFError("event listener closed its output")
        return data.decode("utf-8", errors="replace")


class EventListenerManager:
    """Keeps listeners by name and by the event types they receive."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._named: dict[str, EventListener] = {}
        self._by_event: dict[str, dict[EventListener, None]] = {}

    def register(self, name: str, events: Iterable[str],
                 listener: EventListener) -> None:
        """Subscribe a listener to events; abstract types cover all they derive."""
        wanted = {
            event_type
            for event in events
            for event_type, derives in EVENT_TYPE_DERIVES.items()
            if event == event_type or event in derives
        }
        with self._lock:
            self._named[name] = listener
            for event_type in sorted(wanted):
                log.info("register event listener %s for %s", name, event_type)
                self._by_event.setdefault(event_type, {})[listener] = None

    def unregister(self, name: str) -> EventListener | None:
        """Remove a listener by name and return it, or None if unknown."""
        with self._lock:
            listener = self._named.pop(name, None)
            if listener is None:
                return None
            for event_type, listeners in self._by_event.items():
                if listeners.pop(listener, False) is None:
                    log.info("unregister event listener %s for %s", name, event_type)
            return listener

    def emit(self, event: Event) -> None:
        """Hand the event to every listener subscribed to its type."""
        with self._lock:
            listeners = list(self._by_event.get(event.event_type, ()))
        if listeners:
            log.info("process event %s", event.event_type)
        for listener in listeners:
            listener.handle_event(event)


event_listener_manager = EventListenerManager()


def register_event_listener(name: str, events: Iterable[str],
                            listener: EventListener) -> None:
    """Register a listener with the default manager."""
    event_listener_manager.register(name, events, listener)


def unregister_event_listener(name: str) -> EventListener | None:
    """Unregister a listener from the default manager."""
    return event_listener_manager.unregister(name)


def emit_event(event: Event) -> None:
    """Emit an event through the default manager."""
    event_listener_manager.emit(event)


class ProcCommEventCapture:
    """Finds communication events framed by begin/end markers in program output.

    Output is given to ``feed``; if ``reader`` is given, a background thread
    reads it and feeds it. Each captured event is passed to ``emit``, which
    defaults to the default manager.
    """

    def __init__(self, capture_max_bytes: int, std_type: str, proc_name: str,
                 group_name: str, reader: BinaryIO | None = None,
                 emit: Callable[[Event], None] | None = None) -> None:
        self.capture_max_bytes = capture_max_bytes
        self.std_type = std_type
        self.proc_name = proc_name
        self.group_name = group_name
        self.pid = -1
        self._emit = emit if emit is not None else emit_event
        self._buffer = ""
        self._begin = -1
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._lock = threading.Lock()
        if reader is not None:
            threading.Thread(
                target=self._read_from, args=(reader,),
                name=f"proc-comm-capture-{proc_name}", daemon=True,
            ).start()

    def _read_from(self, reader: BinaryIO) -> None:
        read = getattr(reader, "read1", reader.read)
        while True:
            try:
                chunk = read(10240)
            except (OSError, ValueError):
                return
            if not chunk:
                return
            self.feed(chunk)

    def feed(self, data: bytes | str) -> list[Event]:
        """Add output, emit every complete event in it and return those events."""
        text = self._decoder.decode(data) if isinstance(data, bytes) else data
        captured: list[Event] = []
        with self._lock:
            self._buffer += text
            while (event := self._capture_event()) is not None:
                captured.append(event)
        for event in captured:
            self._emit(event)
        return captured

    def _capture_event(self) -> Event | None:
        self._find_begin()
        end = self._find_end()
        if end == -1:
            return None
        data = self._buffer[self._begin + len(PROC_COMMON_BEGIN):end]
        self._buffer = self._buffer[end + len(PROC_COMMON_END):]
        self._begin = -1
        return ProcCommEvent(self.std_type, self.proc_name, self.group_name,
                             self.pid, data)

    def _find_begin(self) -> None:
        if self._begin != -1:
            return
        self._begin = self._buffer.find(PROC_COMMON_BEGIN)
        if self._begin == -1 and len(self._buffer) > len(PROC_COMMON_BEGIN):
            self._buffer = self._buffer[-len(PROC_COMMON_BEGIN):]

    def _find_end(self) -> int:
        if self._begin == -1:
            return -1
        end = self._buffer.find(PROC_COMMON_END, self._begin + len(PROC_COMMON_BEGIN))
        if end == -1 and len(self._buffer) > self.capture_max_bytes:
            log.warning("the capture buffer of %s overflows, discard the content",
                        self.proc_name)
            self._begin = -1
            self._buffer = ""
        return end


_TICK_PERIODS = {"TICK_5": 5, "TICK_60": 60, "TICK_3600": 3600}


class _TickTracker:
    """Tells which tick types start a new period at a given time."""

    def __init__(self) -> None:
        self._last: dict[str, int] = {}

    def due(self, now: int) -> list[str]:
        due = []
        for tick_type, period in _TICK_PERIODS.items():
            time_slice = now // period
            last = self._last.get(tick_type)
            self._last[tick_type] = time_slice
            if last is not None and last != time_slice:
                due.append(tick_type)
        return due


def start_tick_timer() -> threading.Event:
    """Emit TICK_5, TICK_60 and TICK_3600 events in the background.

    Returns an event that stops the timer when set.
    """
    stop = threading.Event()

    def run() -> None:
        tracker = _TickTracker()
        while not stop.wait(1.0):
            now = int(time.time())
            for tick_type in tracker.due(now):
                emit_event(TickEvent(tick_type, now))

    threading.Thread(target=run, name="tick-timer", daemon=True).start()
    return stop