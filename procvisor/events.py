"""Supervisor events and the serial numbers that identify them."""

from __future__ import annotations

import itertools
import threading

EVENT_SYS_VERSION = "3.0"
PROC_COMMON_BEGIN = "<!--XSUPERVISOR:BEGIN-->"
PROC_COMMON_END = "<!--XSUPERVISOR:END-->"

EVENT_TYPE_DERIVES: dict[str, tuple[str, ...]] = {
    "PROCESS_STATE_STARTING": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_RUNNING": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_BACKOFF": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_STOPPING": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_EXITED": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_STOPPED": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_FATAL": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_UNKNOWN": ("EVENT", "PROCESS_STATE"),
    "REMOTE_COMMUNICATION": ("EVENT",),
    "PROCESS_LOG_STDOUT": ("EVENT", "PROCESS_LOG"),
    "PROCESS_LOG_STDERR": ("EVENT", "PROCESS_LOG"),
    "PROCESS_COMMUNICATION_STDOUT": ("EVENT", "PROCESS_COMMUNICATION"),
    "PROCESS_COMMUNICATION_STDERR": ("EVENT", "PROCESS_COMMUNICATION"),
    "SUPERVISOR_STATE_CHANGE_RUNNING": ("EVENT", "SUPERVISOR_STATE_CHANGE"),
    "SUPERVISOR_STATE_CHANGE_STOPPING": ("EVENT", "SUPERVISOR_STATE_CHANGE"),
    "TICK_5": ("EVENT", "TICK"),
    "TICK_60": ("EVENT", "TICK"),
    "TICK_3600": ("EVENT", "TICK"),
    "PROCESS_GROUP_ADDED": ("EVENT", "PROCESS_GROUP"),
    "PROCESS_GROUP_REMOVED": ("EVENT", "PROCESS_GROUP"),
}

_serial_lock = threading.Lock()
_serial_counter = itertools.count(1)


def next_event_serial() -> int:
    """Return the next global event serial number."""
    with _serial_lock:
        return next(_serial_counter)


class EventPoolSerial:
    """Hands out serial numbers per listener pool, starting at 1."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._serials: dict[str, int] = {}

    def next_serial(self, pool: str) -> int:
        with self._lock:
            serial = self._serials.get(pool, 1)
            self._serials[pool] = serial + 1
            return serial


event_pool_serial = EventPoolSerial()


class Event:
    """An event with a type name and a unique serial number."""

    def __init__(self, event_type: str) -> None:
        self.event_type = event_type
        self.serial = next_event_serial()

    def body(self) -> str:
        """Return the payload sent to event listeners."""
        return ""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(type={self.event_type!r}, serial={self.serial})"


class RemoteCommunicationEvent(Event):
    def __init__(self, typ: str, data: str) -> None:
        super().__init__("REMOTE_COMMUNICATION")
        self.typ = typ
        self.data = data

    def body(self) -> str:
        return f"type:{self.typ}\n{self.data}"


class ProcCommEvent(Event):
    def __init__(self, event_type: str, process_name: str, group_name: str,
                 pid: int, data: str) -> None:
        super().__init__(event_type)
        self.process_name = process_name
        self.group_name = group_name
        self.pid = pid
        self.data = data

    def body(self) -> str:
        return (f"processname:{self.process_name} groupname:{self.group_name} "
                f"pid:{self.pid}\n{self.data}")


class TickEvent(Event):
    def __init__(self, tick_type: str, when: int) -> None:
        super().__init__(tick_type)
        self.when = when

    def body(self) -> str:
        return f"when:{self.when}"


class ProcessStateEvent(Event):
    def __init__(self, event_type: str, process_name: str, group_name: str,
                 from_state: str, tries: int = -1, expected: int = -1,
                 pid: int = 0) -> None:
        super().__init__(event_type)
        self.process_name = process_name
        self.group_name = group_name
        self.from_state = from_state
        self.tries = tries
        self.expected = expected
        self.pid = pid

    def body(self) -> str:
        parts = [f"processname:{self.process_name}",
                 f"groupname:{self.group_name}",
                 f"from_state:{self.from_state}"]
        if self.tries >= 0:
            parts.append(f"tries:{self.tries}")
        if self.expected != -1:
            parts.append(f"expected:{self.expected}")
        if self.pid != 0:
            parts.append(f"pid:{self.pid}")
        return " ".join(parts)


class SupervisorStateChangeEvent(Event):
    def body(self) -> str:
        return ""


class ProcessLogEvent(Event):
    def __init__(self, event_type: str, process_name: str, group_name: str,
                 pid: int, data: str) -> None:
        super().__init__(event_type)
        self.process_name = process_name
        self.group_name = group_name
        self.pid = pid
        self.data = data

    def body(self) -> str:
        return (f"processname:{self.process_name} groupname:{self.group_name} "
                f"pid:{self.pid}\n{self.data}")


class ProcessGroupEvent(Event):
    def __init__(self, event_type: str, group_name: str) -> None:
        super().__init__(event_type)
        self.group_name = group_name

    def body(self) -> str:
        return f"groupname:{self.group_name}"


def create_process_starting_event(process, group, from_state, tries):
    return ProcessStateEvent("PROCESS_STATE_STARTING", process, group,
                             from_state, tries=tries)


def create_process_running_event(process, group, from_state, pid):
    return ProcessStateEvent("PROCESS_STATE_RUNNING", process, group,
                             from_state, pid=pid)


def create_process_backoff_event(process, group, from_state, tries):
    return ProcessStateEvent("PROCESS_STATE_BACKOFF", process, group,
                             from_state, tries=tries)


def create_process_stopping_event(process, group, from_state, pid):
    return ProcessStateEvent("PROCESS_STATE_STOPPING", process, group,
                             from_state, pid=pid)


def create_process_exited_event(process, group, from_state, expected, pid):
    return ProcessStateEvent("PROCESS_STATE_EXITED", process, group,
                             from_state, expected=expected, pid=pid)


def create_process_stopped_event(process, group, from_state, pid):
    return ProcessStateEvent("PROCESS_STATE_STOPPED", process, group,
                             from_state, pid=pid)


def create_process_fatal_event(process, group, from_state):
    return ProcessStateEvent("PROCESS_STATE_FATAL", process, group, from_state)


def create_process_unknown_event(process, group, from_state):
    return ProcessStateEvent("PROCESS_STATE_UNKNOWN", process, group, from_state)


def create_supervisor_state_change_running():
    return SupervisorStateChangeEvent("SUPERVISOR_STATE_CHANGE_RUNNING")


def create_supervisor_state_change_stopping():
    return SupervisorStateChangeEvent("SUPERVISOR_STATE_CHANGE_STOPPING")


def create_process_log_stdout_event(process_name, group_name, pid, data):
    return ProcessLogEvent("PROCESS_LOG_STDOUT", process_name, group_name, pid, data)


def create_process_log_stderr_event(process_name, group_name, pid, data):
    return ProcessLogEvent("PROCESS_LOG_STDERR", process_name, group_name, pid, data)


def create_process_group_added_event(group_name):
    return ProcessGroupEvent("PROCESS_GROUP_ADDED", group_name)


def create_process_group_removed_event(group_name):
    return ProcessGroupEvent("PROCESS_GROUP_REMOVED", group_name)