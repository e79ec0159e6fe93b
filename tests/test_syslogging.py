import socket

import pytest

from procvisor import syslogging as sl
from procvisor.syslogging import (
    BackendSysLogWriter,
    get_syslog_priority,
    open_remote_syslog_writer,
    parse_syslog_config,
    to_syslog_facility,
    to_syslog_level,
)


@pytest.fixture
def udp_server():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(5)
    yield sock
    sock.close()


@pytest.mark.parametrize("name, expected", [
    ("emerg", sl.LOG_EMERG),
    ("LOG_ALERT", sl.LOG_ALERT),
    ("critical", sl.LOG_CRIT),
    ("Error", sl.LOG_ERR),
    ("warn", sl.LOG_WARNING),
    ("LOG_NOTICE", sl.LOG_NOTICE),
    ("info", sl.LOG_INFO),
    ("debug", sl.LOG_DEBUG),
    ("bogus", sl.LOG_INFO),
])
def test_to_syslog_level(name, expected):
    assert to_syslog_level(name) == expected


@pytest.mark.parametrize("name, expected", [
    ("kernel", sl.LOG_KERN),
    ("user", sl.LOG_USER),
    ("LOG_MAIL", sl.LOG_MAIL),
    ("daemon", sl.LOG_DAEMON),
    ("authpriv", sl.LOG_AUTHPRIV),
    ("cron", sl.LOG_CRON),
    ("local3", sl.LOG_LOCAL3),
    ("LOG_LOCAL7", sl.LOG_LOCAL7),
    ("unknown", sl.LOG_LOCAL0),
])
def test_to_syslog_facility(name, expected):
    assert to_syslog_facility(name) == expected


def test_levels_are_ordered_by_severity():
    levels = [to_syslog_level(n) for n in
              ("emerg", "alert", "crit", "err", "warning", "notice", "info", "debug")]
    assert levels == sorted(levels)
    assert len(set(levels)) == len(levels)


def test_default_priority():
    assert get_syslog_priority({}) == sl.LOG_NOTICE | sl.LOG_LOCAL0


def test_priority_from_props():
    props = {"syslog_priority": "err", "syslog_facility": "daemon"}
    assert get_syslog_priority(props) == sl.LOG_ERR | sl.LOG_DAEMON


def test_priority_keeps_level_and_facility_apart():
    priority = get_syslog_priority({"syslog_priority": "debug", "syslog_facility": "local5"})
    assert priority & 7 == sl.LOG_DEBUG
    assert priority & ~7 == sl.LOG_LOCAL5


@pytest.mark.parametrize("config, expected", [
    ("loghost", ("udp", "loghost", 514)),
    ("tcp:loghost", ("tcp", "loghost", 6514)),
    ("udp:loghost", ("udp", "loghost", 514)),
    ("loghost:1514", ("udp", "loghost", 1514)),
    ("tcp:loghost:601", ("tcp", "loghost", 601)),
])
def test_parse_syslog_config(config, expected):
    assert parse_syslog_config(config) == expected


@pytest.mark.parametrize("config", ["a:b:c:d", "loghost:abc", "tcp:loghost:port"])
def test_parse_syslog_config_errors(config):
    with pytest.raises(ValueError):
        parse_syslog_config(config)


def test_backend_writer_sends_message(udp_server):
    port = udp_server.getsockname()[1]
    priority = sl.LOG_INFO | sl.LOG_USER
    writer = BackendSysLogWriter("udp", f"127.0.0.1:{port}", priority, "mytag")
    try:
        message = b"hello world"
        assert writer.write(message) == len(message)
        data = udp_server.recv(4096)
    finally:
        writer.close()
    assert data.startswith(f"<{priority}>".encode())
    assert b" mytag[" in data
    assert data.endswith(b": hello world\n")


def test_backend_writer_rejects_writes_after_close():
    writer = BackendSysLogWriter("udp", "127.0.0.1:9", sl.LOG_INFO, "tag")
    writer.close()
    with pytest.raises(ValueError):
        writer.write(b"late")


def test_remote_writer_uses_tag_and_keeps_single_newline(udp_server):
    port = udp_server.getsockname()[1]
    writer = open_remote_syslog_writer(
        "prog", f"udp:127.0.0.1:{port}", {"syslog_tag": "custom"})
    message = b"line\n"
    try:
        written = writer.write(message)
        data = udp_server.recv(4096)
    finally:
        writer.close()
    assert written == len(message)
    expected_priority = sl.LOG_NOTICE | sl.LOG_LOCAL0
    assert data.startswith(f"<{expected_priority}>".encode())
    assert b" custom[" in data
    assert data.endswith(b": line\n")
    assert not data.endswith(b"\n\n")