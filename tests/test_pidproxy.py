import os
import signal
import subprocess
import sys
import threading

import pytest

from procvisor.pidproxy import (
    forward_signal,
    install_signal_and_forward,
    is_process_alive,
    main,
    read_pid,
    start_application,
)


def _sleeper():
    return subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])


def _dead_pid():
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid


def test_read_pid(tmp_path):
    path = tmp_path / "app.pid"
    path.write_text("1234\n")
    assert read_pid(str(path)) == 1234


def test_read_pid_leading_number_only(tmp_path):
    path = tmp_path / "app.pid"
    path.write_text("  42 trailing words")
    assert read_pid(str(path)) == 42


def test_read_pid_garbage(tmp_path):
    path = tmp_path / "app.pid"
    path.write_text("not a pid")
    with pytest.raises(ValueError):
        read_pid(str(path))


def test_read_pid_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_pid(str(tmp_path / "missing.pid"))


def test_is_process_alive_self():
    assert is_process_alive(os.getpid()) is True


def test_is_process_alive_dead_and_invalid():
    assert is_process_alive(_dead_pid()) is False
    assert is_process_alive(0) is False


def test_forward_signal_terminates_process(tmp_path, capsys):
    child = _sleeper()
    try:
        path = tmp_path / "child.pid"
        path.write_text(f"{child.pid}\n")
        assert forward_signal(signal.SIGTERM, str(path)) is True
        assert child.wait(timeout=10) == -signal.SIGTERM
    finally:
        if child.poll() is None:
            child.kill()
            child.wait()
    assert "Succeed to send signal" in capsys.readouterr().out


def test_forward_signal_missing_pidfile(tmp_path, capsys):
    assert forward_signal(signal.SIGTERM, str(tmp_path / "missing.pid")) is False
    assert "Fail to read pid from file" in capsys.readouterr().out


def test_forward_signal_dead_process(tmp_path, capsys):
    path = tmp_path / "dead.pid"
    path.write_text(str(_dead_pid()))
    assert forward_signal(signal.SIGTERM, str(path)) is False
    assert "Fail to send signal" in capsys.readouterr().out


def test_start_application_success(capsys):
    start_application(sys.executable, ["-c", "pass"])
    assert f"Succeed to start program:{sys.executable}" in capsys.readouterr().out


def test_start_application_failure_exits():
    with pytest.raises(SystemExit) as info:
        start_application(sys.executable, ["-c", "raise SystemExit(3)"])
    assert info.value.code == 1


def test_start_application_missing_command_exits():
    with pytest.raises(SystemExit) as info:
        start_application("/nonexistent/daemon-command", [])
    assert info.value.code == 1


@pytest.mark.parametrize("argv", [[], ["-exit-daemon-stop", "only.pid"], ["only.pid"]])
def test_main_prints_usage(argv, capsys):
    main(argv)
    assert "Usage: pidproxy" in capsys.readouterr().out


def test_install_signal_and_forward_forwards_sigterm(tmp_path):
    child = _sleeper()
    before = signal.getsignal(signal.SIGTERM)
    timer = threading.Timer(0.5, os.kill, (os.getpid(), signal.SIGTERM))
    try:
        path = tmp_path / "child.pid"
        path.write_text(str(child.pid))
        timer.start()
        with pytest.raises(SystemExit) as info:
            install_signal_and_forward(str(path), False)
        assert info.value.code == 0
        assert child.wait(timeout=10) == -signal.SIGTERM
    finally:
        timer.cancel()
        if child.poll() is None:
            child.kill()
            child.wait()
    assert signal.getsignal(signal.SIGTERM) == before