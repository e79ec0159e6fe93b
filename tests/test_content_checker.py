import socket
import sys
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer

from procvisor.content_checker import BaseChecker, HTTPChecker, ScriptChecker, TCPChecker


def _write_later(checker, first, delay, second):
    def run():
        checker.write(first)
        time.sleep(delay)
        checker.write(second)
    threading.Thread(target=run, daemon=True).start()


def _serve_once(first, delay, second=None):
    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]

    def run():
        with listener:
            conn, _ = listener.accept()
            with conn:
                try:
                    conn.sendall(first)
                    time.sleep(delay)
                    if second is not None:
                        conn.sendall(second)
                except OSError:
                    pass

    threading.Thread(target=run, daemon=True).start()
    return port


def _http_server(status):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            body = b"this is an response"
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), Handler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server


def _free_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_base_check_ok():
    checker = BaseChecker(["Hello", "world"], 10)
    _write_later(checker, b"this is a world", 0.5, b"Hello, how are you?")
    assert checker.check() is True
    assert "Hello" in checker.data and "world" in checker.data


def test_base_check_fail():
    checker = BaseChecker(["Hello", "world"], 1)
    checker.write(b"this is a world")
    assert checker.check() is False


def test_base_check_write_returns_length():
    checker = BaseChecker(["x"], 1)
    data = b"abc"
    assert checker.write(data) == len(data)


def test_base_check_after_timeout_is_false():
    checker = BaseChecker(["Hello"], 0)
    checker.write("Hello")
    assert checker.check() is False


def test_tcp_check_ok():
    port = _serve_once(b"this is a world", 1, b"Hello, how are you?")
    checker = TCPChecker("127.0.0.1", port, ["Hello", "world"], 10)
    assert checker.check() is True


def test_tcp_check_fail():
    port = _serve_once(b"this is a world", 3)
    checker = TCPChecker("127.0.0.1", port, ["Hello", "world"], 1)
    assert checker.check() is False


def test_tcp_check_nothing_listening():
    checker = TCPChecker("127.0.0.1", _free_port(), ["Hello"], 1)
    assert checker.check() is False


def test_http_check_ok():
    server = _http_server(200)
    try:
        checker = HTTPChecker(f"http://127.0.0.1:{server.server_port}", 2)
        assert checker.check() is True
    finally:
        server.shutdown()
        server.server_close()


def test_http_check_fail():
    server = _http_server(404)
    try:
        checker = HTTPChecker(f"http://127.0.0.1:{server.server_port}", 2)
        assert checker.check() is False
    finally:
        server.shutdown()
        server.server_close()


def test_http_check_no_server_times_out():
    checker = HTTPChecker(f"http://127.0.0.1:{_free_port()}", 1)
    start = time.monotonic()
    assert checker.check() is False
    assert time.monotonic() - start < 5


def test_script_check_success():
    assert ScriptChecker([sys.executable, "-c", "pass"]).check() is True


def test_script_check_failure():
    assert ScriptChecker([sys.executable, "-c", "raise SystemExit(1)"]).check() is False


def test_script_check_missing_command():
    assert ScriptChecker(["/nonexistent/checker-command"]).check() is False