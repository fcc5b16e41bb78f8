import socket

import pytest

from aibrowser import main
from aibrowser.main import find_port, port_available


@pytest.fixture()
def busy_port():
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    yield sock.getsockname()
    sock.close()


def test_free_port_is_available():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        host, port = s.getsockname()
    assert port_available(host, port)


def test_bound_port_is_not_available(busy_port):
    assert not port_available(*busy_port)


def test_find_port_falls_back_past_busy_port(busy_port, caplog):
    host, port = busy_port
    assert find_port(host, port) > port
    assert "falling back" in caplog.text


def test_find_port_gives_up_after_attempts(busy_port):
    host, port = busy_port
    assert find_port(host, port, attempts=0) is None


def test_serve_exits_without_a_free_port(monkeypatch):
    monkeypatch.setattr(main, "find_port", lambda host, port: None)
    with pytest.raises(SystemExit):
        main.serve()
