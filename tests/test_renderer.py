import threading
import time

import pytest
import requests

from aibrowser.core.renderer import HttpRenderer, LoadRequest, extract_title
from aibrowser.errors import NavigationFailed, NavigationTimeout


class PageResponse:
    def __init__(self, body=b"", status_code=200):
        self.body = body
        self.status_code = status_code
        self.ok = status_code < 400
        self.encoding = "utf-8"
        self.closed = False

    def iter_content(self, chunk_size=None):
        yield self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True

    def close(self):
        self.closed = True


class DripResponse(PageResponse):
    """Sends a few bytes at a time and never finishes."""

    def iter_content(self, chunk_size=None):
        while not self.closed:
            time.sleep(0.02)
            yield b"<p>x</p>"


class StalledResponse(PageResponse):
    """Blocks on its first read until the connection is closed."""

    def __init__(self):
        super().__init__()
        self.hung_up = threading.Event()

    def iter_content(self, chunk_size=None):
        if self.hung_up.wait(5):
            raise requests.exceptions.ConnectionError("connection closed")
        yield b""

    def close(self):
        self.hung_up.set()


class PageSession:
    def __init__(self, outcome):
        self.outcome = outcome
        self.headers = {}
        self.calls = []

    def get(self, url, timeout=None, stream=False):
        self.calls.append((url, timeout, stream))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_extract_title():
    assert extract_title("<html><head><TITLE>\n Hello &amp; bye </TITLE></head>") == "Hello & bye"
    assert extract_title("<title></title>") is None
    assert extract_title("<p>no title</p>") is None


def test_load_reads_title():
    response = PageResponse(b"<html><title>Example Domain</title></html>")
    session = PageSession(response)
    result = HttpRenderer(session).load(LoadRequest(url="https://example.com", timeout_ms=2500))
    assert result.success
    assert result.title == "Example Domain"
    assert session.calls == [("https://example.com", 2.5, True)]
    assert session.headers["User-Agent"] == "AIBrowser/1.0"
    assert response.closed


def test_load_timeout():
    renderer = HttpRenderer(PageSession(requests.exceptions.ReadTimeout("slow")))
    with pytest.raises(NavigationTimeout, match="Page load timeout"):
        renderer.load(LoadRequest(url="https://example.com"))


def test_load_connection_error():
    renderer = HttpRenderer(PageSession(requests.exceptions.ConnectionError("refused")))
    with pytest.raises(NavigationFailed):
        renderer.load(LoadRequest(url="https://example.com"))


def test_load_error_status():
    renderer = HttpRenderer(PageSession(PageResponse(status_code=404)))
    with pytest.raises(NavigationFailed, match="HTTP 404"):
        renderer.load(LoadRequest(url="https://example.com/missing"))


def test_slow_drip_is_bounded_by_total_timeout():
    renderer = HttpRenderer(PageSession(DripResponse()))
    started = time.monotonic()
    with pytest.raises(NavigationTimeout, match="Page load timeout"):
        renderer.load(LoadRequest(url="https://slow.example", timeout_ms=300))
    assert time.monotonic() - started < 2


def test_stalled_read_is_closed_at_the_deadline():
    response = StalledResponse()
    renderer = HttpRenderer(PageSession(response))
    with pytest.raises(NavigationTimeout):
        renderer.load(LoadRequest(url="https://stalled.example", timeout_ms=200))
    assert response.hung_up.is_set()


def test_stalled_connect_times_out():
    connected = threading.Event()

    class HangingSession(PageSession):
        def get(self, url, timeout=None, stream=False):
            connected.wait(5)
            return PageResponse(b"<title>Late</title>")

    renderer = HttpRenderer(HangingSession(None))
    try:
        with pytest.raises(NavigationTimeout):
            renderer.load(LoadRequest(url="https://hang.example", timeout_ms=100))
    finally:
        connected.set()
        renderer.close()
