import json

import pytest
import requests
from fastapi.testclient import TestClient

from aibrowser import app, dependencies
from aibrowser.browser import Browser
from aibrowser.config import Settings
from aibrowser.core.renderer import LoadResult
from aibrowser.core.session_store import SessionStore
from aibrowser.events import EventBus, EventType
from aibrowser.storage.manager import StorageManager

VALID_KEY = "sk-or-v1-" + "a" * 32


def sse(*fragments, done=True):
    """Encode fragments as a chat-completions event stream body."""
    out = b""
    for text in fragments:
        payload = {"choices": [{"delta": {"content": text}}]}
        out += b"data: " + json.dumps(payload).encode() + b"\n\n"
    if done:
        out += b"data: [DONE]\n\n"
    return out


class FakeResponse:
    def __init__(self, chunks=(), status_code=200, json_data=None):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.ok = status_code < 400
        self._json = json_data
        self.close_calls = 0

    def iter_content(self, chunk_size=None):
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    def json(self):
        if self._json is None:
            raise ValueError("no json body")
        return self._json

    def close(self):
        self.close_calls += 1


class FakeHttp:
    """Stands in for requests.Session; replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, response):
        self.responses.append(response)
        return response

    def post(self, url, json=None, headers=None, timeout=None, stream=False):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout, "stream": stream})
        if not self.responses:
            raise requests.exceptions.ConnectionError("no response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeRenderer:
    def __init__(self, title="Example Domain"):
        self.title = title
        self.requests = []
        self.results = {}

    def load(self, request):
        self.requests.append(request)
        outcome = self.results.get(request.url)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, LoadResult):
            return outcome
        return LoadResult(success=True, title=self.title)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingPersister:
    def __init__(self):
        self.snapshots = []

    def schedule_save(self, snapshot):
        self.snapshots.append(snapshot)

    def shutdown(self):
        pass


class FakeStorage:
    def __init__(self):
        self.visits = []
        self.messages = []
        self.cleared = []

    def add_history(self, entry):
        self.visits.append(entry)
        return True

    def save_chat_message(self, message):
        self.messages.append(message)
        return True

    def clear_chat_history(self, tab_id=None):
        self.cleared.append(tab_id)
        return True


@pytest.fixture()
def bus():
    return EventBus()


@pytest.fixture()
def events(bus):
    """Every event emitted on ``bus``, in order."""
    seen = []
    for event_type in EventType:
        bus.on(event_type, seen.append)
    return seen


@pytest.fixture()
def persister():
    return RecordingPersister()


@pytest.fixture()
def sessions(bus, persister):
    store = SessionStore(bus, persister)
    store.load()
    return store


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path / "data"),
        log_file=str(tmp_path / "logs" / "test.log"),
        api_key=VALID_KEY,
        persistence="immediate",
    )


@pytest.fixture()
def storage(tmp_path):
    manager = StorageManager(str(tmp_path / "store"))
    manager.init()
    return manager


@pytest.fixture()
def http():
    return FakeHttp()


@pytest.fixture()
def renderer():
    return FakeRenderer()


@pytest.fixture()
def browser(settings, http, renderer):
    b = Browser(settings, renderer=renderer, http=http).start()
    yield b
    b.shutdown()


@pytest.fixture()
def client(browser):
    app.dependency_overrides[dependencies.get_browser] = lambda: browser
    yield TestClient(app)
    app.dependency_overrides.clear()
