"""Shared fakes so no test touches the network."""
import pytest

from zoho_desk import ZohoDeskClient


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, body=None):
        self.status_code = status_code
        self._json = json_data
        if body is not None:
            self.content = body
        else:
            self.content = b"" if json_data is None else b"{}"

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json


class FakeSession:
    """Answers GET/POST from queues; an Exception in a queue is raised instead of returned."""

    def __init__(self, get=None, post=None):
        self.get_queue = list(get or [])
        self.post_queue = list(post or [])
        self.calls = []

    def _next(self, queue):
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"method": "GET", "url": url, "headers": headers, "params": params})
        return self._next(self.get_queue)

    def post(self, url, data=None, timeout=None):
        self.calls.append({"method": "POST", "url": url, "data": data})
        return self._next(self.post_queue)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class StaticTokenCache:
    def __init__(self):
        self.invalidated = 0

    def get_token(self):
        return "tok-123"

    def invalidate(self):
        self.invalidated += 1


def page(records):
    return FakeResponse(200, {"data": records})


@pytest.fixture
def clock():
    return FakeClock(1000.0)


@pytest.fixture
def make_client():
    def _make(session, **kwargs):
        kwargs.setdefault("min_interval", 0)
        kwargs.setdefault("sleep", lambda seconds: None)
        return ZohoDeskClient("https://desk.example.com", StaticTokenCache(), session=session, **kwargs)

    return _make
