import json
from collections import defaultdict, deque

import pytest

from tunesync.core.http_transport import HttpResponse
from tunesync.core.models import Credentials, TokenState


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeTransport:
    """Serves queued responses per URL and records every request."""

    def __init__(self):
        self.routes = defaultdict(deque)
        self.requests = []

    def add(self, url, status=200, payload=None, headers=None, body=None):
        if body is None:
            body = b"" if payload is None else json.dumps(payload).encode()
        self.routes[url].append(HttpResponse(status, body, headers or {}))

    def fail(self, url, error):
        self.routes[url].append(error)

    def request(self, method, url, headers=None, data=None, json_body=None, timeout=None):
        self.requests.append({"method": method, "url": url, "headers": dict(headers or {}), "data": data, "json": json_body})
        queue = self.routes.get(url)
        if not queue:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = queue.popleft()
        if isinstance(response, Exception):
            raise response
        return response

    def urls(self):
        return [r["url"] for r in self.requests]


class MemoryPersistence:
    def __init__(self, state=None, credentials=None):
        self.state = state or TokenState()
        self.credentials = credentials or Credentials("client", "secret")
        self.saved = []

    def load_token(self):
        return self.state

    def save_token(self, state):
        self.saved.append(state)

    def load_credentials(self):
        return self.credentials


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return FakeTransport()


def track_payload(**overrides):
    payload = {
        "device": {"id": "abc", "is_private": False, "volume_percent": 40},
        "is_playing": True,
        "progress_ms": 61000,
        "currently_playing_type": "track",
        "context": {
            "type": "playlist",
            "uri": "spotify:playlist:37i9",
            "href": "https://api.spotify.com/v1/playlists/37i9",
            "external_urls": {"spotify": "https://open.spotify.com/playlist/37i9"},
        },
        "item": {
            "name": "Blue Monday",
            "duration_ms": 449000,
            "disc_number": 1,
            "track_number": 3,
            "explicit": False,
            "external_urls": {"spotify": "https://open.spotify.com/track/xyz"},
            "artists": [{"name": "New Order"}, {"name": "Guest"}, {"name": "New Order"}],
            "album": {
                "name": "Power, Corruption & Lies",
                "release_date": "1983-05-02",
                "images": [{"url": "https://i.scdn.co/image/large"}, {"url": "https://i.scdn.co/image/small"}],
            },
        },
    }
    payload.update(overrides)
    return payload
