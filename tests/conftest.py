"""Shared pytest fixtures for the SpotiSearch test suite."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import pytest

from spotisearch.api import spotify
from spotisearch.api.spotify import SpotifyApiClient
from spotisearch.config import ConfigManager
from spotisearch.models import Device, Track


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code: int = 200, payload: Any = None, content: Optional[bytes] = None):
        if content is None:
            content = json.dumps(payload).encode("utf-8") if payload is not None else b""
        self.status_code = status_code
        self.content = content


@dataclass
class RecordedCall:
    method: str
    url: str
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def headers(self) -> Dict[str, str]:
        return self.kwargs.get("headers") or {}


Reply = Union[FakeResponse, Exception]


class FakeSession:
    """Routes requests by method and URL prefix; the last queued reply repeats."""

    def __init__(self) -> None:
        self.calls: List[RecordedCall] = []
        self._routes: List[tuple] = []
        self._lock = threading.Lock()

    def add(self, method: str, url_prefix: str, *replies: Reply) -> "FakeSession":
        self._routes.append((method.upper(), url_prefix, list(replies)))
        return self

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        with self._lock:
            self.calls.append(RecordedCall(method, url, kwargs))
            for route_method, prefix, replies in self._routes:
                if route_method == method.upper() and url.startswith(prefix):
                    reply = replies.pop(0) if len(replies) > 1 else replies[0]
                    break
            else:
                raise AssertionError(f"Unexpected request: {method} {url}")
        if isinstance(reply, Exception):
            raise reply
        return reply

    def calls_to(self, method: str, url_prefix: str) -> List[RecordedCall]:
        with self._lock:
            return [c for c in self.calls if c.method == method.upper() and c.url.startswith(url_prefix)]


class GatedSession(FakeSession):
    """FakeSession that holds requests until ``release`` is set and records overlap."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()
        self.active = 0
        self.max_active = 0
        self._active_lock = threading.Lock()

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        with self._active_lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        try:
            self.release.wait(timeout=5)
            return super().request(method, url, **kwargs)
        finally:
            with self._active_lock:
                self.active -= 1


def token_payload(token: str = "access-1", expires_in: int = 3600) -> Dict[str, Any]:
    return {"access_token": token, "token_type": "Bearer", "expires_in": expires_in}


def track_json(index: int, *, images: int = 3, explicit: bool = False) -> Dict[str, Any]:
    return {
        "id": f"track{index}",
        "name": f"Song {index}",
        "uri": f"spotify:track:track{index}",
        "explicit": explicit,
        "artists": [{"name": "Artist A"}, {"name": "Artist B"}],
        "album": {
            "id": f"album{index}",
            "name": f"Album {index}",
            "images": [{"url": f"https://i.scdn.co/image/{index}-{size}"} for size in (640, 300, 64)[:images]],
        },
    }


def search_payload(*items: Dict[str, Any]) -> Dict[str, Any]:
    return {"tracks": {"items": list(items), "total": len(items)}}


def devices_payload(*devices: Dict[str, Any]) -> Dict[str, Any]:
    return {"devices": list(devices)}


def device_json(device_id: str, *, active: bool = False, name: Optional[str] = None, kind: str = "Computer") -> Dict[str, Any]:
    return {"id": device_id, "name": name or f"Device {device_id}", "type": kind, "is_active": active}


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Avoid real sleeping inside the client during tests."""
    monkeypatch.setattr(spotify.time, "sleep", lambda _: None)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SPOTIFY_REFRESH_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SPOTISEARCH_HOME", str(tmp_path / "home"))


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(fake_session):
    api = SpotifyApiClient("client-id", "client-secret", "refresh-token", session=fake_session)
    yield api
    api.close()


@pytest.fixture
def config_manager(tmp_path) -> ConfigManager:
    return ConfigManager(str(tmp_path / "home"), load_env=False)


@pytest.fixture
def track() -> Track:
    return Track(
        id="track1",
        name="Song 1",
        artists="Artist A, Artist B",
        album_id="album1",
        album_name="Album 1",
        uri="spotify:track:track1",
        image_url="https://i.scdn.co/image/1-64",
    )


@pytest.fixture
def devices() -> List[Device]:
    return [
        Device(id="a", name="Laptop", type="Computer", is_active=False),
        Device(id="b", name="Kitchen", type="Speaker", is_active=True),
    ]
