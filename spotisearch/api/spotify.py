#!/usr/bin/env python3
"""
🎵 Spotify Web API client for SpotiSearch
Composes the HTTP transport, the token manager and the JSON mapping into the
operations a launcher host needs:
- Connectivity probe and token refresh
- Track search and device listing
- Fire-and-forget queue / play actions
- Bounded wait for a freshly launched playback device
"""

import json
import logging
import random
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Union
from urllib.parse import urlencode

import requests

from ..constants import DEVICES_URL, PLAY_URL, QUEUE_URL, SEARCH_URL, TOKEN_URL
from ..models import Device, Track
from .http import SpotifyTransport, _float_env, _int_env
from .mapping import decode_json, parse_devices, parse_tracks
from .token_manager import TokenManager, extract_error_message

__all__ = ["PlaybackActionError", "SpotifyApiClient"]


DEVICE_WAIT_MAX_ATTEMPTS = max(1, _int_env("SPOTISEARCH_DEVICE_WAIT_ATTEMPTS", 20))
DEVICE_WAIT_BACKOFF_BASE = _float_env("SPOTISEARCH_DEVICE_WAIT_BACKOFF", 0.5)
DEVICE_WAIT_BACKOFF_JITTER = _float_env("SPOTISEARCH_DEVICE_WAIT_JITTER", 0.3)
DEVICE_WAIT_BACKOFF_CAP = 5.0

ACTION_WORKERS = max(1, _int_env("SPOTISEARCH_ACTION_WORKERS", 2))

_OK_STATUSES = (200, 202, 204)

ActionFailureHook = Callable[[str, Exception], None]


def _compute_backoff(base: float, attempt: int, jitter: float, cap: float = 15.0) -> float:
    """Compute exponential backoff with jitter."""
    delay = base * (2 ** max(attempt - 1, 0))
    jitter_value = random.uniform(0, delay * max(jitter, 0.0))
    return min(delay + jitter_value, cap)


class PlaybackActionError(RuntimeError):
    """A queue or play request was answered with a non-success status."""

    def __init__(self, action: str, status: int, reason: str = ""):
        self.action = action
        self.status = status
        self.reason = reason
        super().__init__(f"{action} failed with HTTP {status}" + (f": {reason}" if reason else ""))


class SpotifyApiClient:
    """
    Spotify Web API client used by the search service.

    Read operations block until the response arrives and degrade to empty
    results on failure. Queue and play requests run on a small worker pool;
    their failures are logged and handed to ``on_action_failure``.

    Args:
        client_id: Spotify application client id
        client_secret: Spotify application client secret
        refresh_token: Long-lived user refresh token
        session: Optional preconfigured ``requests.Session``
        on_action_failure: Optional callback ``(action, error)`` for failed actions
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        session: Optional[requests.Session] = None,
        on_action_failure: Optional[ActionFailureHook] = None,
    ):
        self._transport = SpotifyTransport(lambda: self._tokens.access_token, session=session)
        self._tokens = TokenManager(client_id, client_secret, refresh_token, self._transport)
        self._executor = ThreadPoolExecutor(max_workers=ACTION_WORKERS, thread_name_prefix="spotify-action")
        self.on_action_failure = on_action_failure
        self._logger = logging.getLogger('spotify')

    def __enter__(self) -> "SpotifyApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Wait for pending actions and release the worker pool."""
        self._executor.shutdown(wait=True)

    @property
    def tokens(self) -> TokenManager:
        return self._tokens

    @property
    def transport(self) -> SpotifyTransport:
        return self._transport

    # 🔑 Credentials and token lifecycle

    @property
    def client_id(self) -> str:
        return self._tokens.client_id

    def set_client_id(self, value: str) -> bool:
        return self._tokens.set_client_id(value)

    @property
    def client_secret(self) -> str:
        return self._tokens.client_secret

    def set_client_secret(self, value: str) -> bool:
        return self._tokens.set_client_secret(value)

    @property
    def refresh_token(self) -> str:
        return self._tokens.refresh_token

    def set_refresh_token(self, value: str) -> bool:
        return self._tokens.set_refresh_token(value)

    @property
    def last_error_message(self) -> str:
        return self._tokens.last_error

    def is_access_token_expired(self) -> bool:
        return self._tokens.is_expired()

    def refresh_access_token(self) -> bool:
        return self._tokens.refresh()

    def check_server_response(self) -> bool:
        """Probe the accounts server; True if it answered with any body."""
        try:
            response = self._transport.request("GET", TOKEN_URL, authorize=False)
        except requests.exceptions.RequestException:
            self._logger.debug("spotify.probe.unreachable")
            return False
        return bool(response.content)

    # 🔎 Read operations

    def _get_json(self, url: str) -> Optional[dict]:
        try:
            response = self._transport.request("GET", url)
        except requests.exceptions.RequestException:
            return None
        if response.status_code == 401:
            # Revoked or rotated token; force a refresh on the next expiry check
            self._tokens.invalidate()
        if response.status_code not in _OK_STATUSES:
            self._logger.warning(
                "spotify.read.http_error",
                extra={
                    "url": url.split("?")[0],
                    "status": response.status_code,
                    "reason": extract_error_message(decode_json(response.content)),
                },
            )
        return decode_json(response.content)

    def search_tracks(self, query: str, limit: int) -> List[Track]:
        """Search tracks matching ``query``; empty list on any failure."""
        url = f"{SEARCH_URL}?{urlencode({'q': query, 'type': 'track', 'limit': int(limit)})}"
        payload = self._get_json(url)
        if payload is None:
            return []
        tracks = parse_tracks(payload)
        self._logger.debug("spotify.search.ok", extra={"results": len(tracks), "limit": int(limit)})
        return tracks

    def get_devices(self) -> List[Device]:
        """Return the user's available playback devices; empty list on failure."""
        payload = self._get_json(DEVICES_URL)
        if payload is None:
            return []
        return parse_devices(payload)

    def download_file(self, url: str, file_path: Union[str, Path]) -> bool:
        return self._transport.download_file(url, file_path)

    # ▶️ Fire-and-forget actions

    def _report_failure(self, action: str, error: Exception) -> None:
        self._logger.warning("spotify.action.failed", extra={"action": action, "error": str(error)})
        hook = self.on_action_failure
        if hook is None:
            return
        try:
            hook(action, error)
        except Exception:
            self._logger.exception("spotify.action.hook_failed")

    def _execute_action(self, action: str, method: str, url: str, body: Optional[str]) -> bool:
        try:
            response = self._transport.request(method, url, data=body)
            if response.status_code not in _OK_STATUSES:
                raise PlaybackActionError(
                    action,
                    response.status_code,
                    extract_error_message(decode_json(response.content)),
                )
        except (requests.exceptions.RequestException, PlaybackActionError) as exc:
            self._report_failure(action, exc)
            return False
        self._logger.debug("spotify.action.ok", extra={"action": action})
        return True

    def _dispatch(self, action: str, method: str, url: str, body: Optional[str] = None) -> "Future[bool]":
        return self._executor.submit(self._execute_action, action, method, url, body)

    def add_track_to_queue(self, track: Track) -> "Future[bool]":
        """Append ``track`` to the user's playback queue without blocking."""
        return self._dispatch("queue", "POST", f"{QUEUE_URL}?{urlencode({'uri': track.uri})}")

    def play_track(self, track: Track, device_id: str) -> "Future[bool]":
        """Start ``track`` on ``device_id`` without blocking."""
        self._logger.info("spotify.play.dispatch", extra={"device_id": device_id, "track_uri": track.uri})
        return self._dispatch(
            "play",
            "PUT",
            f"{PLAY_URL}?{urlencode({'device_id': device_id})}",
            json.dumps({"uris": [track.uri]}),
        )

    # ⏳ Device wait

    def wait_for_device(
        self,
        *,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[Device]:
        """
        Poll the device list until a device appears.

        Args:
            max_attempts: Number of polls before giving up
            cancel_event: Set it to abort the wait early

        Returns:
            Optional[Device]: The first device returned, or None on timeout/cancel
        """
        attempts = DEVICE_WAIT_MAX_ATTEMPTS if max_attempts is None else max(0, max_attempts)

        for attempt in range(1, attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                self._logger.info("spotify.device.wait_cancelled", extra={"attempt": attempt})
                return None

            devices = self.get_devices()
            if devices:
                self._logger.info(
                    "spotify.device.ready",
                    extra={"attempt": attempt, "device_id": devices[0].id},
                )
                return devices[0]

            if attempt == attempts:
                break

            delay = _compute_backoff(
                DEVICE_WAIT_BACKOFF_BASE, attempt, DEVICE_WAIT_BACKOFF_JITTER, cap=DEVICE_WAIT_BACKOFF_CAP
            )
            if cancel_event is not None:
                if cancel_event.wait(delay):
                    self._logger.info("spotify.device.wait_cancelled", extra={"attempt": attempt})
                    return None
            else:
                time.sleep(delay)

        self._logger.warning("spotify.device.wait_timeout", extra={"attempts": attempts})
        return None

    def wait_for_device_and_play(
        self,
        track: Track,
        *,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[Device]:
        """Wait for the first device to register, then play ``track`` on it."""
        device = self.wait_for_device(max_attempts=max_attempts, cancel_event=cancel_event)
        if device is not None:
            self.play_track(track, device.id)
        return device
