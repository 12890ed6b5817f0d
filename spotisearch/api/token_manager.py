#!/usr/bin/env python3
"""
🎟️ Spotify Token Manager for SpotiSearch
Owns the client credentials and the refresh-token exchange, and tracks when
the current access token expires.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from ..constants import DEFAULT_TOKEN_LIFETIME_SECONDS, TOKEN_URL
from .mapping import decode_json


@dataclass
class TokenResponse:
    """Normalized token refresh response from Spotify."""
    access_token: str
    expires_in: int
    scope: Optional[str] = None
    token_type: Optional[str] = None
    received_at: float = field(default_factory=time.time)

    @property
    def expires_at(self) -> float:
        return self.received_at + int(self.expires_in)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], received_at: Optional[float] = None) -> "TokenResponse":
        try:
            expires_in = int(payload.get("expires_in", DEFAULT_TOKEN_LIFETIME_SECONDS))
        except (TypeError, ValueError):
            expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS
        return cls(
            access_token=str(payload.get("access_token") or ""),
            expires_in=expires_in,
            scope=payload.get("scope"),
            token_type=payload.get("token_type"),
            received_at=time.time() if received_at is None else received_at,
        )


def extract_error_message(payload: Dict[str, Any]) -> str:
    """Prefer ``error_description`` and fall back to ``error``."""
    if "error_description" in payload:
        return str(payload.get("error_description") or "")
    error = payload.get("error")
    if isinstance(error, dict):
        # Web API style errors: {"error": {"status": 401, "message": "..."}}
        return str(error.get("message") or "")
    return str(error or "")


class TokenManager:
    """
    Holds the session credentials and refreshes the access token.

    Session fields are guarded by ``_lock``; refreshes are serialized by
    ``_refresh_lock`` so overlapping callers never lose an update.

    Args:
        client_id: Spotify application client id
        client_secret: Spotify application client secret
        refresh_token: Long-lived user refresh token
        transport: :class:`~spotisearch.api.http.SpotifyTransport` used for the exchange
    """

    def __init__(self, client_id: str, client_secret: str, refresh_token: str, transport):
        self._client_id = client_id or ""
        self._client_secret = client_secret or ""
        self._refresh_token = refresh_token or ""
        self._transport = transport

        self._access_token = ""
        self._expires_at = 0.0
        self._last_error = ""

        self._lock = threading.RLock()
        self._refresh_lock = threading.Lock()
        self._logger = logging.getLogger('spotify.token')

    # Credentials

    @property
    def client_id(self) -> str:
        with self._lock:
            return self._client_id

    def set_client_id(self, value: str) -> bool:
        return self._set_credential("_client_id", value)

    @property
    def client_secret(self) -> str:
        with self._lock:
            return self._client_secret

    def set_client_secret(self, value: str) -> bool:
        return self._set_credential("_client_secret", value)

    @property
    def refresh_token(self) -> str:
        with self._lock:
            return self._refresh_token

    def set_refresh_token(self, value: str) -> bool:
        return self._set_credential("_refresh_token", value)

    def _set_credential(self, attribute: str, value: str) -> bool:
        value = value or ""
        with self._lock:
            if getattr(self, attribute) == value:
                return False
            setattr(self, attribute, value)
        self._logger.debug("token.credentials.changed", extra={"field": attribute.lstrip("_")})
        return True

    # Session state

    @property
    def access_token(self) -> str:
        with self._lock:
            return self._access_token

    @property
    def expires_at(self) -> float:
        with self._lock:
            return self._expires_at

    @property
    def last_error(self) -> str:
        with self._lock:
            return self._last_error

    def is_expired(self) -> bool:
        """True when no access token is held or its lifetime has run out."""
        with self._lock:
            if not self._access_token:
                return True
            return time.time() >= self._expires_at

    def invalidate(self) -> None:
        """Forget the access token so the next expiry check forces a refresh."""
        with self._lock:
            self._access_token = ""
            self._expires_at = 0.0

    def refresh(self) -> bool:
        """
        Exchange the refresh token for a new access token.

        Returns:
            bool: True if a non-empty access token is now held. Failures are
            recorded in :attr:`last_error` (empty for connectivity failures).
        """
        with self._refresh_lock:
            with self._lock:
                client_id, client_secret, refresh_token = (
                    self._client_id, self._client_secret, self._refresh_token
                )

            start = time.perf_counter()
            try:
                response = self._transport.request(
                    "POST",
                    TOKEN_URL,
                    data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                    auth=(client_id, client_secret),
                    authorize=False,
                )
            except requests.exceptions.RequestException as exc:
                with self._lock:
                    self._access_token = ""
                    self._last_error = ""
                self._logger.warning("token.refresh.unreachable", extra={"error": exc.__class__.__name__})
                return False

            payload = decode_json(response.content)
            elapsed = round(time.perf_counter() - start, 3)

            if "access_token" not in payload:
                message = extract_error_message(payload)
                with self._lock:
                    self._access_token = ""
                    self._last_error = message
                self._logger.error(
                    "token.refresh.fail",
                    extra={"status": response.status_code, "reason": message, "elapsed": elapsed},
                )
                return False

            token_response = TokenResponse.from_payload(payload)
            with self._lock:
                self._access_token = token_response.access_token
                self._expires_at = token_response.expires_at
                self._last_error = ""
                obtained = bool(self._access_token)

            self._logger.info(
                "token.refresh.ok",
                extra={"expires_in": token_response.expires_in, "elapsed": elapsed},
            )
            return obtained


__all__ = ["TokenManager", "TokenResponse", "extract_error_message"]
