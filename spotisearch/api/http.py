#!/usr/bin/env python3
"""HTTP session configuration and request execution for Spotify API access."""

import logging
import os
import platform
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from ..utils.thread_safety import ReadWriteLock
from ..version import APP_NAME, VERSION

TimeoutValue = Union[float, Tuple[float, float]]

_LOGGER = logging.getLogger("spotify.http")

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


DEFAULT_TIMEOUT: float = max(1.0, _float_env("SPOTISEARCH_HTTP_TIMEOUT", 10.0))


def _coerce_timeout(value: TimeoutValue) -> TimeoutValue:
    """Normalise a caller-provided timeout."""
    if isinstance(value, tuple):
        if len(value) == 2:
            return max(0.5, float(value[0])), max(1.0, float(value[1]))
        raise ValueError("Timeout tuples must be length 2 (connect, read)")
    return max(0.5, float(value))


def _with_default_timeout(
    request_func: Callable[..., requests.Response],
    timeout: TimeoutValue,
) -> Callable[..., requests.Response]:
    """Wrap session.request to inject default timeouts."""

    def wrapper(method: str, url: str, **kwargs: Any) -> requests.Response:
        provided = kwargs.get("timeout")
        if provided is None:
            kwargs["timeout"] = timeout
        else:
            try:
                kwargs["timeout"] = _coerce_timeout(provided)
            except (TypeError, ValueError):
                kwargs["timeout"] = timeout
        return request_func(method, url, **kwargs)

    return wrapper


def _build_retry_configuration() -> Retry:
    """Retry reads only on rate limiting and server errors; timeouts are final.

    Queue and play requests are not idempotent, so POST and PUT are sent once.
    Retry-After is ignored to keep each operation within its timeout.
    """
    return Retry(
        total=_int_env("SPOTISEARCH_HTTP_RETRY_TOTAL", 2),
        connect=0,
        read=0,
        backoff_factor=_float_env("SPOTISEARCH_HTTP_BACKOFF_FACTOR", 0.5),
        status_forcelist=list(RETRYABLE_STATUSES),
        allowed_methods=["GET"],
        respect_retry_after_header=False,
        raise_on_status=False,
    )


def build_session() -> requests.Session:
    """Create a configured requests.Session with status retries and a default timeout."""
    session = requests.Session()

    adapter = HTTPAdapter(
        max_retries=_build_retry_configuration(),
        pool_connections=_int_env("SPOTISEARCH_HTTP_POOL_CONNECTIONS", 4),
        pool_maxsize=_int_env("SPOTISEARCH_HTTP_POOL_MAXSIZE", 8),
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "User-Agent": f"{APP_NAME}/{VERSION} (Python {platform.python_version()}; "
                          f"Requests {requests.__version__})",
        }
    )
    session.request = _with_default_timeout(session.request, DEFAULT_TIMEOUT)

    _LOGGER.debug(
        "HTTP session configured",
        extra={"http.timeout": DEFAULT_TIMEOUT, "http.retry_total": adapter.max_retries.total},
    )
    return session


class SpotifyTransport:
    """
    Blocking request executor for the Spotify Web API.

    API requests are authorized with the bearer token returned by
    ``token_provider``; token-endpoint and image requests pass
    ``authorize=False``. Transport failures propagate as
    ``requests.RequestException`` after being logged.

    Args:
        token_provider: Callable returning the current access token
        session: Optional preconfigured session (tests inject fakes here)
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        token_provider: Callable[[], str],
        session: Optional[requests.Session] = None,
        timeout: TimeoutValue = DEFAULT_TIMEOUT,
    ):
        self._token_provider = token_provider
        self._session = session if session is not None else build_session()
        self._timeout = timeout
        self._file_lock = ReadWriteLock()

    @property
    def session(self) -> requests.Session:
        return self._session

    def authorized_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token_provider() or ''}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def request(
        self,
        method: str,
        url: str,
        *,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[Tuple[str, str]] = None,
        authorize: bool = True,
    ) -> requests.Response:
        method_upper = method.upper()
        request_headers = self.authorized_headers() if authorize else {}
        if headers:
            request_headers.update(headers)

        start = time.perf_counter()
        try:
            response = self._session.request(
                method_upper,
                url,
                headers=request_headers,
                data=data,
                auth=auth,
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as exc:
            _LOGGER.warning(
                "spotify.request.error",
                extra={
                    "method": method_upper,
                    "url": url.split("?")[0],
                    "elapsed": round(time.perf_counter() - start, 3),
                    "error": exc.__class__.__name__,
                },
            )
            raise

        _LOGGER.debug(
            "spotify.request.done",
            extra={
                "method": method_upper,
                "url": url.split("?")[0],
                "status": response.status_code,
                "elapsed": round(time.perf_counter() - start, 3),
            },
        )
        return response

    def get(self, url: str, *, authorize: bool = True) -> bytes:
        return self.request("GET", url, authorize=authorize).content

    def post(self, url: str, body: Any = None, *, authorize: bool = True) -> bytes:
        return self.request("POST", url, data=body, authorize=authorize).content

    def put(self, url: str, body: Any = None, *, authorize: bool = True) -> bytes:
        return self.request("PUT", url, data=body, authorize=authorize).content

    def download_file(self, url: str, file_path: Union[str, Path]) -> bool:
        """
        Download ``url`` to ``file_path`` unless the file already exists.

        The body is written to a temporary file next to the destination and
        moved into place, so an interrupted download never leaves a partial
        file behind. Writers are serialized by a single lock.

        Returns:
            bool: True if a new file was published
        """
        path = Path(file_path)
        if path.exists() or not url:
            return False

        with self._file_lock.write_lock():
            if path.exists():
                return False
            try:
                content = self.get(url, authorize=False)
            except requests.exceptions.RequestException:
                return False
            if not content:
                return False

            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".part")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(content)
                os.replace(tmp_name, path)
            except OSError as exc:
                _LOGGER.warning("spotify.download.write_failed", extra={"path": str(path), "error": str(exc)})
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                return False

        _LOGGER.debug("spotify.download.ok", extra={"path": str(path), "size": len(content)})
        return True


__all__ = [
    "DEFAULT_TIMEOUT",
    "RETRYABLE_STATUSES",
    "SpotifyTransport",
    "build_session",
]
