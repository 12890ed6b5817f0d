#!/usr/bin/env python3
"""
🔐 Thread-Safe Primitives for SpotiSearch
Guards the state shared between overlapping query and action handlers:
- Cover-art cache writes (reader/writer lock)
- Persisted runtime state such as the last-used playback device
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Optional


class ReadWriteLock:
    """
    Reader-writer lock implementation for optimized concurrent access.
    Allows multiple readers OR one writer (but not both simultaneously).
    """

    def __init__(self):
        self._read_ready = threading.Condition(threading.RLock())
        self._readers = 0

    @contextmanager
    def read_lock(self):
        """Acquire read lock (allows multiple concurrent readers)."""
        self._read_ready.acquire()
        try:
            self._readers += 1
        finally:
            self._read_ready.release()

        try:
            yield
        finally:
            self._read_ready.acquire()
            try:
                self._readers -= 1
                if self._readers == 0:
                    self._read_ready.notify_all()
            finally:
                self._read_ready.release()

    @contextmanager
    def write_lock(self):
        """Acquire write lock (exclusive access)."""
        self._read_ready.acquire()
        try:
            while self._readers > 0:
                self._read_ready.wait()
            yield
        finally:
            self._read_ready.release()


class ThreadSafeStateStore:
    """
    Lock-guarded view of the persisted runtime state.

    Args:
        base_manager: Object exposing ``load_state()`` and ``save_state(dict)``
            (normally :class:`spotisearch.config.ConfigManager`)
    """

    def __init__(self, base_manager):
        self._base_manager = base_manager
        self._lock = threading.RLock()
        self._state: Optional[Dict[str, Any]] = None
        self._logger = logging.getLogger('thread_safe_state')

    def _ensure_loaded(self) -> Dict[str, Any]:
        if self._state is None:
            self._state = self._base_manager.load_state()
        return self._state

    def load_state(self) -> Dict[str, Any]:
        """Return a deep copy of the current state."""
        with self._lock:
            return copy.deepcopy(self._ensure_loaded())

    def get_value(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return copy.deepcopy(self._ensure_loaded().get(key, default))

    def set_value(self, key: str, value: Any) -> bool:
        """
        Set and persist a state value.

        Returns:
            bool: True if the value changed and was saved
        """
        with self._lock:
            state = self._ensure_loaded()
            if state.get(key) == value:
                return False
            updated = dict(state)
            updated[key] = value
            if not self._base_manager.save_state(updated):
                self._logger.error("❌ Failed to persist state key %s", key)
                return False
            self._state = updated
            self._logger.debug("💾 State updated: %s", key)
            return True

    def invalidate(self) -> None:
        """Drop the in-memory copy so the next read goes back to disk."""
        with self._lock:
            self._state = None

    @property
    def last_device(self) -> str:
        return self.get_value("last_device", "") or ""

    @last_device.setter
    def last_device(self, device_id: str) -> None:
        self.set_value("last_device", device_id or "")


__all__ = ["ReadWriteLock", "ThreadSafeStateStore"]
