"""Volatile in-memory engine. Nothing survives a restart."""

import logging
import threading
import time

from ..errors import LoadRejectedError, SaveRejectedError
from .base import Message, Sweeper

log = logging.getLogger(__name__)


class InMemory:
    """Dict of messages guarded by one lock, swept on a timer."""

    def __init__(self, cleanup_interval: float = 300.0, clock=time.time):
        self._data = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._closed = False
        self._sweeper = Sweeper('memory', self.purge, cleanup_interval)
        self._sweeper.start()

    def save(self, msg: Message):
        with self._lock:
            if msg.key in self._data:
                log.error("failed to save message, duplicate key")
                raise SaveRejectedError(f"duplicate key {msg.key}")
            self._data[msg.key] = msg.copy()
        log.debug("saved, exp=%s", time.strftime('%Y-%m-%dT%H:%M:%S', time.localtime(msg.exp)))

    def load(self, key: str) -> Message:
        with self._lock:
            msg = self._data.get(key)
            if msg is None:
                log.debug("not found %s", key)
                raise LoadRejectedError(key)
            return msg.copy()

    def increment_errors(self, key: str) -> int:
        with self._lock:
            msg = self._data.get(key)
            if msg is None:
                raise LoadRejectedError(key)
            msg.errors += 1
            return msg.errors

    def remove(self, key: str) -> bool:
        with self._lock:
            removed = self._data.pop(key, None) is not None
        if removed:
            log.info("removed %s", key)
        return removed

    def purge(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, m in self._data.items() if m.exp < now]
            for k in expired:
                del self._data[k]
        return len(expired)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._sweeper.stop()
        with self._lock:
            self._data.clear()

    def __len__(self):
        with self._lock:
            return len(self._data)
