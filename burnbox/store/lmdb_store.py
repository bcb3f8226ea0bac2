"""
Embedded file engine on LMDB, an ordered B+tree key/value store.

Two named databases live in one file:
    messages  key -> JSON record
    expiry    "<exp ms, 16 hex digits>-<key>" -> key

The expiry index sorts by time, so a sweep is a range scan from the start
of the index that stops at the first entry still in the future.
"""

import json
import logging
import os
import threading
import time

import lmdb

from ..errors import LoadRejectedError, SaveRejectedError, StoreError
from .base import Message, Sweeper

log = logging.getLogger(__name__)

DEFAULT_MAP_SIZE = 256 * 1024 * 1024


def expiry_key(exp: float, key: str) -> bytes:
    """Sortable index key: expiry in milliseconds, fixed-width hex."""
    return f"{int(exp * 1000):016x}-{key}".encode('utf-8')


def _expiry_ms(index_key: bytes) -> int:
    return int(index_key[:16], 16)


class LMDB:
    """Single-writer transactional engine backed by one LMDB file."""

    def __init__(self, path: str, cleanup_interval: float = 300.0,
                 map_size: int = DEFAULT_MAP_SIZE, clock=time.time):
        log.info("lmdb (%s) store", path)
        parent = os.path.dirname(os.path.abspath(path))
        os.makedirs(parent, exist_ok=True)
        try:
            self._env = lmdb.open(path, subdir=False, max_dbs=2, map_size=map_size)
            self._messages = self._env.open_db(b'messages')
            self._expiry = self._env.open_db(b'expiry')
        except lmdb.Error as e:
            raise StoreError(f"open lmdb {path}: {e}") from e

        self.path = path
        self._clock = clock
        # one write transaction at a time within this process
        self._write_lock = threading.Lock()
        self._closed = False
        self._sweeper = Sweeper('lmdb', self.purge, cleanup_interval)
        self._sweeper.start()

    def save(self, msg: Message):
        key = msg.key.encode('utf-8')
        try:
            with self._write_lock, self._env.begin(write=True) as txn:
                if not txn.put(key, msg.to_json().encode('utf-8'),
                               db=self._messages, overwrite=False):
                    raise SaveRejectedError(f"duplicate key {msg.key}")
                txn.put(expiry_key(msg.exp, msg.key), key, db=self._expiry)
        except lmdb.Error as e:
            log.error("failed to save message: %s", e)
            raise SaveRejectedError(f"can't save message: {e}") from e
        log.debug("saved, exp=%s", time.strftime('%Y-%m-%dT%H:%M:%S', time.localtime(msg.exp)))

    def load(self, key: str) -> Message:
        try:
            with self._env.begin(db=self._messages) as txn:
                raw = txn.get(key.encode('utf-8'))
        except lmdb.Error as e:
            log.error("failed to load message: %s", e)
            raise StoreError(f"load message: {e}") from e
        if raw is None:
            log.debug("not found %s", key)
            raise LoadRejectedError(key)
        return Message.from_dict(json.loads(raw))

    def increment_errors(self, key: str) -> int:
        bkey = key.encode('utf-8')
        try:
            with self._write_lock, self._env.begin(write=True) as txn:
                raw = txn.get(bkey, db=self._messages)
                if raw is None:
                    raise LoadRejectedError(key)
                msg = Message.from_dict(json.loads(raw))
                msg.errors += 1
                txn.put(bkey, msg.to_json().encode('utf-8'), db=self._messages)
        except lmdb.Error as e:
            log.error("failed to increment errors: %s", e)
            raise StoreError(f"increment errors: {e}") from e
        return msg.errors

    def remove(self, key: str) -> bool:
        try:
            with self._write_lock, self._env.begin(write=True) as txn:
                raw = txn.pop(key.encode('utf-8'), db=self._messages)
                if raw is not None:
                    exp = json.loads(raw)['exp']
                    txn.delete(expiry_key(exp, key), db=self._expiry)
        except lmdb.Error as e:
            log.error("failed to remove message: %s", e)
            raise StoreError(f"remove message: {e}") from e
        if raw is None:
            return False
        log.info("removed %s", key)
        return True

    def purge(self) -> int:
        now_ms = int(self._clock() * 1000)
        try:
            with self._write_lock, self._env.begin(write=True) as txn:
                expired = []
                for index_key, key in txn.cursor(db=self._expiry):
                    if _expiry_ms(index_key) >= now_ms:
                        break
                    expired.append((index_key, key))
                for index_key, key in expired:
                    txn.delete(index_key, db=self._expiry)
                    txn.delete(key, db=self._messages)
        except lmdb.Error as e:
            raise StoreError(f"cleanup: {e}") from e
        return len(expired)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._sweeper.stop()
        self._env.close()
