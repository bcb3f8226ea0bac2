"""
SQLite engine, on disk or in memory.

One connection serves every thread. Statements run under a lock, so a
message saved by one thread is visible to every other thread, including
for ":memory:" databases.
"""

import logging
import sqlite3
import threading
import time

from ..errors import LoadRejectedError, SaveRejectedError, StoreError
from .base import Message, Sweeper

log = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    exp REAL NOT NULL,
    data BLOB NOT NULL,
    pin_hash TEXT NOT NULL,
    errors INTEGER DEFAULT 0,
    client_enc INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_messages_exp ON messages(exp);
"""


class SQLite:
    """Relational engine. All statements run under one lock."""

    def __init__(self, path: str, cleanup_interval: float = 300.0, clock=time.time):
        log.info("sqlite (%s) store", path)
        self.path = path
        self.in_memory = path == ':memory:'
        self._clock = clock
        self._lock = threading.Lock()
        self._closed = False

        try:
            self._db = sqlite3.connect(path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreError(f"open sqlite {path}: {e}") from e
        try:
            if not self.in_memory:
                self._db.execute("PRAGMA journal_mode=WAL")
                self._db.execute("PRAGMA synchronous=NORMAL")
            self._db.execute("PRAGMA busy_timeout=5000")
            self._db.executescript(SCHEMA)
            self._migrate_client_enc(self._db)
        except sqlite3.Error as e:
            self._db.close()
            raise StoreError(f"open sqlite {path}: {e}") from e

        self._sweeper = Sweeper('sqlite', self.purge, cleanup_interval)
        self._sweeper.start()

    def _conn(self) -> sqlite3.Connection:
        if self._closed:
            raise StoreError("sqlite store is closed")
        return self._db

    def save(self, msg: Message):
        try:
            with self._lock:
                conn = self._conn()
                with conn:
                    conn.execute(
                        "INSERT INTO messages (id, exp, data, pin_hash, errors, client_enc) "
                        "VALUES (?, ?, ?, ?, ?, ?)",
                        (msg.key, msg.exp, msg.data, msg.pin_hash, msg.errors,
                         int(msg.client_enc)),
                    )
        except sqlite3.Error as e:
            log.error("failed to save message: %s", e)
            raise SaveRejectedError(f"can't save message: {e}") from e
        log.debug("saved, exp=%s", time.strftime('%Y-%m-%dT%H:%M:%S', time.localtime(msg.exp)))

    def load(self, key: str) -> Message:
        try:
            with self._lock:
                row = self._conn().execute(
                    "SELECT id, exp, data, pin_hash, errors, client_enc "
                    "FROM messages WHERE id = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as e:
            log.error("failed to load message: %s", e)
            raise StoreError(f"load message: {e}") from e

        if row is None:
            log.debug("not found %s", key)
            raise LoadRejectedError(key)
        return Message(
            key=row[0],
            exp=row[1],
            data=bytes(row[2]),
            pin_hash=row[3],
            errors=row[4],
            client_enc=bool(row[5]),
        )

    def increment_errors(self, key: str) -> int:
        try:
            with self._lock:
                conn = self._conn()
                with conn:
                    rows = conn.execute(
                        "UPDATE messages SET errors = errors + 1 WHERE id = ? RETURNING errors",
                        (key,),
                    ).fetchall()
        except sqlite3.Error as e:
            log.error("failed to increment errors: %s", e)
            raise StoreError(f"increment errors: {e}") from e

        if not rows:
            log.debug("not found %s", key)
            raise LoadRejectedError(key)
        return rows[0][0]

    def remove(self, key: str) -> bool:
        try:
            with self._lock:
                conn = self._conn()
                with conn:
                    cur = conn.execute("DELETE FROM messages WHERE id = ?", (key,))
        except sqlite3.Error as e:
            log.error("failed to remove message: %s", e)
            raise StoreError(f"remove message: {e}") from e
        if cur.rowcount > 0:
            log.info("removed %s", key)
            return True
        return False

    def purge(self) -> int:
        try:
            with self._lock:
                conn = self._conn()
                with conn:
                    cur = conn.execute("DELETE FROM messages WHERE exp < ?", (self._clock(),))
        except sqlite3.Error as e:
            raise StoreError(f"cleanup: {e}") from e
        return cur.rowcount

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._sweeper.stop()
        with self._lock:
            self._db.close()

    @staticmethod
    def _migrate_client_enc(conn: sqlite3.Connection):
        """Add the client_enc column to databases created before it existed."""
        columns = [row[1] for row in conn.execute("PRAGMA table_info(messages)")]
        if 'client_enc' in columns:
            return
        log.info("migrating database: adding client_enc column")
        with conn:
            conn.execute(
                "ALTER TABLE messages ADD COLUMN client_enc INTEGER NOT NULL DEFAULT 0"
            )
