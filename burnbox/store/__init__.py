"""Storage engines for burnbox messages: in-memory, LMDB and SQLite."""

from ..errors import LoadRejectedError, SaveRejectedError, StoreError
from .base import Message, Sweeper, generate_id
from .lmdb_store import LMDB
from .memory import InMemory
from .sqlite import SQLite

ENGINES = ('MEMORY', 'LMDB', 'SQLITE')


def open_engine(kind: str, path: str = None, cleanup_interval: float = 300.0):
    """
    Open a storage engine by name.

    Args:
        kind: MEMORY, LMDB or SQLITE (case-insensitive)
        path: Database file for LMDB and SQLite; ":memory:" gives an
            in-memory SQLite database
        cleanup_interval: Seconds between sweeps of expired messages
    """
    kind = kind.upper()
    if kind == 'MEMORY':
        return InMemory(cleanup_interval)
    if not path:
        raise ValueError(f"{kind} engine needs a database path")
    if kind == 'LMDB':
        return LMDB(path, cleanup_interval)
    if kind == 'SQLITE':
        return SQLite(path, cleanup_interval)
    raise ValueError(f"unknown engine {kind!r}, expected one of {', '.join(ENGINES)}")


__all__ = [
    'Message', 'Sweeper', 'generate_id', 'open_engine', 'ENGINES',
    'InMemory', 'LMDB', 'SQLite',
    'StoreError', 'LoadRejectedError', 'SaveRejectedError',
]
