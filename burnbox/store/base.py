"""
Shared pieces of every storage engine: the Message record, key generation
and the background sweeper that drops expired messages.
"""

import json
import logging
import secrets
import string
import threading
from typing import Callable

from ..errors import StoreError

log = logging.getLogger(__name__)

ID_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
ID_LENGTH = 12


def generate_id() -> str:
    """Random base62 message key, ID_LENGTH characters."""
    return ''.join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


class Message:
    """A stored message. Only `errors` changes after creation."""

    def __init__(self, key: str, exp: float, data: bytes, pin_hash: str,
                 errors: int = 0, client_enc: bool = False):
        self.key = key
        self.exp = exp
        self.data = data
        self.pin_hash = pin_hash
        self.errors = errors
        self.client_enc = client_enc

    def copy(self) -> 'Message':
        return Message(self.key, self.exp, self.data, self.pin_hash,
                       self.errors, self.client_enc)

    def to_dict(self) -> dict:
        return {
            'key': self.key,
            'exp': self.exp,
            'data_hex': self.data.hex(),
            'pin_hash': self.pin_hash,
            'errors': self.errors,
            'client_enc': self.client_enc,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, d: dict) -> 'Message':
        return cls(
            key=d['key'],
            exp=d['exp'],
            data=bytes.fromhex(d['data_hex']),
            pin_hash=d['pin_hash'],
            errors=d.get('errors', 0),
            client_enc=d.get('client_enc', False),
        )

    def __repr__(self):
        return f"Message(key={self.key!r}, exp={self.exp}, errors={self.errors}, client_enc={self.client_enc})"


class Sweeper:
    """
    Calls `purge` every `interval` seconds on a daemon thread until stopped.

    stop() joins the thread, so once it returns the sweeper will not touch
    the store again.
    """

    def __init__(self, name: str, purge: Callable[[], int], interval: float):
        self.name = name
        self.interval = interval
        self._purge = purge
        self._done = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"{name}-sweeper", daemon=True
        )

    def start(self):
        log.info("%s cleaner activated, every %ss", self.name, self.interval)
        self._thread.start()

    def stop(self):
        self._done.set()
        if self._thread.is_alive():
            self._thread.join()

    def _run(self):
        while not self._done.wait(self.interval):
            try:
                count = self._purge()
            except StoreError as e:
                log.warning("%s cleanup failed: %s", self.name, e)
                continue
            except Exception:
                log.exception("%s cleanup crashed", self.name)
                continue
            if count:
                log.info("%s cleaned %d expired messages", self.name, count)
