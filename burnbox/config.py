"""
burnbox configuration.

Settings come from BURNBOX_* environment variables; the CLI overrides them
with flags. Nothing in the core reads the environment on its own, a Config
is built once and passed down.
"""

import os
import re
from dataclasses import dataclass

from .crypto import Crypt, derive_sign_key
from .messager import MessageProc, Params
from .pin import PinHasher
from .store import open_engine

ENV_PREFIX = 'BURNBOX_'

_DURATION_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$')
_UNITS = {'': 1, 's': 1, 'm': 60, 'h': 3600, 'd': 86400}


def parse_duration(value) -> float:
    """
    Parse "90", "45s", "30m", "24h" or "7d" into seconds.

    Raises:
        ValueError: If the value isn't a duration
    """
    if isinstance(value, (int, float)):
        return float(value)
    m = _DURATION_RE.match(value.lower())
    if not m:
        raise ValueError(f"invalid duration {value!r}")
    return float(m.group(1)) * _UNITS[m.group(2)]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Config:
    sign_key: str = ''
    pin_size: int = 5
    engine: str = 'SQLITE'
    db: str = 'burnbox.db'
    max_expire: float = 24 * 3600
    pin_attempts: int = 3
    max_file_size: int = 1024 * 1024
    cleanup_interval: float = 5 * 60
    debug: bool = False

    @classmethod
    def from_env(cls, environ=None) -> 'Config':
        env = os.environ if environ is None else environ

        def get(name, default=None):
            return env.get(ENV_PREFIX + name, default)

        cfg = cls()
        cfg.sign_key = get('SIGN_KEY', cfg.sign_key)
        cfg.pin_size = int(get('PIN_SIZE', cfg.pin_size))
        cfg.engine = get('ENGINE', cfg.engine).upper()
        cfg.db = get('DB', cfg.db)
        cfg.max_expire = parse_duration(get('MAX_EXPIRE', cfg.max_expire))
        cfg.pin_attempts = int(get('PIN_ATTEMPTS', cfg.pin_attempts))
        cfg.max_file_size = int(get('MAX_SIZE', cfg.max_file_size))
        cfg.cleanup_interval = parse_duration(get('CLEANUP', cfg.cleanup_interval))
        cfg.debug = _parse_bool(get('DEBUG', '')) or cfg.debug
        return cfg

    def validate(self):
        if not self.sign_key:
            raise ValueError("sign key is required (BURNBOX_SIGN_KEY)")
        if not 0 < self.pin_size < 32:
            raise ValueError(f"pin size must be between 1 and 31, got {self.pin_size}")
        if self.pin_attempts < 1:
            raise ValueError("pin attempts must be at least 1")
        if self.cleanup_interval <= 0:
            raise ValueError("cleanup interval must be positive")

    def params(self) -> Params:
        return Params(
            max_duration=self.max_expire,
            max_pin_attempts=self.pin_attempts,
            max_file_size=self.max_file_size,
        )

    def build_engine(self):
        return open_engine(self.engine, self.db, self.cleanup_interval)

    def build_processor(self, engine=None) -> MessageProc:
        """Assemble a MessageProc; opens the configured engine unless given one."""
        self.validate()
        crypter = Crypt(derive_sign_key(self.sign_key, self.pin_size))
        return MessageProc(
            engine if engine is not None else self.build_engine(),
            crypter,
            self.params(),
            hasher=PinHasher(),
        )
