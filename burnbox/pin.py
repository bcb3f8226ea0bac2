"""Salted, adaptive pin hashing with Argon2id."""

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError

DEFAULT_TIME_COST = 2
DEFAULT_MEMORY_COST = 19 * 1024  # KiB
DEFAULT_PARALLELISM = 1


class PinHashError(RuntimeError):
    pass


class PinHasher:
    """Hashes pins for storage and verifies them later. Holds no mutable state."""

    def __init__(self, time_cost: int = DEFAULT_TIME_COST,
                 memory_cost: int = DEFAULT_MEMORY_COST,
                 parallelism: int = DEFAULT_PARALLELISM):
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, pin: str) -> str:
        """Return an encoded Argon2id hash of the pin."""
        try:
            return self._hasher.hash(pin)
        except HashingError as e:
            raise PinHashError(f"can't make hashed pin: {e}") from e

    def verify(self, pin_hash: str, pin: str) -> bool:
        try:
            return self._hasher.verify(pin_hash, pin)
        except (VerificationError, InvalidHashError):
            return False
