"""
burnbox error taxonomy.

Processor errors are the user-facing kinds callers translate into status
codes. Store errors describe persistence problems and are surfaced as-is.
"""


class BurnboxError(Exception):
    """Base class for every burnbox error."""


# ---------------------------------------------------------------------------
# Message processor
# ---------------------------------------------------------------------------

class BadPinError(BurnboxError):
    """Empty pin, pin attempts exhausted, or the final decrypt failed."""


class BadPinAttemptError(BurnboxError):
    """Wrong pin, but the message survives for another try."""

    def __init__(self, message=None, attempts_left: int = 0):
        super().__init__(f"wrong pin attempt, {attempts_left} left")
        self.message = message
        self.attempts_left = attempts_left


class BadDurationError(BurnboxError):
    pass


class BadFileNameError(BurnboxError):
    pass


class BadContentTypeError(BurnboxError):
    pass


class FileTooLargeError(BurnboxError):
    pass


class CryptoError(BurnboxError):
    """Encryption failed. Decryption failures are reported as BadPinError."""


class InternalError(BurnboxError):
    pass


class ExpiredError(BurnboxError):
    pass


class NotFoundError(BurnboxError):
    pass


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class StoreError(BurnboxError):
    """Persistence failure in a storage engine."""


class LoadRejectedError(StoreError):
    """Message expired or deleted."""

    def __init__(self, key: str = ""):
        super().__init__(f"message {key} expired or deleted" if key else "message expired or deleted")
        self.key = key


class SaveRejectedError(StoreError):
    """Message can't be saved."""
