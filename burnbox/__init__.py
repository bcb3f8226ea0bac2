"""burnbox: pin-protected secrets that burn after the first read."""

from .config import Config, parse_duration
from .crypto import Crypt, derive_sign_key, DecryptionFailedError, InvalidKeyLengthError
from .errors import (
    BurnboxError, BadPinError, BadPinAttemptError, BadDurationError,
    BadFileNameError, BadContentTypeError, FileTooLargeError, CryptoError,
    InternalError, ExpiredError, NotFoundError,
    StoreError, LoadRejectedError, SaveRejectedError,
)
from .messager import MessageProc, Params, Secret, is_file_message, parse_file_header
from .pin import PinHasher
from .store import Message, InMemory, LMDB, SQLite, open_engine, generate_id

__all__ = [
    'Config', 'parse_duration',
    'Crypt', 'derive_sign_key', 'DecryptionFailedError', 'InvalidKeyLengthError',
    'PinHasher',
    'MessageProc', 'Params', 'Secret', 'is_file_message', 'parse_file_header',
    'Message', 'InMemory', 'LMDB', 'SQLite', 'open_engine', 'generate_id',
    'BurnboxError', 'BadPinError', 'BadPinAttemptError', 'BadDurationError',
    'BadFileNameError', 'BadContentTypeError', 'FileTooLargeError', 'CryptoError',
    'InternalError', 'ExpiredError', 'NotFoundError',
    'StoreError', 'LoadRejectedError', 'SaveRejectedError',
]
