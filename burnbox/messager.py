"""
burnbox message processor.

Uses an injected engine to save and load messages; the engine is dumb
storage. All encryption, pin hashing, attempt counting and burning happens
here. The pin completes the encryption key and is stored only as a hash.

File messages are framed as:

    !!FILE!!<encrypted blob>

where the blob decrypts to `filename!!content-type!!\\n<binary>`. Only the
marker stays readable, so a file can be recognised without the pin.
"""

import logging
import time
from typing import NamedTuple, Optional, Protocol, Tuple

from .errors import (
    BadContentTypeError,
    BadDurationError,
    BadFileNameError,
    BadPinAttemptError,
    BadPinError,
    CryptoError,
    ExpiredError,
    FileTooLargeError,
    InternalError,
    LoadRejectedError,
    NotFoundError,
    StoreError,
)
from .pin import PinHasher, PinHashError
from .store.base import Message, generate_id

log = logging.getLogger(__name__)

FILE_PREFIX = b'!!FILE!!'
DELIMITER = '!!'
HEADER_SCAN_LIMIT = 4096
MAX_FILENAME_BYTES = 255
# longest content type whose header still ends within HEADER_SCAN_LIMIT
MAX_CONTENT_TYPE_BYTES = HEADER_SCAN_LIMIT - MAX_FILENAME_BYTES - 2 * len(DELIMITER) - 1

DEFAULT_MAX_DURATION = 31 * 24 * 3600
DEFAULT_MAX_PIN_ATTEMPTS = 3
DEFAULT_MAX_FILE_SIZE = 1024 * 1024


class Engine(Protocol):
    def save(self, msg: Message) -> None: ...
    def load(self, key: str) -> Message: ...
    def increment_errors(self, key: str) -> int: ...
    def remove(self, key: str) -> bool: ...
    def close(self) -> None: ...


class Crypter(Protocol):
    def encrypt(self, data: bytes, pin: str) -> bytes: ...
    def decrypt(self, data: bytes, pin: str) -> bytes: ...


class Hasher(Protocol):
    def hash(self, pin: str) -> str: ...
    def verify(self, pin_hash: str, pin: str) -> bool: ...


class Params:
    """Limits for the processor. Zero or None picks the default."""

    def __init__(self, max_duration: float = 0, max_pin_attempts: int = 0,
                 max_file_size: int = 0):
        self.max_duration = max_duration or DEFAULT_MAX_DURATION
        self.max_pin_attempts = max_pin_attempts or DEFAULT_MAX_PIN_ATTEMPTS
        self.max_file_size = max_file_size or DEFAULT_MAX_FILE_SIZE

    def __repr__(self):
        return (f"Params(max_duration={self.max_duration}, "
                f"max_pin_attempts={self.max_pin_attempts}, "
                f"max_file_size={self.max_file_size})")


class Secret(NamedTuple):
    """A revealed message as handed to callers."""
    data: bytes
    is_file: bool
    filename: Optional[str] = None
    content_type: Optional[str] = None


class MessageProc:
    """Creates, saves and reveals messages."""

    def __init__(self, engine: Engine, crypter: Crypter, params: Params = None,
                 hasher: Hasher = None, clock=time.time):
        self.engine = engine
        self.crypt = crypter
        self.params = params or Params()
        self.hasher = hasher or PinHasher()
        self.clock = clock
        log.info("created messager with %r", self.params)

    # -- create -------------------------------------------------------------

    def make_message(self, duration: float, message, pin: str,
                     client_enc: bool = False) -> Message:
        """
        Create and save a text message.

        With client_enc the caller already encrypted `message`; it is stored
        as-is and never decrypted here. Otherwise it is encrypted with the pin.

        `message` must be str or bytes.

        Raises:
            TypeError: message is neither str nor bytes
            BadPinError, BadDurationError, InternalError, CryptoError,
            SaveRejectedError (from the engine, unchanged)
        """
        if isinstance(message, str):
            message = message.encode('utf-8')
        elif isinstance(message, (bytearray, memoryview)):
            message = bytes(message)
        elif not isinstance(message, bytes):
            raise TypeError(f"message must be str or bytes, not {type(message).__name__}")

        if not pin:
            log.warning("save rejected, empty pin")
            raise BadPinError("empty pin")
        self._check_duration(duration)
        pin_hash = self._make_hash(pin)

        if client_enc:
            data = message
        else:
            data = self._encrypt(message, pin)

        msg = Message(
            key=generate_id(),
            exp=self.clock() + duration,
            data=data,
            pin_hash=pin_hash,
            client_enc=client_enc,
        )
        self.engine.save(msg)
        return msg

    def make_file_message(self, duration: float, pin: str, filename: str,
                          content_type: str, data: bytes) -> Message:
        """
        Create and save a file message.

        Filename and content type are encrypted together with the data;
        only the FILE_PREFIX marker is stored in the clear.
        """
        if not pin:
            log.warning("save rejected, empty pin")
            raise BadPinError("empty pin")

        if not valid_filename(filename):
            log.warning("save rejected, invalid file name")
            raise BadFileNameError("invalid file name")

        if not valid_content_type(content_type):
            log.warning("save rejected, invalid content type")
            raise BadContentTypeError("invalid content type")

        if len(data) > self.params.max_file_size:
            log.warning("save rejected, file too large: %d > %d",
                        len(data), self.params.max_file_size)
            raise FileTooLargeError(
                f"file too large: {len(data)} > {self.params.max_file_size}"
            )

        self._check_duration(duration)
        pin_hash = self._make_hash(pin)

        header = f"{filename}{DELIMITER}{content_type}{DELIMITER}\n".encode('utf-8')
        encrypted = self._encrypt(header + data, pin)

        msg = Message(
            key=generate_id(),
            exp=self.clock() + duration,
            data=FILE_PREFIX + encrypted,
            pin_hash=pin_hash,
        )
        self.engine.save(msg)
        return msg

    # -- read ---------------------------------------------------------------

    def load_message(self, key: str, pin: str) -> Message:
        """
        Verify the pin, decrypt and burn a message.

        Returns the message with decrypted data. File messages keep the
        FILE_PREFIX marker in front of the decrypted header, so
        parse_file_header() works the same on stored and revealed data.

        Raises:
            NotFoundError: no such message, or it was already read
            ExpiredError: past its expiry, now removed
            BadPinAttemptError: wrong pin, attempts remain
            BadPinError: wrong pin with no attempts left, or undecryptable
        """
        try:
            msg = self.engine.load(key)
        except LoadRejectedError:
            raise NotFoundError(f"message {key} not found") from None

        if self.clock() >= msg.exp:
            log.warning("expired %s on %s", key, _fmt_time(msg.exp))
            self._remove(key)
            raise ExpiredError(f"message {key} expired")

        if not self.hasher.verify(msg.pin_hash, pin):
            self._wrong_pin(msg)

        # claim the message first, only one reader can win the remove
        if self._remove(key) is False:
            raise NotFoundError(f"message {key} not found")

        if msg.client_enc:
            return msg

        is_file = is_file_message(msg.data)
        sealed = msg.data[len(FILE_PREFIX):] if is_file else msg.data
        try:
            plain = self.crypt.decrypt(sealed, pin)
        except ValueError as e:
            log.warning("can't decrypt, %s", e)
            raise BadPinError("wrong pin") from None

        msg.data = FILE_PREFIX + plain if is_file else plain
        return msg

    def reveal(self, key: str, pin: str) -> Secret:
        """load_message() split into payload and file metadata."""
        msg = self.load_message(key, pin)
        if msg.client_enc or not is_file_message(msg.data):
            return Secret(data=msg.data, is_file=False)

        filename, content_type, offset = parse_file_header(msg.data)
        if offset < 0:
            log.warning("malformed file header in %s", key)
            return Secret(data=msg.data, is_file=False)
        return Secret(
            data=msg.data[offset:],
            is_file=True,
            filename=filename,
            content_type=content_type,
        )

    def is_file(self, key: str) -> bool:
        """
        Check whether a message is a file without consuming it.

        False for missing, expired and client-encrypted messages, the
        server can't look inside those.
        """
        try:
            msg = self.engine.load(key)
        except StoreError:
            return False
        if msg.client_enc or self.clock() >= msg.exp:
            return False
        return is_file_message(msg.data)

    # -- internals ----------------------------------------------------------

    def _check_duration(self, duration: float):
        if duration <= 0 or duration > self.params.max_duration:
            log.error("can't use duration %s, max %s", duration, self.params.max_duration)
            raise BadDurationError(f"bad duration {duration}")

    def _make_hash(self, pin: str) -> str:
        try:
            return self.hasher.hash(pin)
        except PinHashError as e:
            log.error("can't hash pin, %s", e)
            raise InternalError("can't hash pin") from e

    def _encrypt(self, data: bytes, pin: str) -> bytes:
        try:
            return self.crypt.encrypt(data, pin)
        except ValueError as e:
            log.error("failed to encrypt, %s", e)
            raise CryptoError("failed to encrypt") from e

    def _wrong_pin(self, msg: Message):
        try:
            count = self.engine.increment_errors(msg.key)
        except LoadRejectedError:
            raise BadPinError("wrong pin") from None

        log.warning("wrong pin provided for %s (%d times)", msg.key, count)
        if count >= self.params.max_pin_attempts:
            self._remove(msg.key)
            raise BadPinError("wrong pin")

        msg.errors = count
        raise BadPinAttemptError(msg, self.params.max_pin_attempts - count)

    def _remove(self, key: str) -> Optional[bool]:
        """Remove a message; failures are logged and give None."""
        try:
            return self.engine.remove(key)
        except StoreError as e:
            log.warning("failed to remove %s, %s", key, e)
            return None


def _fmt_time(ts: float) -> str:
    return time.strftime('%Y-%m-%dT%H:%M:%S', time.localtime(ts))


def valid_filename(filename: str) -> bool:
    """Filenames must be safe to embed in the file header and on disk."""
    if not filename or len(filename.encode('utf-8')) > MAX_FILENAME_BYTES:
        return False
    # a trailing "!" would merge with the delimiter that follows it
    if DELIMITER in filename or filename.endswith('!') or '..' in filename:
        return False
    if '/' in filename or '\\' in filename:
        return False
    return not _has_control_chars(filename)


def valid_content_type(content_type: str) -> bool:
    if len(content_type.encode('utf-8')) > MAX_CONTENT_TYPE_BYTES:
        return False
    if DELIMITER in content_type or content_type.endswith('!'):
        return False
    return not _has_control_chars(content_type)


def _has_control_chars(s: str) -> bool:
    return any(ord(c) < 32 for c in s)


def is_file_message(data: bytes) -> bool:
    """True if the data carries the file marker (stored or revealed)."""
    return len(data) > len(FILE_PREFIX) and data.startswith(FILE_PREFIX)


def parse_file_header(data: bytes) -> Tuple[str, str, int]:
    """
    Extract filename, content type and payload offset from a revealed
    file message.

    Returns ("", "", -1) if the marker is missing, no newline ends the
    header within HEADER_SCAN_LIMIT bytes, or the header has fewer than
    two fields.
    """
    if not is_file_message(data):
        return "", "", -1

    start = len(FILE_PREFIX)
    header_end = data.find(b'\n', start, start + HEADER_SCAN_LIMIT)
    if header_end == -1:
        return "", "", -1

    header = data[start:header_end].decode('utf-8', errors='replace')
    parts = header.split(DELIMITER)
    if len(parts) < 2:
        return "", "", -1
    return parts[0], parts[1], header_end + 1
