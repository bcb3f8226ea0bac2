"""
burnbox encryption layer: AES-256-GCM authenticated encryption.

The key for every message is the server sign key followed by the user's pin.
Both together must be exactly KEY_SIZE bytes, so the pin takes part in the
key and a wrong pin can never open the blob.

Output layout: nonce(12) + ciphertext + tag(16)
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


class InvalidKeyLengthError(ValueError):
    pass


class DecryptionFailedError(ValueError):
    pass


class Crypt:
    """Encrypts and decrypts message data with a global key + pin."""

    def __init__(self, key: bytes):
        if isinstance(key, str):
            key = key.encode('utf-8')
        self.key = key

    def _full_key(self, pin: str) -> bytes:
        full = self.key + pin.encode('utf-8')
        if len(full) != KEY_SIZE:
            raise InvalidKeyLengthError(
                f"key+pin should be {KEY_SIZE} bytes, got {len(full)}"
            )
        return full

    def encrypt(self, data: bytes, pin: str) -> bytes:
        """
        Encrypt data with the key derived from the pin.

        Args:
            data: Plaintext bytes (may be empty)
            pin: User pin, completes the sign key to KEY_SIZE bytes

        Returns:
            nonce(12) + ciphertext + tag(16)
        """
        key = self._full_key(pin)
        nonce = os.urandom(NONCE_SIZE)
        return nonce + AESGCM(key).encrypt(nonce, data, None)

    def decrypt(self, data: bytes, pin: str) -> bytes:
        """
        Decrypt a blob produced by encrypt().

        Raises:
            InvalidKeyLengthError: If key+pin is not KEY_SIZE bytes
            DecryptionFailedError: Wrong pin, tampered or truncated data.
                The three cases are deliberately indistinguishable.
        """
        key = self._full_key(pin)
        if len(data) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionFailedError("decryption failed")
        try:
            return AESGCM(key).decrypt(data[:NONCE_SIZE], data[NONCE_SIZE:], None)
        except InvalidTag:
            raise DecryptionFailedError("decryption failed") from None


def derive_sign_key(secret: str, pin_size: int) -> bytes:
    """
    Fit an operator secret of any length to KEY_SIZE - pin_size bytes.

    Long secrets are truncated, short ones repeated.
    """
    if not secret:
        raise ValueError("sign key must not be empty")
    size = KEY_SIZE - pin_size
    if size <= 0:
        raise ValueError(f"pin size must be below {KEY_SIZE}, got {pin_size}")

    raw = secret.encode('utf-8')
    if len(raw) >= size:
        return raw[:size]
    return (raw * (size // len(raw) + 1))[:size]
