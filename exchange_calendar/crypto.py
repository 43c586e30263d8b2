"""Symmetric encryption of stored Exchange credentials.

Credentials are encrypted with Fernet (authenticated AES) before the host
persists them, and decrypted once when a calendar service is created.
"""
from __future__ import annotations

import logging
import os

from cryptography.fernet import Fernet, InvalidToken

from .const import ENV_ENCRYPTION_KEY

_LOGGER = logging.getLogger(__name__)


def get_encryption_key() -> str:
    """Return the process-wide encryption key.

    An unset variable yields an empty key; decrypting with it fails later
    rather than here.
    """
    return os.environ.get(ENV_ENCRYPTION_KEY, "")


def generate_key() -> str:
    """Generate a new key suitable for CALENDAR_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode("utf-8")


def _fernet(key: str) -> Fernet:
    # Fernet raises ValueError for keys that are not 32 url-safe base64 bytes
    return Fernet(key.encode("utf-8"))


def symmetric_encrypt(plaintext: str, key: str) -> str:
    """Encrypt plaintext, returning a url-safe token string."""
    return _fernet(key).encrypt(plaintext.encode("utf-8")).decode("utf-8")


def symmetric_decrypt(ciphertext: str, key: str) -> str:
    """Decrypt a token produced by symmetric_encrypt.

    Raises ValueError for a malformed key or a token that does not verify.
    """
    try:
        return _fernet(key).decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken as err:
        _LOGGER.debug("Credential token failed verification")
        raise ValueError("Invalid credential token") from err
