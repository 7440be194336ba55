"""
At-rest encryption for substituted template values.

AES-256-GCM with a fresh 12-byte nonce per call. Stored form is
base64(nonce || ciphertext || tag). The key is configured once at startup
(``ENCRYPTION_KEY``, 64 hex characters) and never read again afterwards.
"""

import base64
import binascii
import json
import logging
import os
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import DecryptionError, EncryptionConfigError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


class Encryptor:
    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
            raise EncryptionConfigError()
        self._aead = AESGCM(bytes(key))

    @classmethod
    def from_hex(cls, hex_key: Optional[str]) -> "Encryptor":
        if not hex_key:
            raise EncryptionConfigError("ENCRYPTION_KEY environment variable required")
        try:
            key = bytes.fromhex(hex_key.strip())
        except ValueError:
            raise EncryptionConfigError()
        return cls(key)

    def encrypt(self, data: Dict[str, Any]) -> str:
        plaintext = json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, plaintext, None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> Dict[str, Any]:
        try:
            combined = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError, TypeError):
            raise DecryptionError()
        if len(combined) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionError()
        nonce, ciphertext = combined[:NONCE_SIZE], combined[NONCE_SIZE:]
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise DecryptionError()
        try:
            data = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise DecryptionError()
        if not isinstance(data, dict):
            raise DecryptionError()
        return data


_encryptor: Optional[Encryptor] = None


def init_encryptor(hex_key: Optional[str]) -> Encryptor:
    global _encryptor
    _encryptor = Encryptor.from_hex(hex_key)
    logger.info("Encryption key loaded")
    return _encryptor


def get_encryptor() -> Encryptor:
    if _encryptor is None:
        raise EncryptionConfigError("Encryption has not been initialised")
    return _encryptor
