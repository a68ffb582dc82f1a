"""
Secret box cho connection credentials: AES-256-GCM, nonce 12 byte ngẫu nhiên.
Ciphertext format: base64(iv):base64(tag):base64(data).
"""
import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from spend_ledger.errors import DecryptError

NONCE_BYTES = 12
TAG_BYTES = 16


class SecretBox:
    """Encrypt/decrypt credential strings with the process-wide ENCRYPTION_KEY."""

    def __init__(self, key_b64: str) -> None:
        key = base64.b64decode(key_b64)
        if len(key) != 32:
            raise ValueError("ENCRYPTION_KEY must be 32 bytes base64-encoded")
        self._aead = AESGCM(key)

    def encrypt(self, plain: str) -> str:
        iv = os.urandom(NONCE_BYTES)
        sealed = self._aead.encrypt(iv, plain.encode("utf-8"), None)
        data, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return ":".join(base64.b64encode(part).decode("ascii") for part in (iv, tag, data))

    def decrypt(self, payload: str) -> str:
        """Raises DecryptError on malformed payload, wrong key or tampered data."""
        parts = (payload or "").split(":")
        if len(parts) != 3 or not all(parts):
            raise DecryptError("Invalid encrypted payload format")
        try:
            iv, tag, data = (base64.b64decode(part, validate=True) for part in parts)
        except (binascii.Error, ValueError) as e:
            raise DecryptError("Invalid encrypted payload encoding") from e
        try:
            plain = self._aead.decrypt(iv, data + tag, None)
        except (InvalidTag, ValueError) as e:
            raise DecryptError("Encrypted payload failed authentication") from e
        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptError("Decrypted payload is not UTF-8") from e
