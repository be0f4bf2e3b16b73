"""Per-user photo encryption keys and the encrypted blob format.

Blobs are ``MAGIC || nonce || ciphertext+tag`` sealed with AES-256-GCM. The
owning user id is bound as associated data, so a blob copied under another
user's path fails authentication even with a valid key.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from yogaageproof.domain.errors import DecryptionError, ValidationError

KEY_SIZE_BYTES = 32
NONCE_SIZE_BYTES = 12
TAG_SIZE_BYTES = 16
BLOB_MAGIC = b"YAP1"
_HEADER_SIZE = len(BLOB_MAGIC) + NONCE_SIZE_BYTES

_logger = logging.getLogger(__name__)


class KeyStore(Protocol):
    """Interface for on-device key persistence."""

    def get_key(self, user_id: str) -> bytes | None:
        """Return the stored key for a user, if any."""

    def set_key(self, user_id: str, key: bytes) -> None:
        """Persist a user's key."""


@dataclass
class KeyManager:
    """Lazily creates and caches one symmetric key per user."""

    store: KeyStore
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)

    async def get_or_create_key(self, user_id: str) -> bytes:
        """Return the user's key, generating and storing it on first use."""
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            key = await asyncio.to_thread(self.store.get_key, user_id)
            if key is not None:
                _check_key(key)
                return key
            key = AESGCM.generate_key(bit_length=KEY_SIZE_BYTES * 8)
            await asyncio.to_thread(self.store.set_key, user_id, key)
            _logger.info("Created encryption key for user %s", user_id)
            return key

    async def get_existing_key(self, user_id: str) -> bytes:
        """Return the user's key without creating one."""
        key = await asyncio.to_thread(self.store.get_key, user_id)
        if key is None:
            raise DecryptionError("No encryption key on this device", user_id=user_id)
        _check_key(key)
        return key


@dataclass(frozen=True)
class PhotoCipher:
    """AES-256-GCM sealing of photo bytes."""

    def encrypt(self, data: bytes, key: bytes, user_id: str) -> bytes:
        _check_key(key)
        nonce = os.urandom(NONCE_SIZE_BYTES)
        sealed = AESGCM(key).encrypt(nonce, data, user_id.encode("utf-8"))
        return BLOB_MAGIC + nonce + sealed

    def decrypt(self, blob: bytes, key: bytes, user_id: str) -> bytes:
        """Open a blob; raises DecryptionError on tampering or a wrong key."""
        _check_key(key)
        if (
            len(blob) < _HEADER_SIZE + TAG_SIZE_BYTES
            or not blob.startswith(BLOB_MAGIC)
        ):
            raise DecryptionError("Encrypted photo has an unknown format")
        nonce = blob[len(BLOB_MAGIC) : _HEADER_SIZE]
        try:
            return AESGCM(key).decrypt(
                nonce, blob[_HEADER_SIZE:], user_id.encode("utf-8")
            )
        except InvalidTag as exc:
            raise DecryptionError(
                "Photo could not be decrypted with this key", user_id=user_id
            ) from exc


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE_BYTES:
        raise ValidationError(f"Encryption key must be {KEY_SIZE_BYTES} bytes")
