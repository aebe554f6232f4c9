"""AES-256-GCM encryption of the sensitive payload."""

import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import Any, Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import EncryptionKeyError


IV_LENGTH = 12
KEY_LENGTH = 32
TAG_LENGTH = 16


@dataclass(frozen=True)
class EncryptedPayload:
    """Ciphertext envelope; every field is base64."""
    data: str
    iv: str
    tag: str

    def to_dict(self) -> dict:
        return {'data': self.data, 'iv': self.iv, 'tag': self.tag}


def _decode_key(key_b64: str) -> bytes:
    try:
        key = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncryptionKeyError(f"Invalid encryption key: not base64 ({e})") from e
    if len(key) != KEY_LENGTH:
        raise EncryptionKeyError(
            f"Invalid encryption key: expected {KEY_LENGTH} bytes, got {len(key)}"
        )
    return key


def encrypt(data: Any, key_b64: str) -> EncryptedPayload:
    """
    Encrypt a JSON-serializable object with AES-256-GCM.

    Args:
        data: Object to encrypt (serialized as compact JSON)
        key_b64: Base64 of a 32-byte key

    Returns:
        EncryptedPayload with ciphertext, random 12-byte IV and auth tag

    Raises:
        EncryptionKeyError: If the key is malformed
    """
    key = _decode_key(key_b64)
    iv = os.urandom(IV_LENGTH)

    plaintext = json.dumps(data, separators=(',', ':'), ensure_ascii=False).encode('utf-8')
    # AESGCM appends the tag to the ciphertext
    sealed = AESGCM(key).encrypt(iv, plaintext, None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return EncryptedPayload(
        data=base64.b64encode(ciphertext).decode('ascii'),
        iv=base64.b64encode(iv).decode('ascii'),
        tag=base64.b64encode(tag).decode('ascii'),
    )


def decrypt(payload: EncryptedPayload, key_b64: str) -> Any:
    """Reverse of ``encrypt``; raises ``cryptography.exceptions.InvalidTag`` on tampering."""
    key = _decode_key(key_b64)
    sealed = base64.b64decode(payload.data) + base64.b64decode(payload.tag)
    plaintext = AESGCM(key).decrypt(base64.b64decode(payload.iv), sealed, None)
    return json.loads(plaintext.decode('utf-8'))


def is_valid_encryption_key(key_b64: Optional[str]) -> bool:
    """Check that a key is base64 and decodes to 32 bytes."""
    if not key_b64:
        return False
    try:
        _decode_key(key_b64)
    except EncryptionKeyError:
        return False
    return True
