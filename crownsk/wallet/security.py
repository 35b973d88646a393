"""
AES-GCM and PBKDF2 helpers for encrypting private keys at rest.

The vault key is derived from the user password with PBKDF2-HMAC-SHA256 and a
per-vault salt. Each encryption draws a fresh random nonce, so the salt may be
reused across password changes while nonces never repeat under one key.
"""

from __future__ import annotations

import base64
import binascii
import os
from dataclasses import dataclass
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import AuthenticationError, MalformedRecordError

KEY_LENGTH = 32
SALT_LENGTH = 32
NONCE_LENGTH = 16
TAG_LENGTH = 16
KDF_ITERATIONS = 100_000

_FIELD_SEPARATOR = b":"

BytesLike = Union[bytes, bytearray, memoryview]


def generate_salt() -> bytes:
    """Return a fresh random salt for a new vault."""
    return os.urandom(SALT_LENGTH)


def derive_key(password: Union[str, BytesLike], salt: bytes) -> bytes:
    """Derive a 32-byte symmetric key from the password using PBKDF2-HMAC-SHA256."""
    secret = password.encode("utf-8") if isinstance(password, str) else bytes(password)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(secret)


def _b64_field(raw: bytes, name: str) -> bytes:
    try:
        decoded = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedRecordError(f"Encrypted record field '{name}' is not valid base64.") from exc
    # Reject non-canonical encodings so that every stored byte is significant.
    if base64.b64encode(decoded) != raw:
        raise MalformedRecordError(f"Encrypted record field '{name}' is not canonically encoded.")
    return decoded


@dataclass(frozen=True)
class EncryptedRecord:
    """Nonce, authentication tag and ciphertext of one encryption."""

    nonce: bytes
    tag: bytes
    ciphertext: bytes

    def to_bytes(self) -> bytes:
        """Serialize as `base64(nonce):base64(tag):base64(ciphertext)`."""
        return _FIELD_SEPARATOR.join(
            base64.b64encode(part) for part in (self.nonce, self.tag, self.ciphertext)
        )

    @classmethod
    def from_bytes(cls, payload: BytesLike) -> "EncryptedRecord":
        parts = bytes(payload).split(_FIELD_SEPARATOR)
        if len(parts) != 3:
            raise MalformedRecordError("Invalid encrypted data format.")

        nonce = _b64_field(parts[0], "nonce")
        tag = _b64_field(parts[1], "tag")
        ciphertext = _b64_field(parts[2], "ciphertext")
        if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            raise MalformedRecordError("Encrypted record is malformed or truncated.")
        return cls(nonce=nonce, tag=tag, ciphertext=ciphertext)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"EncryptedRecord(ciphertext_len={len(self.ciphertext)})"


def _cipher(key: BytesLike) -> AESGCM:
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Encryption key must be {KEY_LENGTH} bytes.")
    return AESGCM(bytes(key))


def encrypt(plaintext: BytesLike, key: BytesLike) -> EncryptedRecord:
    """
    Encrypt `plaintext` with AES-256-GCM under `key`.

    A new random 128-bit nonce is generated on every call.
    """
    nonce = os.urandom(NONCE_LENGTH)
    sealed = _cipher(key).encrypt(nonce, bytes(plaintext), None)
    return EncryptedRecord(
        nonce=nonce,
        tag=sealed[-TAG_LENGTH:],
        ciphertext=sealed[:-TAG_LENGTH],
    )


def decrypt(record: EncryptedRecord, key: BytesLike) -> bytes:
    """
    Decrypt a record produced by `encrypt`.

    Raises:
        AuthenticationError: If the tag does not verify (wrong key or tampering).
    """
    try:
        return _cipher(key).decrypt(record.nonce, record.ciphertext + record.tag, None)
    except InvalidTag as exc:
        raise AuthenticationError("Encrypted record failed authentication.") from exc
