"""
Wallet manager: the public lifecycle of the encrypted private-key vault.

States:
    NO_VAULT  -> create()            -> UNLOCKED
    LOCKED    -> unlock()            -> UNLOCKED
    UNLOCKED  -> lock()              -> LOCKED
    any       -> delete()            -> NO_VAULT

SECURITY: only addresses, paths and operation names are ever logged.
"""

from __future__ import annotations

import binascii
import logging
import re
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from eth_account import Account
from pydantic import BaseModel, Field, SecretStr

from .config import WalletSettings
from .errors import (
    AlreadyExistsError,
    AuthenticationError,
    CredentialUnavailableError,
    InvalidPasswordError,
    MalformedRecordError,
    NotFoundError,
    ValidationError,
)
from .security import EncryptedRecord, decrypt, derive_key, encrypt, generate_salt
from .session import WalletSession
from .store import VaultStore

logger = logging.getLogger(__name__)

_PRIVATE_KEY_PATTERN = re.compile(r"0x[a-fA-F0-9]{64}")
_PLAINTEXT_KEY_PATTERN = re.compile(rb"0x[a-fA-F0-9]{64}")

_INVALID_PASSWORD_MESSAGE = "Incorrect password, or the wallet file is damaged. Re-enter the password and try again."
_NO_WALLET_MESSAGE = 'No wallet found. Use "set" to add your private key.'
_LOCKED_MESSAGE = 'No wallet is unlocked. Run "unlock" with your password first.'

SecretInput = Union[str, SecretStr]


class WalletState(str, Enum):
    """Lifecycle state of the wallet vault"""
    NO_VAULT = "no_vault"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class WalletStatus(BaseModel):
    """Snapshot of the wallet for display; never contains secrets"""
    state: WalletState = Field(..., description="Current lifecycle state")
    address: Optional[str] = Field(None, description="Checksummed address when unlocked")
    vault_path: str = Field(..., description="Location of the encrypted wallet file")
    vault_exists: bool = Field(False, description="Whether the wallet file is on disk")


def _as_secret(value: SecretInput) -> SecretStr:
    if isinstance(value, SecretStr):
        return value
    if isinstance(value, str):
        return SecretStr(value)
    raise ValidationError("Secrets must be given as text.")


def _zero_fill(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0


def _encode_key(key: bytearray) -> bytearray:
    """Return the `0x`-prefixed hex form of a raw key as a wipeable buffer."""
    return bytearray(b"0x") + bytearray(binascii.hexlify(key))


def _decode_key(plaintext: bytes) -> bytearray:
    if not _PLAINTEXT_KEY_PATTERN.fullmatch(plaintext):
        raise MalformedRecordError("Decrypted payload is not a private key.")
    return bytearray(binascii.unhexlify(plaintext[2:]))


class WalletManager:
    """
    Create, unlock, rotate and remove the locally stored wallet.

    Every mutating operation holds one reentrant lock, so concurrent callers in
    the same process observe a consistent vault and session.
    """

    def __init__(
        self,
        settings: Optional[WalletSettings] = None,
        store: Optional[VaultStore] = None,
        session: Optional[WalletSession] = None,
    ):
        self.settings = settings or WalletSettings.load()
        self.store = store or VaultStore(self.settings.home, wipe_passes=self.settings.wipe_passes)
        self.session = session if session is not None else WalletSession()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_password(self, password: SecretStr) -> None:
        minimum = self.settings.min_password_length
        if len(password.get_secret_value()) < minimum:
            raise ValidationError(f"Password must be at least {minimum} characters.")

    def _parse_private_key(self, private_key: SecretInput) -> bytearray:
        """Validate the `0x` + 64 hex format and return the raw key bytes."""
        candidate = _as_secret(private_key).get_secret_value().strip()
        if not _PRIVATE_KEY_PATTERN.fullmatch(candidate):
            raise ValidationError("Invalid private key format. Must be 0x followed by 64 hex characters.")
        key = bytearray.fromhex(candidate[2:])
        try:
            Account.from_key(bytes(key))
        except Exception as exc:
            _zero_fill(key)
            raise ValidationError("Private key is outside the valid secp256k1 range.") from exc
        return key

    # ------------------------------------------------------------------
    # Internal steps (caller holds the lock)
    # ------------------------------------------------------------------

    def _persist(self, key: bytearray, password: SecretStr, salt: bytes) -> None:
        derived = derive_key(password.get_secret_value(), salt)
        plaintext = _encode_key(key)
        try:
            record = encrypt(plaintext, derived)
        finally:
            _zero_fill(plaintext)
        self.store.write_blob(record.to_bytes())

    def _create_new(self, key: bytearray, password: SecretStr) -> str:
        self.store.ensure_directory()
        if self.store.salt_exists():
            logger.warning("Discarding salt left without a wallet file in %s", self.store.home)
            self.store.secure_delete()
        salt = self.store.write_salt_if_absent(generate_salt())
        self._persist(key, password, salt)
        return self.session.set(key)

    def _open(self, password: SecretStr) -> bytearray:
        if not self.store.blob_exists():
            raise NotFoundError(_NO_WALLET_MESSAGE)
        payload = self.store.read_blob()
        try:
            salt = self.store.read_salt()
            record = EncryptedRecord.from_bytes(payload)
            plaintext = decrypt(record, derive_key(password.get_secret_value(), salt))
            return _decode_key(plaintext)
        except (NotFoundError, MalformedRecordError, AuthenticationError) as exc:
            logger.debug("Wallet could not be opened (%s)", exc.__class__.__name__)
            raise InvalidPasswordError(_INVALID_PASSWORD_MESSAGE) from None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create(self, private_key: SecretInput, password: SecretInput) -> str:
        """
        Encrypt and store a new private key, leaving the wallet unlocked.

        Raises:
            ValidationError: Bad password or key format (no file is touched).
            AlreadyExistsError: A wallet already exists; use `rotate`.
        """
        secret = _as_secret(password)
        self._validate_password(secret)
        key = self._parse_private_key(private_key)
        try:
            with self._lock:
                if self.store.blob_exists():
                    raise AlreadyExistsError('A wallet already exists. Use "rotate" to replace it.')
                address = self._create_new(key, secret)
        finally:
            _zero_fill(key)
        logger.info("Wallet saved: %s", address)
        return address

    def unlock(self, password: SecretInput) -> str:
        """Decrypt the stored key into the session and return its address."""
        secret = _as_secret(password)
        with self._lock:
            key = self._open(secret)
            try:
                address = self.session.set(key)
            finally:
                _zero_fill(key)
        logger.info("Wallet unlocked: %s", address)
        return address

    def rotate(self, new_private_key: SecretInput, password: SecretInput) -> str:
        """Securely remove the current vault and store a new key under a fresh salt."""
        secret = _as_secret(password)
        self._validate_password(secret)
        key = self._parse_private_key(new_private_key)
        try:
            with self._lock:
                self.store.secure_delete()
                self.session.clear()
                address = self._create_new(key, secret)
        finally:
            _zero_fill(key)
        logger.info("Wallet rotated: %s", address)
        return address

    def change_password(self, old_password: SecretInput, new_password: SecretInput) -> None:
        """Re-encrypt the stored key under a new password, keeping the salt."""
        old_secret = _as_secret(old_password)
        new_secret = _as_secret(new_password)
        self._validate_password(new_secret)
        with self._lock:
            self.unlock(old_secret)
            salt = self.store.read_salt()
            with self.session.key_material() as key:
                self._persist(key, new_secret, salt)
        logger.info("Wallet password changed for %s", self.session.address)

    def delete(self) -> bool:
        """
        Securely remove the vault and clear the session.

        Returns:
            bool: False when there was nothing on disk to remove.
        """
        with self._lock:
            try:
                removed = self.store.secure_delete()
            finally:
                self.session.clear()
        if removed:
            logger.info("Wallet removed")
        return removed

    def lock(self) -> bool:
        """Forget the decrypted key; the vault on disk is untouched."""
        with self._lock:
            return self.session.clear()

    # ------------------------------------------------------------------
    # Queries and signing boundary
    # ------------------------------------------------------------------

    @property
    def state(self) -> WalletState:
        with self._lock:
            if self.session.has_key():
                return WalletState.UNLOCKED
            if self.store.blob_exists():
                return WalletState.LOCKED
            return WalletState.NO_VAULT

    @property
    def vault_path(self) -> Path:
        return self.store.blob_path

    def status(self) -> WalletStatus:
        with self._lock:
            return WalletStatus(
                state=self.state,
                address=self.session.address,
                vault_path=str(self.vault_path),
                vault_exists=self.store.blob_exists(),
            )

    def has_credential(self) -> bool:
        return self.session.has_key()

    def vault_exists_on_disk(self) -> bool:
        return self.store.blob_exists()

    def current_identity(self) -> Optional[str]:
        return self.session.get_identity()

    def request_signature(self, payload: Union[str, bytes, Mapping[str, Any]]) -> Any:
        """
        Sign `payload` with the unlocked key.

        Text and bytes are signed as EIP-191 personal messages; a mapping is
        signed as a transaction. The key itself is never returned.

        Raises:
            CredentialUnavailableError: If the wallet is locked.
        """
        if not self.session.has_key():
            raise CredentialUnavailableError(_LOCKED_MESSAGE)
        if isinstance(payload, Mapping):
            return self.session.sign_transaction(payload)
        if isinstance(payload, (str, bytes, bytearray)):
            return self.session.sign_message(payload)
        raise TypeError("request_signature expects str, bytes, or a transaction mapping.")
