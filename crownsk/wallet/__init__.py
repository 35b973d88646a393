"""
Wallet module for local private-key custody.

This module provides:
- WalletManager: create/unlock/rotate/change-password/delete lifecycle
- AsyncWalletManager: the same lifecycle off the event loop
- WalletSession: in-memory holder of the unlocked key (bytearray, wipeable)
- VaultStore: owner-only vault files with atomic writes and secure delete
- derive_key / encrypt / decrypt: PBKDF2-HMAC-SHA256 + AES-256-GCM primitives
"""

from .aio import AsyncWalletManager
from .config import WalletSettings
from .errors import (
    AlreadyExistsError,
    AuthenticationError,
    CredentialUnavailableError,
    InvalidPasswordError,
    MalformedRecordError,
    NotFoundError,
    StorageError,
    ValidationError,
    WalletConfigurationError,
    WalletError,
)
from .manager import WalletManager, WalletState, WalletStatus
from .security import EncryptedRecord, decrypt, derive_key, encrypt, generate_salt
from .session import WalletSession
from .store import VaultStore

__all__ = [
    # Lifecycle
    "WalletManager",
    "AsyncWalletManager",
    "WalletState",
    "WalletStatus",
    "WalletSettings",
    # Building blocks
    "WalletSession",
    "VaultStore",
    "EncryptedRecord",
    "derive_key",
    "encrypt",
    "decrypt",
    "generate_salt",
    # Errors
    "WalletError",
    "ValidationError",
    "AlreadyExistsError",
    "NotFoundError",
    "InvalidPasswordError",
    "StorageError",
    "CredentialUnavailableError",
    "WalletConfigurationError",
    "AuthenticationError",
    "MalformedRecordError",
]
