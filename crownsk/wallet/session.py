"""
In-memory session holding the unlocked private key.

Security model:
- The key is stored in a mutable `bytearray` so it can be zero-filled on
  `clear()` or when it is replaced.
- Consumers get the account address, signatures, or a short-lived signing
  account inside a `with` block. The raw key is never returned.
- All operations are serialized with a reentrant lock.

Limitations:
- CPython may hold other copies of the key (immutable `bytes` created while
  decrypting or building an `eth_account` account, freed-but-not-cleared
  memory, swap). Wiping is a best-effort mitigation, not a guarantee.

Usage:
    session = WalletSession()
    address = session.set(raw_key_bytes)

    signed = session.sign_message("hello")

    with session.signing_account() as account:
        web3_client.send(account)

    session.clear()
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from .errors import CredentialUnavailableError, ValidationError

PRIVATE_KEY_BYTES = 32


class WalletSession:
    """
    Holder of the decrypted private key for the lifetime of an unlock.

    Unlike a process-wide singleton, each `WalletManager` owns its own session,
    so tests and callers can create isolated sessions freely.
    """

    def __init__(self) -> None:
        self._key: Optional[bytearray] = None
        self._address: Optional[str] = None
        self._lock = threading.RLock()

    def set(self, private_key: Union[bytes, bytearray, memoryview]) -> str:
        """
        Store a raw 32-byte private key and return its checksummed address.

        Any previously held key is wiped first.
        """
        data = bytearray(private_key)
        if len(data) != PRIVATE_KEY_BYTES:
            self._zero_fill(data)
            raise ValidationError(f"Private key must be {PRIVATE_KEY_BYTES} bytes.")

        try:
            address = Account.from_key(bytes(data)).address
        except Exception as exc:
            self._zero_fill(data)
            raise ValidationError("Private key is not a valid secp256k1 key.") from exc

        with self._lock:
            if self._key is not None:
                self._zero_fill(self._key)
            self._key = data
            self._address = address
        return address

    @property
    def address(self) -> Optional[str]:
        with self._lock:
            return self._address

    def get_identity(self) -> Optional[str]:
        """Return the account address, or None when no key is loaded."""
        return self.address

    def has_key(self) -> bool:
        with self._lock:
            return self._key is not None

    @contextmanager
    def key_material(self) -> Iterator[bytearray]:
        """
        Yield a temporary copy of the raw key, zero-filled when the block exits.

        Reserved for the wallet package (re-encryption on password change).
        """
        with self._lock:
            if self._key is None:
                raise CredentialUnavailableError("No wallet is unlocked.")
            copy = bytearray(self._key)
        try:
            yield copy
        finally:
            self._zero_fill(copy)

    @contextmanager
    def signing_account(self) -> Iterator[LocalAccount]:
        """
        Yield an `eth_account` account usable for signing inside the block.

        Example:
            with session.signing_account() as account:
                signed = account.sign_transaction(tx)
        """
        account: Optional[LocalAccount] = None
        try:
            with self.key_material() as key:
                account = Account.from_key(bytes(key))
            yield account
        finally:
            del account

    def sign_message(self, message: Union[str, bytes]) -> Any:
        """Sign an EIP-191 personal message and return the `SignedMessage`."""
        if isinstance(message, str):
            signable = encode_defunct(text=message)
        elif isinstance(message, (bytes, bytearray)):
            signable = encode_defunct(primitive=bytes(message))
        else:
            raise TypeError("sign_message expects str or bytes.")
        with self.signing_account() as account:
            return account.sign_message(signable)

    def sign_transaction(self, transaction: Mapping[str, Any]) -> Any:
        """Sign a transaction dict and return the `SignedTransaction`."""
        with self.signing_account() as account:
            return account.sign_transaction(dict(transaction))

    def clear(self) -> bool:
        """
        Wipe the key and forget the address.

        Returns:
            True if a key was held and has been wiped, False otherwise.
        """
        with self._lock:
            key = self._key
            self._key = None
            self._address = None
            if key is None:
                return False
            self._zero_fill(key)
            return True

    @staticmethod
    def _zero_fill(buf: bytearray) -> None:
        """Zero-fill a bytearray in-place (best effort, see module docstring)."""
        for i in range(len(buf)):
            buf[i] = 0

    def __repr__(self) -> str:
        with self._lock:
            return f"<WalletSession address={self._address!r} unlocked={self._key is not None}>"
