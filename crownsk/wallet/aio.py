"""
Async facade over `WalletManager`.

Key derivation is deliberately slow, so the mutating operations run in a
worker thread instead of on the event loop. A cancelled caller stops waiting,
but the operation itself always runs to completion under the manager lock.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Union

from .manager import SecretInput, WalletManager, WalletState, WalletStatus


class AsyncWalletManager:
    def __init__(self, manager: Optional[WalletManager] = None):
        self.manager = manager or WalletManager()

    async def _run(self, func, *args):
        # shield: cancellation must not leave a half-finished derivation or write
        return await asyncio.shield(asyncio.to_thread(func, *args))

    async def create(self, private_key: SecretInput, password: SecretInput) -> str:
        return await self._run(self.manager.create, private_key, password)

    async def unlock(self, password: SecretInput) -> str:
        return await self._run(self.manager.unlock, password)

    async def rotate(self, new_private_key: SecretInput, password: SecretInput) -> str:
        return await self._run(self.manager.rotate, new_private_key, password)

    async def change_password(self, old_password: SecretInput, new_password: SecretInput) -> None:
        await self._run(self.manager.change_password, old_password, new_password)

    async def delete(self) -> bool:
        return await self._run(self.manager.delete)

    def lock(self) -> bool:
        return self.manager.lock()

    @property
    def state(self) -> WalletState:
        return self.manager.state

    def status(self) -> WalletStatus:
        return self.manager.status()

    def has_credential(self) -> bool:
        return self.manager.has_credential()

    def vault_exists_on_disk(self) -> bool:
        return self.manager.vault_exists_on_disk()

    def current_identity(self) -> Optional[str]:
        return self.manager.current_identity()

    def request_signature(self, payload: Union[str, bytes, Mapping[str, Any]]) -> Any:
        return self.manager.request_signature(payload)
