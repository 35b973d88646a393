import asyncio

import pytest
from eth_account import Account

from crownsk.wallet import AsyncWalletManager, InvalidPasswordError, WalletManager, WalletSettings, WalletState

KEY = "0x" + "3" * 64
ADDRESS = Account.from_key(KEY).address


@pytest.fixture
def wallet(tmp_path):
    return AsyncWalletManager(WalletManager(settings=WalletSettings(home=tmp_path / "vault")))


@pytest.mark.asyncio
async def test_async_lifecycle(wallet):
    assert await wallet.create(KEY, "longpassword1") == ADDRESS
    assert wallet.state is WalletState.UNLOCKED

    assert wallet.lock() is True
    with pytest.raises(InvalidPasswordError):
        await wallet.unlock("wrongpass")
    assert await wallet.unlock("longpassword1") == ADDRESS

    await wallet.change_password("longpassword1", "newlongpass2")
    assert await wallet.rotate("0x" + "4" * 64, "newlongpass2") == Account.from_key("0x" + "4" * 64).address

    assert await wallet.delete() is True
    assert wallet.vault_exists_on_disk() is False
    assert wallet.status().state is WalletState.NO_VAULT


@pytest.mark.asyncio
async def test_event_loop_stays_responsive_during_key_derivation(wallet):
    ticks = 0

    async def ticker():
        nonlocal ticks
        while True:
            ticks += 1
            await asyncio.sleep(0)

    task = asyncio.create_task(ticker())
    try:
        await wallet.create(KEY, "longpassword1")
    finally:
        task.cancel()

    assert ticks > 1
    assert wallet.has_credential() is True
    assert wallet.current_identity() == ADDRESS


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_interrupt_operation(wallet):
    task = asyncio.create_task(wallet.create(KEY, "longpassword1"))
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    # the worker thread finishes the create under the manager lock
    for _ in range(500):
        if wallet.has_credential():
            break
        await asyncio.sleep(0.01)
    assert wallet.vault_exists_on_disk() is True
    assert wallet.current_identity() == ADDRESS
