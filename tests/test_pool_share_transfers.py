# tests/test_pool_share_transfers.py
from __future__ import annotations

import pytest

from stakepool.engine.pool import PoolParams, TimeLockedPool
from stakepool.ledger.constants import BASE, ONE_YEAR, UINT256_MAX
from stakepool.ledger.token import FungibleToken
from stakepool.runtime.errors import TransferDisabledError, TransferFailure
from stakepool.runtime.host import Host, ManualClock


def _mk_pool(*, transferable: bool) -> tuple[Host, TimeLockedPool]:
    host = Host(clock=ManualClock())
    dep = FungibleToken(host, "DEP", minter="admin")
    rew = FungibleToken(host, "REW", minter="admin")
    pool = TimeLockedPool(
        host,
        "pool",
        PoolParams(
            name="Staked DEP",
            symbol="SDEP",
            deposit_token="DEP",
            reward_token="REW",
            max_bonus=BASE,
            max_lock_duration=ONE_YEAR,
            transferable=transferable,
        ),
    )
    dep.mint("alice", 10_000, sender="admin")
    dep.approve("pool", UINT256_MAX, sender="alice")
    rew.mint("funder", 10**12, sender="admin")
    rew.approve("pool", UINT256_MAX, sender="funder")
    pool.deposit(1000, ONE_YEAR, "alice", sender="alice")
    return host, pool


def test_transfer_keeps_past_rewards_with_sender() -> None:
    _host, pool = _mk_pool(transferable=True)
    pool.distribute_rewards(1000, sender="funder")
    alice_before = pool.cumulative_rewards_of("alice")

    pool.transfer("bob", 1000, sender="alice")
    assert pool.balance_of("alice") == 1000
    assert pool.balance_of("bob") == 1000
    assert pool.cumulative_rewards_of("alice") == alice_before
    assert pool.cumulative_rewards_of("bob") == 0

    pool.distribute_rewards(1000, sender="funder")
    assert abs(pool.cumulative_rewards_of("alice") - 1500) <= 2
    assert abs(pool.cumulative_rewards_of("bob") - 500) <= 1


def test_transfer_more_than_balance_fails() -> None:
    _host, pool = _mk_pool(transferable=True)
    with pytest.raises(TransferFailure):
        pool.transfer("bob", 2001, sender="alice")
    assert pool.balance_of("alice") == 2000


def test_transfer_from_spends_allowance() -> None:
    host, pool = _mk_pool(transferable=True)
    pool.approve("bob", 500, sender="alice")
    assert pool.allowance("alice", "bob") == 500

    pool.transfer_from("alice", "carol", 500, sender="bob")
    assert pool.balance_of("carol") == 500
    assert pool.allowance("alice", "bob") == 0

    with pytest.raises(TransferFailure):
        pool.transfer_from("alice", "carol", 1, sender="bob")
    assert len(host.events("shares_transferred")) == 1


def test_unlimited_allowance_is_not_decremented() -> None:
    _host, pool = _mk_pool(transferable=True)
    pool.approve("bob", UINT256_MAX, sender="alice")
    pool.transfer_from("alice", "bob", 700, sender="bob")
    assert pool.allowance("alice", "bob") == UINT256_MAX


def test_non_transferable_pool_rejects_share_movement() -> None:
    _host, pool = _mk_pool(transferable=False)
    with pytest.raises(TransferDisabledError):
        pool.transfer("bob", 1, sender="alice")
    with pytest.raises(TransferDisabledError):
        pool.approve("bob", 1, sender="alice")
    with pytest.raises(TransferDisabledError):
        pool.transfer_from("alice", "bob", 1, sender="bob")
    assert pool.balance_of("alice") == 2000
