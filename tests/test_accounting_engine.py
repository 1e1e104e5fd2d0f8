# tests/test_accounting_engine.py
from __future__ import annotations

from typing import Dict

import pytest

from stakepool.engine.accounting import RewardAccountingEngine
from stakepool.ledger.constants import POINTS_MULTIPLIER
from stakepool.runtime.errors import ArithmeticOverflowError, ZeroSharesError
from stakepool.runtime.host import Host, ManualClock


def _mk_engine() -> tuple[RewardAccountingEngine, Dict[str, int], Host]:
    host = Host(clock=ManualClock())
    shares: Dict[str, int] = {}
    eng = RewardAccountingEngine(
        host,
        "pool",
        shares_of=lambda a: shares.get(a, 0),
        total_shares=lambda: sum(shares.values()),
    )
    return eng, shares, host


def _mint(eng: RewardAccountingEngine, shares: Dict[str, int], acct: str, amount: int) -> None:
    shares[acct] = shares.get(acct, 0) + amount
    eng.correct_on_shares_change(acct, -amount)


def _burn(eng: RewardAccountingEngine, shares: Dict[str, int], acct: str, amount: int) -> None:
    shares[acct] = shares.get(acct, 0) - amount
    eng.correct_on_shares_change(acct, amount)


def test_distribute_requires_outstanding_shares() -> None:
    eng, _shares, _host = _mk_engine()
    with pytest.raises(ZeroSharesError):
        eng.distribute(100, sender="funder")


def test_distribute_zero_is_noop() -> None:
    eng, shares, host = _mk_engine()
    _mint(eng, shares, "alice", 100)
    eng.distribute(0, sender="funder")
    assert eng.points_per_share == 0
    assert host.events("rewards_distributed") == []


def test_late_minter_does_not_share_earlier_distribution() -> None:
    eng, shares, _host = _mk_engine()
    _mint(eng, shares, "alice", 100)
    eng.distribute(1000, sender="funder")
    assert eng.points_per_share == 10 * POINTS_MULTIPLIER

    _mint(eng, shares, "bob", 100)
    assert eng.cumulative_rewards_of("alice") == 1000
    assert eng.cumulative_rewards_of("bob") == 0

    eng.distribute(2000, sender="funder")
    assert eng.cumulative_rewards_of("alice") == 2000
    assert eng.cumulative_rewards_of("bob") == 1000


def test_burn_keeps_historical_entitlement() -> None:
    eng, shares, _host = _mk_engine()
    _mint(eng, shares, "alice", 100)
    _mint(eng, shares, "bob", 100)
    eng.distribute(2000, sender="funder")

    _burn(eng, shares, "alice", 100)
    assert eng.cumulative_rewards_of("alice") == 1000

    eng.distribute(500, sender="funder")
    assert eng.cumulative_rewards_of("alice") == 1000
    assert eng.cumulative_rewards_of("bob") == 1500


def test_transfer_correction_moves_only_future_rewards() -> None:
    eng, shares, _host = _mk_engine()
    _mint(eng, shares, "alice", 200)
    eng.distribute(2000, sender="funder")

    shares["alice"] -= 100
    shares["bob"] = 100
    eng.correct_on_transfer("alice", "bob", 100)
    assert eng.cumulative_rewards_of("alice") == 2000
    assert eng.cumulative_rewards_of("bob") == 0

    eng.distribute(2000, sender="funder")
    assert eng.cumulative_rewards_of("alice") == 3000
    assert eng.cumulative_rewards_of("bob") == 1000


def test_prepare_collect_books_withdrawal_once() -> None:
    eng, shares, host = _mk_engine()
    _mint(eng, shares, "alice", 100)
    eng.distribute(700, sender="funder")

    assert eng.prepare_collect("alice") == 700
    assert eng.withdrawn_rewards_of("alice") == 700
    assert eng.withdrawable_rewards_of("alice") == 0
    assert len(host.events("rewards_withdrawn")) == 1

    assert eng.prepare_collect("alice") == 0
    assert len(host.events("rewards_withdrawn")) == 1


def test_negative_points_are_rejected() -> None:
    eng, shares, _host = _mk_engine()
    _mint(eng, shares, "alice", 100)
    eng.distribute(1000, sender="funder")
    # A correction with no matching balance leaves points below zero.
    eng.correct_on_shares_change("mallory", -5)
    with pytest.raises(ArithmeticOverflowError):
        eng.cumulative_rewards_of("mallory")


def test_withdrawable_is_monotonic_without_share_changes() -> None:
    eng, shares, _host = _mk_engine()
    _mint(eng, shares, "alice", 3)
    _mint(eng, shares, "bob", 7)
    prev = {"alice": 0, "bob": 0}
    for amount in (1, 5, 13, 0, 999, 2):
        eng.distribute(amount, sender="funder")
        for acct in prev:
            cur = eng.withdrawable_rewards_of(acct)
            assert cur >= prev[acct]
            prev[acct] = cur
