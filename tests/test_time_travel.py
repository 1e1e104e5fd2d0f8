# tests/test_time_travel.py
from __future__ import annotations

import pytest

from stakepool.ledger.token import FungibleToken
from stakepool.runtime.host import Host, ManualClock, SystemClock
from stakepool.testing.time_travel import TimeTraveler


def test_snapshot_and_revert_restores_state_and_time() -> None:
    host = Host(clock=ManualClock(start=1000))
    tok = FungibleToken(host, "T", minter="admin")
    tt = TimeTraveler(host)

    tok.mint("a", 10, sender="admin")
    tt.snapshot()

    tt.increase_time(500)
    tok.mint("a", 5, sender="admin")
    assert host.now() == 1500

    tt.revert_snapshot()
    assert host.now() == 1000
    assert tok.balance_of("a") == 10

    # The snapshot survives a revert.
    tok.mint("a", 1, sender="admin")
    tt.revert_snapshot()
    assert tok.balance_of("a") == 10


def test_set_next_timestamp() -> None:
    host = Host(clock=ManualClock(start=1000))
    tt = TimeTraveler(host)
    assert tt.set_next_timestamp(5000) == 5000
    assert host.now() == 5000
    with pytest.raises(ValueError):
        tt.set_next_timestamp(10)


def test_requires_manual_clock() -> None:
    with pytest.raises(TypeError):
        TimeTraveler(Host(clock=SystemClock()))


def test_revert_without_snapshot() -> None:
    tt = TimeTraveler(Host(clock=ManualClock()))
    with pytest.raises(RuntimeError):
        tt.revert_snapshot()
