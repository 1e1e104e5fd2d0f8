# tests/test_dispatch.py
from __future__ import annotations

import pytest

from stakepool.ledger.constants import ONE_YEAR, UINT256_MAX
from stakepool.runtime.bootstrap import World, bootstrap_world
from stakepool.runtime.deploy_config import parse_deployment_config
from stakepool.runtime.dispatch import SUPPORTED_TX_TYPES, TxEnvelope, apply_tx
from stakepool.runtime.errors import (
    ApplyError,
    InvalidParameterError,
    NotFoundError,
    PermissionDeniedError,
    TooSoonError,
    TransferDisabledError,
)
from stakepool.runtime.host import ManualClock


def _mk_world() -> World:
    cfg = parse_deployment_config(
        {
            "mode": "dev",
            "reward_per_second": 10,
            "distributors": ["keeper"],
            "balances": {"MC": {"multisig": 10**12, "alice": 10**6}, "MC-LP": {"bob": 10**6}},
            "approve_reward_source": True,
        }
    )
    return bootstrap_world(cfg, clock=ManualClock())


def _tx(world: World, tx_type: str, sender: str, **payload) -> dict:
    return apply_tx(world, {"tx_type": tx_type, "sender": sender, "payload": payload})


def _stake(world: World) -> None:
    _tx(world, "token_approve", "alice", token="MC", spender="mc-pool", amount=UINT256_MAX)
    _tx(world, "deposit", "alice", pool="mc-pool", amount=1000, duration=ONE_YEAR)
    _tx(world, "token_approve", "bob", token="MC-LP", spender="mc-lp-pool", amount=str(UINT256_MAX))
    _tx(world, "deposit", "bob", pool="mc-lp-pool", amount=1000, duration=0)


def test_envelope_normalizes_fields() -> None:
    env = TxEnvelope.from_json({"tx_type": " Deposit ", "sender": " alice ", "payload": None})
    assert env == TxEnvelope(tx_type="deposit", sender="alice", payload={})
    assert TxEnvelope.from_json(env.to_json()) == env


def test_stake_distribute_and_claim_through_dispatch() -> None:
    world = _mk_world()
    _stake(world)
    assert world.pool("mc-pool").balance_of("alice") == 2000

    mc = world.token("MC")
    before = mc.balance_of("mc-pool")
    world.host.clock.advance(100)
    out = _tx(world, "distribute_rewards", "keeper")
    assert out == {"applied": "distribute_rewards", "amount": 1000}
    # mc-pool also holds alice's MC principal
    assert before == 1000
    assert mc.balance_of("mc-pool") - before == 200
    assert world.token("MC").balance_of("mc-lp-pool") == 800

    claim = _tx(world, "claim_rewards", "alice", pool="mc-pool")
    assert claim["liquid"] == 0
    assert claim["escrowed"] > 0
    [locked] = world.pool("escrow-pool").get_deposits_of("alice")
    assert locked.amount == claim["escrowed"]
    assert locked.duration == ONE_YEAR


def test_withdraw_and_receiver_defaults() -> None:
    world = _mk_world()
    _stake(world)
    with pytest.raises(TooSoonError):
        _tx(world, "withdraw", "alice", pool="mc-pool", deposit_id=0)

    world.host.clock.advance(ONE_YEAR)
    out = _tx(world, "withdraw", "alice", pool="mc-pool", deposit_id=0, receiver="carol")
    assert out["amount"] == 1000
    assert world.token("MC").balance_of("carol") == 1000


def test_governance_txs() -> None:
    world = _mk_world()
    assert _tx(world, "set_reward_per_second", "deployer", reward_per_second=7)["reward_per_second"] == 7
    assert _tx(world, "adjust_weight", "deployer", pool_id=0, weight=5)["weight"] == 5
    assert _tx(world, "remove_pool", "deployer", pool_id=0) == {"applied": "remove_pool", "pool": "mc-pool"}
    out = _tx(world, "add_pool", "deployer", pool="mc-pool", weight=1)
    assert out["pool_id"] == 1

    with pytest.raises(PermissionDeniedError):
        _tx(world, "add_pool", "alice", pool="escrow-pool", weight=1)


def test_non_transferable_pool_and_direct_funding() -> None:
    world = _mk_world()
    _stake(world)
    with pytest.raises(TransferDisabledError):
        _tx(world, "transfer", "alice", pool="mc-pool", to="bob", amount=1)

    before = world.token("MC").balance_of("mc-pool")
    _tx(world, "token_approve", "multisig", token="MC", spender="mc-pool", amount=500)
    _tx(world, "distribute_pool_rewards", "multisig", pool="mc-pool", amount=500)
    assert world.token("MC").balance_of("mc-pool") == before + 500
    assert world.pool("mc-pool").withdrawable_rewards_of("alice") >= 499


@pytest.mark.parametrize(
    "tx, err",
    [
        ({"tx_type": "deposit", "sender": "", "payload": {}}, InvalidParameterError),
        ({"tx_type": "mint", "sender": "alice", "payload": {}}, ApplyError),
        ({"tx_type": "deposit", "sender": "alice", "payload": {"pool": "nope", "amount": 1, "duration": 0}}, NotFoundError),
        ({"tx_type": "deposit", "sender": "alice", "payload": {"pool": "mc-pool", "duration": 0}}, InvalidParameterError),
        ({"tx_type": "deposit", "sender": "alice", "payload": {"pool": "mc-pool", "amount": "x", "duration": 0}}, InvalidParameterError),
        ({"tx_type": "deposit", "sender": "alice", "payload": {"pool": "mc-pool", "amount": 1.5, "duration": 0}}, InvalidParameterError),
        ({"tx_type": "deposit", "sender": "alice", "payload": {"pool": "mc-pool", "amount": "1.5", "duration": 0}}, InvalidParameterError),
        ({"tx_type": "withdraw", "sender": "alice", "payload": {"pool": "mc-pool", "deposit_id": 0.0}}, InvalidParameterError),
        ({"tx_type": "token_approve", "sender": "alice", "payload": {"token": "NOPE", "spender": "x", "amount": 1}}, NotFoundError),
    ],
)
def test_rejected_envelopes(tx: dict, err: type) -> None:
    world = _mk_world()
    with pytest.raises(err):
        apply_tx(world, tx)


def test_supported_types_are_listed() -> None:
    assert "deposit" in SUPPORTED_TX_TYPES
    assert "token_approve" in SUPPORTED_TX_TYPES
    assert list(SUPPORTED_TX_TYPES) == sorted(SUPPORTED_TX_TYPES)
