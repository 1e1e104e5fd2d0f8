# src/stakepool/runtime/dispatch.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict

from stakepool.engine.pool import TimeLockedPool
from stakepool.runtime.bootstrap import World
from stakepool.runtime.errors import ApplyError, InvalidParameterError, NotFoundError

Json = Dict[str, Any]


@dataclass(frozen=True)
class TxEnvelope:
    tx_type: str
    sender: str
    payload: Dict[str, Any]

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "")).strip().lower(),
            sender=str(j.get("sender", "")).strip(),
            payload=dict(j.get("payload", {}) or {}),
        )

    def to_json(self) -> Json:
        return {"tx_type": self.tx_type, "sender": self.sender, "payload": self.payload}


def _req_str(payload: Json, key: str) -> str:
    v = payload.get(key)
    s = str(v).strip() if isinstance(v, (str, int)) else ""
    if not s:
        raise InvalidParameterError("invalid_payload", f"missing_{key}", {"key": key})
    return s


def _req_int(payload: Json, key: str) -> int:
    v = payload.get(key)
    if isinstance(v, bool) or v is None:
        raise InvalidParameterError("invalid_payload", f"missing_{key}", {"key": key})
    # Amounts exceed float precision; they arrive as JSON ints or decimal strings.
    if not isinstance(v, (int, str)):
        raise InvalidParameterError("invalid_payload", f"bad_{key}", {"key": key, "value": v})
    try:
        return int(v)
    except (TypeError, ValueError):
        raise InvalidParameterError("invalid_payload", f"bad_{key}", {"key": key, "value": v})


def _pool(world: World, payload: Json) -> TimeLockedPool:
    address = _req_str(payload, "pool")
    p = world.pools.get(address)
    if p is None:
        raise NotFoundError("not_found", "unknown_pool", {"pool": address})
    return p


def _apply_deposit(world: World, env: TxEnvelope) -> Json:
    p = env.payload
    pool = _pool(world, p)
    receiver = str(p.get("receiver") or env.sender)
    dep = pool.deposit(_req_int(p, "amount"), _req_int(p, "duration"), receiver, sender=env.sender)
    return {"applied": "deposit", "pool": pool.address, "receiver": receiver, "deposit": dep.to_json()}


def _apply_withdraw(world: World, env: TxEnvelope) -> Json:
    p = env.payload
    pool = _pool(world, p)
    receiver = str(p.get("receiver") or env.sender)
    amount = pool.withdraw(_req_int(p, "deposit_id"), receiver, sender=env.sender)
    return {"applied": "withdraw", "pool": pool.address, "receiver": receiver, "amount": amount}


def _apply_claim_rewards(world: World, env: TxEnvelope) -> Json:
    p = env.payload
    pool = _pool(world, p)
    receiver = str(p.get("receiver") or env.sender)
    out = pool.claim_rewards(receiver, sender=env.sender)
    return {"applied": "claim_rewards", "pool": pool.address, "receiver": receiver, **out}


def _apply_distribute_pool_rewards(world: World, env: TxEnvelope) -> Json:
    p = env.payload
    pool = _pool(world, p)
    amount = _req_int(p, "amount")
    pool.distribute_rewards(amount, sender=env.sender)
    return {"applied": "distribute_pool_rewards", "pool": pool.address, "amount": amount}


def _apply_transfer(world: World, env: TxEnvelope) -> Json:
    p = env.payload
    pool = _pool(world, p)
    to = _req_str(p, "to")
    amount = _req_int(p, "amount")
    pool.transfer(to, amount, sender=env.sender)
    return {"applied": "transfer", "pool": pool.address, "to": to, "amount": amount}


def _apply_token_approve(world: World, env: TxEnvelope) -> Json:
    p = env.payload
    address = _req_str(p, "token")
    token = world.tokens.get(address)
    if token is None:
        raise NotFoundError("not_found", "unknown_token", {"token": address})
    spender = _req_str(p, "spender")
    amount = _req_int(p, "amount")
    token.approve(spender, amount, sender=env.sender)
    return {"applied": "token_approve", "token": token.address, "spender": spender, "amount": amount}


def _apply_distribute_rewards(world: World, env: TxEnvelope) -> Json:
    amount = world.scheduler.distribute_rewards(sender=env.sender)
    return {"applied": "distribute_rewards", "amount": amount}


def _apply_add_pool(world: World, env: TxEnvelope) -> Json:
    p = env.payload
    pool = _pool(world, p)
    pool_id = world.scheduler.add_pool(pool, _req_int(p, "weight"), sender=env.sender)
    return {"applied": "add_pool", "pool": pool.address, "pool_id": pool_id}


def _apply_remove_pool(world: World, env: TxEnvelope) -> Json:
    address = world.scheduler.remove_pool(_req_int(env.payload, "pool_id"), sender=env.sender)
    return {"applied": "remove_pool", "pool": address}


def _apply_adjust_weight(world: World, env: TxEnvelope) -> Json:
    p = env.payload
    pool_id = _req_int(p, "pool_id")
    weight = _req_int(p, "weight")
    world.scheduler.adjust_weight(pool_id, weight, sender=env.sender)
    return {"applied": "adjust_weight", "pool_id": pool_id, "weight": weight}


def _apply_set_reward_per_second(world: World, env: TxEnvelope) -> Json:
    rate = _req_int(env.payload, "reward_per_second")
    world.scheduler.set_reward_per_second(rate, sender=env.sender)
    return {"applied": "set_reward_per_second", "reward_per_second": rate}


_APPLIERS: Dict[str, Callable[[World, TxEnvelope], Json]] = {
    "deposit": _apply_deposit,
    "withdraw": _apply_withdraw,
    "claim_rewards": _apply_claim_rewards,
    "distribute_pool_rewards": _apply_distribute_pool_rewards,
    "transfer": _apply_transfer,
    "token_approve": _apply_token_approve,
    "distribute_rewards": _apply_distribute_rewards,
    "add_pool": _apply_add_pool,
    "remove_pool": _apply_remove_pool,
    "adjust_weight": _apply_adjust_weight,
    "set_reward_per_second": _apply_set_reward_per_second,
}

SUPPORTED_TX_TYPES = tuple(sorted(_APPLIERS.keys()))


def apply_tx(world: World, env: Any) -> Json:
    """Apply one tx envelope to the world.

    Each underlying entry point is atomic, so a raised ApplyError leaves the
    world unchanged.
    """
    e = TxEnvelope.from_json(env)
    if not e.sender:
        raise InvalidParameterError("invalid_tx", "missing_sender", {"tx_type": e.tx_type})
    fn = _APPLIERS.get(e.tx_type)
    if fn is None:
        raise ApplyError("invalid_tx", "unsupported_tx_type", {"tx_type": e.tx_type, "supported": list(SUPPORTED_TX_TYPES)})
    return fn(world, e)
