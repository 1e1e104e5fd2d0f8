from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from stakepool.api.errors import ApiError
from stakepool.engine.pool import TimeLockedPool
from stakepool.ledger.token import FungibleToken
from stakepool.runtime.bootstrap import World

Json = Dict[str, Any]


def _world(request: Request) -> World:
    w = getattr(request.app.state, "world", None)
    if w is None:
        raise ApiError.internal("not_ready", "world not attached to app.state", {})
    return w


def _pool(world: World, address: str) -> TimeLockedPool:
    p = world.pools.get(str(address))
    if p is None:
        raise ApiError.not_found("unknown_pool", "pool not found", {"pool": address})
    return p


def _token(world: World, address: str) -> FungibleToken:
    t = world.tokens.get(str(address))
    if t is None:
        raise ApiError.not_found("unknown_token", "token not found", {"token": address})
    return t


def _pool_summary(world: World, pool: TimeLockedPool) -> Json:
    p = pool.params
    weight = None
    for addr, w in world.scheduler.get_pools():
        if addr == pool.address:
            weight = w
    return {
        "address": pool.address,
        "name": p.name,
        "symbol": p.symbol,
        "deposit_token": p.deposit_token,
        "reward_token": p.reward_token,
        "escrow_pool": p.escrow_pool,
        "escrow_portion": p.escrow_portion,
        "escrow_duration": p.escrow_duration,
        "max_bonus": p.max_bonus,
        "max_lock_duration": p.max_lock_duration,
        "transferable": p.transferable,
        "total_supply": pool.total_supply(),
        "points_per_share": str(pool.rewards.points_per_share),
        "scheduler_weight": weight,
    }
