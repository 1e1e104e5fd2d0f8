from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from stakepool.api.routes_public_parts.common import _pool, _pool_summary, _token, _world
from stakepool.ledger.accounts import account_nonce, active_keys

router = APIRouter()

Json = Dict[str, Any]


@router.get("/pools")
def pools_list(request: Request) -> Json:
    world = _world(request)
    with world.host.locked():
        return {"ok": True, "pools": [_pool_summary(world, p) for p in world.pools.values()]}


@router.get("/pools/{pool}")
def pools_get(pool: str, request: Request) -> Json:
    world = _world(request)
    with world.host.locked():
        return {"ok": True, "pool": _pool_summary(world, _pool(world, pool))}


@router.get("/pools/{pool}/accounts/{account}")
def pools_account(pool: str, account: str, request: Request) -> Json:
    world = _world(request)
    p = _pool(world, pool)
    with world.host.locked():
        now = world.host.now()
        deposits = []
        for idx, d in enumerate(p.get_deposits_of(account)):
            deposits.append({"deposit_id": idx, **d.to_json(), "unlocked": now >= d.end})
        return {
            "ok": True,
            "pool": p.address,
            "account": account,
            "shares": p.balance_of(account),
            "total_deposit": p.get_total_deposit(account),
            "deposits": deposits,
            "withdrawable_rewards": p.withdrawable_rewards_of(account),
            "withdrawn_rewards": p.withdrawn_rewards_of(account),
            "cumulative_rewards": p.cumulative_rewards_of(account),
        }


@router.get("/tokens/{token}/balances/{account}")
def token_balance(token: str, account: str, request: Request) -> Json:
    world = _world(request)
    t = _token(world, token)
    with world.host.locked():
        return {"ok": True, "token": t.address, "account": account, "balance": t.balance_of(account)}


@router.get("/accounts/{account}")
def account_get(account: str, request: Request) -> Json:
    """Signing keys and the nonce the account's next tx must carry."""
    world = _world(request)
    with world.host.locked():
        st = world.host.state
        nonce = account_nonce(st, account)
        return {"ok": True, "account": account, "keys": active_keys(st, account), "nonce": nonce, "next_nonce": nonce + 1}
