from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from stakepool.api.routes_public_parts.common import _world

router = APIRouter()

Json = Dict[str, Any]


@router.get("/scheduler")
def scheduler_get(request: Request) -> Json:
    world = _world(request)
    s = world.scheduler
    with world.host.locked():
        return {
            "ok": True,
            "address": s.address,
            "reward_token": s.reward_token,
            "reward_source": s.reward_source,
            "reward_per_second": s.reward_per_second,
            "last_distribution": s.last_distribution,
            "total_weight": s.total_weight,
            "pools": [{"pool_id": i, "pool": a, "weight": w} for i, (a, w) in enumerate(s.get_pools())],
            "now": world.host.now(),
        }
