from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from stakepool.api.routes_public_parts.common import _world

router = APIRouter()

Json = Dict[str, Any]


def _limit(v: Optional[int], default: int = 100, cap: int = 1000) -> int:
    if v is None:
        return default
    return max(1, min(int(v), cap))


@router.get("/status")
def status(request: Request) -> Json:
    world = _world(request)
    with world.host.locked():
        return {
            "ok": True,
            "mode": world.config.mode,
            "now": world.host.now(),
            "pool_count": len(world.pools),
            "scheduled_pools": world.scheduler.pool_count,
            "tokens": sorted(world.tokens.keys()),
            "event_count": len(world.host.events()),
        }


@router.get("/events")
def events(request: Request, event: Optional[str] = None, limit: Optional[int] = None) -> Json:
    world = _world(request)
    # Host.events() copies under the call lock.
    evs = world.host.events(event)
    n = _limit(limit)
    return {"ok": True, "events": evs[-n:]}
