from __future__ import annotations

from fastapi import APIRouter

from stakepool.api.routes_public_parts.health import router as health_router
from stakepool.api.routes_public_parts.metrics import router as metrics_router
from stakepool.api.routes_public_parts.pools import router as pools_router
from stakepool.api.routes_public_parts.scheduler import router as scheduler_router
from stakepool.api.routes_public_parts.status import router as status_router
from stakepool.api.routes_public_parts.tx import router as tx_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="", tags=["health"])
public_router.include_router(status_router, prefix="/v1", tags=["status"])
public_router.include_router(pools_router, prefix="/v1", tags=["pools"])
public_router.include_router(scheduler_router, prefix="/v1", tags=["scheduler"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
