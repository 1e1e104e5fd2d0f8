from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from stakepool import __version__

router = APIRouter()

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


@router.get("/v1/health")
def v1_health(request: Request) -> Json:
    # Never raises: readiness is reported, not enforced.
    world = getattr(request.app.state, "world", None)
    return {
        "ok": True,
        "service": "stakepool",
        "version": __version__,
        "ts_ms": _now_ms(),
        "ready": world is not None,
        "mode": getattr(getattr(request.app.state, "cfg", None), "mode", None),
    }


@router.get("/healthz")
def healthz(request: Request) -> Json:
    return v1_health(request)
