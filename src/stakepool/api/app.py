from __future__ import annotations

import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stakepool.api.config import load_api_config
from stakepool.api.errors import ApiError
from stakepool.api.routes_public import public_router
from stakepool.api.structured_logging import RequestLogMiddleware
from stakepool.runtime.bootstrap import World
from stakepool.runtime.bootstrap import build_world as _build_world


def build_world() -> World:
    """Build the World served by the API.

    This wrapper exists so tests can monkeypatch `stakepool.api.app.build_world`
    without reaching into runtime modules.
    """
    return _build_world()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load the deployment config and attach app.state.world
      - False: keep lightweight for unit tests / import-time validation
    """
    mode = os.environ.get("STAKEPOOL_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Stakepool API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Stakepool API")

    app.state.cfg = load_api_config()
    app.state.world = build_world() if boot_runtime else None

    @app.exception_handler(ApiError)
    async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    app.add_middleware(RequestLogMiddleware)

    app.include_router(public_router)
    return app
