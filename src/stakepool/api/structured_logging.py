# src/stakepool/api/structured_logging.py
from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from stakepool.api.config import load_api_config
from stakepool.runtime.metrics import inc_counter
from stakepool.runtime.structured_logging import log_event

REQUEST_ID_HEADER = "x-request-id"


def _status_class(status: int) -> str:
    return f"{int(status) // 100}xx"


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One JSONL line and one counter increment per HTTP request.

    The request id is taken from the inbound header when present and echoed
    back on the response. STAKEPOOL_LOG_REQUESTS=0 turns logging off; the
    request counter is kept either way.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._log = load_api_config().log_requests
        self._logger = logging.getLogger("stakepool.http")

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.monotonic()

        try:
            response = await call_next(request)
        except Exception as e:
            self._record(request, request_id, started, 500, error=f"{type(e).__name__}: {e}")
            raise

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        self._record(request, request_id, started, response.status_code)
        return response

    def _record(self, request: Request, request_id: str, started: float, status: int, error: str | None = None) -> None:
        inc_counter("http_requests_total", method=request.method, status=_status_class(status))
        if not self._log:
            return
        log_event(
            self._logger,
            "http_request",
            level=logging.WARNING if status >= 500 else logging.INFO,
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=int(status),
            duration_ms=int((time.monotonic() - started) * 1000),
            client=request.client.host if request.client else "",
            error=error,
        )
