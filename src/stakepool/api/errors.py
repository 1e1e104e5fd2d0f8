from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from stakepool.runtime.errors import (
    ApplyError,
    CapacityExceededError,
    DuplicatePoolError,
    NotFoundError,
    PermissionDeniedError,
)


@dataclass
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def conflict(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(409, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_apply_error(e: ApplyError) -> "ApiError":
        details = dict(e.details) if isinstance(e.details, dict) else {}
        details.setdefault("error_type", type(e).__name__)
        if isinstance(e, PermissionDeniedError):
            return ApiError.forbidden(e.code, e.reason, details)
        if isinstance(e, NotFoundError):
            return ApiError.not_found(e.code, e.reason, details)
        if isinstance(e, (DuplicatePoolError, CapacityExceededError)):
            return ApiError.conflict(e.code, e.reason, details)
        return ApiError.bad_request(e.code, e.reason, details)

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}
