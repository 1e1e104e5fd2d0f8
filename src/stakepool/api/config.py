import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ApiConfig:
    mode: str  # "dev" | "prod"
    host: str
    port: int
    log_requests: bool


def _is_truthy(v: str | None, default: bool) -> bool:
    if v is None or not v.strip():
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def load_api_config() -> ApiConfig:
    mode = os.getenv("STAKEPOOL_MODE", "prod").strip().lower()
    host = os.getenv("STAKEPOOL_API_HOST", "127.0.0.1").strip() or "127.0.0.1"
    try:
        port = int(os.getenv("STAKEPOOL_API_PORT", "8080"))
    except ValueError:
        port = 8080
    if port <= 0 or port > 65535:
        raise ValueError(f"STAKEPOOL_API_PORT must be 1..65535; got: {port}")
    return ApiConfig(
        mode=mode,
        host=host,
        port=port,
        log_requests=_is_truthy(os.getenv("STAKEPOOL_LOG_REQUESTS"), True),
    )
