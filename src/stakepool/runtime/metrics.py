from __future__ import annotations

"""In-process counters and gauges.

Series are keyed by name plus optional string labels, so per-pool activity
(`deposits_total{pool="mc-pool"}`) and process-wide totals share one store.
Values are plain integers; there are no histograms.
"""

import os
import threading
import time
from typing import Dict, Tuple

SeriesKey = Tuple[str, Tuple[Tuple[str, str], ...]]

_lock = threading.Lock()
_counters: Dict[SeriesKey, int] = {}
_gauges: Dict[SeriesKey, int] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    v = (os.environ.get("STAKEPOOL_METRICS_ENABLED") or "").strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def _key(name: str, labels: Dict[str, object]) -> SeriesKey | None:
    n = str(name or "").strip()
    if not n:
        return None
    return n, tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _render(key: SeriesKey) -> str:
    name, labels = key
    if not labels:
        return name
    body = ",".join(f'{k}="{v}"' for k, v in labels)
    return f"{name}{{{body}}}"


def inc_counter(name: str, value: int = 1, **labels: object) -> None:
    k = _key(name, labels)
    if k is None:
        return
    with _lock:
        _counters[k] = _counters.get(k, 0) + int(value)


def set_gauge(name: str, value: int, **labels: object) -> None:
    k = _key(name, labels)
    if k is None:
        return
    with _lock:
        _gauges[k] = int(value)


def counter_value(name: str, **labels: object) -> int:
    k = _key(name, labels)
    with _lock:
        return _counters.get(k, 0) if k is not None else 0


def snapshot() -> dict:
    now_ms = int(time.time() * 1000)
    with _lock:
        return {
            "ts_ms": now_ms,
            "started_ms": _started_ms,
            "uptime_ms": now_ms - _started_ms,
            "counters": {_render(k): v for k, v in _counters.items()},
            "gauges": {_render(k): v for k, v in _gauges.items()},
        }


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()


def format_prometheus(prefix: str = "stakepool_") -> str:
    """Prometheus exposition text, one `# TYPE` line per metric family."""
    pre = str(prefix or "").strip() or "stakepool_"
    snap = snapshot()
    out = [f"# TYPE {pre}uptime_ms gauge", f"{pre}uptime_ms {snap['uptime_ms']}"]

    with _lock:
        families = [("counter", dict(_counters)), ("gauge", dict(_gauges))]

    for kind, series in families:
        seen = set()
        for key in sorted(series):
            if key[0] not in seen:
                seen.add(key[0])
                out.append(f"# TYPE {pre}{key[0]} {kind}")
            out.append(f"{pre}{_render(key)} {series[key]}")

    return "\n".join(out) + "\n"
