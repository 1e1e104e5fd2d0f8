# src/stakepool/runtime/host.py
from __future__ import annotations

"""Execution substrate for pools, tokens and the emission scheduler.

The host owns the world state and serializes every entry point:

  - the outermost @atomic call snapshots the state, and restores it if the
    call raises; nested atomic calls join the outer call
  - isolated_call() is a nested call whose failure is contained: only the
    sub-call's changes are rolled back and the error is returned
  - notifications are kept in state["events"] (so they revert with the call)
    and are written to the structured log once the outermost call commits
  - metric updates made during a call are queued and applied on commit
  - readers take the same lock through locked(), so they never observe a
    call in progress
"""

import contextlib
import copy
import functools
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Tuple, TypeVar

from stakepool.runtime.errors import InvalidParameterError, NotFoundError
from stakepool.runtime.metrics import inc_counter, set_gauge
from stakepool.runtime.state_invariants import ensure_state
from stakepool.runtime.structured_logging import log_event

Json = Dict[str, Any]
F = TypeVar("F", bound=Callable[..., Any])

log = logging.getLogger("stakepool.host")

# Committed notifications retained in state; older ones are only in the log.
MAX_RETAINED_EVENTS = 10_000


class Clock(Protocol):
    def now(self) -> int: ...


class SystemClock:
    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Deterministic clock for tests and simulations."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        s = int(seconds)
        if s < 0:
            raise ValueError(f"cannot advance clock by a negative amount: {s}")
        self._now += s
        return self._now

    def set(self, ts: int) -> int:
        t = int(ts)
        if t < self._now:
            raise ValueError(f"timestamp {t} is before current time {self._now}")
        self._now = t
        return self._now

    def rewind(self, ts: int) -> None:
        # Only snapshot restore may move time backwards.
        self._now = int(ts)


class Component(Protocol):
    address: str


class Host:
    def __init__(self, *, clock: Optional[Clock] = None, state: Optional[Json] = None) -> None:
        self.state: Json = ensure_state(state if state is not None else {})
        self.clock: Clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._depth = 0
        self._components: Dict[str, Any] = {}
        # (kind, name, value, labels) queued until the outermost call commits
        self._pending_metrics: List[Tuple[str, str, int, Dict[str, object]]] = []

    # ----------------------------
    # Components
    # ----------------------------

    def register(self, component: Component) -> None:
        address = str(getattr(component, "address", "") or "").strip()
        if not address:
            raise InvalidParameterError("invalid_component", "missing_address", {"type": type(component).__name__})
        if address in self._components:
            raise InvalidParameterError("invalid_component", "address_in_use", {"address": address})
        self._components[address] = component

    def resolve(self, address: str) -> Any:
        c = self._components.get(str(address or ""))
        if c is None:
            raise NotFoundError("not_found", "unknown_component", {"address": address})
        return c

    def is_registered(self, address: str) -> bool:
        return str(address or "") in self._components

    def components(self) -> List[Any]:
        return list(self._components.values())

    # ----------------------------
    # Time + notifications
    # ----------------------------

    def now(self) -> int:
        return int(self.clock.now())

    def emit(self, event: str, **fields: Any) -> None:
        rec: Json = {"event": str(event), "ts": self.now()}
        rec.update(fields)
        self.state["events"].append(rec)

    def events(self, event: Optional[str] = None) -> List[Json]:
        with self._lock:
            evs = self.state.get("events") or []
            if event is None:
                return list(evs)
            return [e for e in evs if e.get("event") == event]

    def count(self, name: str, value: int = 1, **labels: object) -> None:
        """Increment a counter once the current call commits."""
        self._queue_metric("counter", name, value, labels)

    def gauge(self, name: str, value: int, **labels: object) -> None:
        """Set a gauge once the current call commits."""
        self._queue_metric("gauge", name, value, labels)

    def _queue_metric(self, kind: str, name: str, value: int, labels: Dict[str, object]) -> None:
        if self._depth == 0:
            self._apply_metrics([(kind, name, int(value), labels)])
            return
        self._pending_metrics.append((kind, name, int(value), labels))

    @staticmethod
    def _apply_metrics(items: List[Tuple[str, str, int, Dict[str, object]]]) -> None:
        for kind, name, value, labels in items:
            if kind == "counter":
                inc_counter(name, value, **labels)
            else:
                set_gauge(name, value, **labels)

    # ----------------------------
    # Reads
    # ----------------------------

    @contextlib.contextmanager
    def locked(self) -> Iterator["Host"]:
        """Hold the call lock for a consistent multi-step read of the world."""
        with self._lock:
            yield self

    # ----------------------------
    # Atomic execution
    # ----------------------------

    @property
    def in_call(self) -> bool:
        return self._depth > 0

    def restore_state(self, snap: Json) -> None:
        """Replace world state in place with a previously taken deep copy."""
        self.state.clear()
        self.state.update(copy.deepcopy(snap))
        ensure_state(self.state)

    def run_atomic(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    return fn(*args, **kwargs)
                finally:
                    self._depth -= 1

            snap = copy.deepcopy(self.state)
            first_event = len(self.state["events"])
            self._pending_metrics = []
            self._depth = 1
            try:
                out = fn(*args, **kwargs)
            except Exception as e:
                self.state.clear()
                self.state.update(snap)
                self._pending_metrics = []
                inc_counter("calls_reverted")
                log_event(
                    log,
                    "call_reverted",
                    level=logging.WARNING,
                    call=getattr(fn, "__qualname__", str(fn)),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            finally:
                self._depth = 0

            self._commit_events(first_event)
            return out

    def isolated_call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Tuple[bool, Any]:
        """Run fn as a contained sub-call.

        Returns (True, result) on success. On failure the sub-call's state
        changes are undone and (False, error) is returned; the caller's own
        changes made before the sub-call are kept.
        """
        with self._lock:
            snap = copy.deepcopy(self.state)
            first_metric = len(self._pending_metrics)
            self._depth += 1
            try:
                return True, fn(*args, **kwargs)
            except Exception as e:
                self.state.clear()
                self.state.update(snap)
                del self._pending_metrics[first_metric:]
                return False, e
            finally:
                self._depth -= 1

    def _commit_events(self, first_event: int) -> None:
        evs = self.state["events"]
        for rec in evs[first_event:]:
            fields = {k: v for k, v in rec.items() if k != "event"}
            log_event(log, str(rec.get("event")), **fields)
        overflow = len(evs) - MAX_RETAINED_EVENTS
        if overflow > 0:
            del evs[:overflow]
        pending, self._pending_metrics = self._pending_metrics, []
        self._apply_metrics(pending)


def atomic(method: F) -> F:
    """Run a component method as one atomic, serialized step on its host."""

    @functools.wraps(method)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        return self.host.run_atomic(method, self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]
