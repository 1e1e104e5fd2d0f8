# src/stakepool/runtime/state_invariants.py
from __future__ import annotations

"""World-state normalization helpers.

The world state is a nested JSON-like dict mutated only through component
entry points. This module creates the top-level containers every component
relies on; each component owns the layout beneath its own root.
"""

from collections.abc import MutableMapping
from typing import Any, Dict

Json = Dict[str, Any]

ROOT_DICTS = ("tokens", "shares", "rewards", "pools", "emission", "roles", "accounts")
ROOT_LISTS = ("events",)


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains the core containers.

    Raises:
        TypeError: if st (or an existing container) has the wrong type
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    for key in ROOT_DICTS:
        cur = st.get(key)
        if cur is None:
            st[key] = {}
        elif not isinstance(cur, dict):
            raise TypeError(f"state[{key!r}] must be dict, got {type(cur)}")

    for key in ROOT_LISTS:
        cur = st.get(key)
        if cur is None:
            st[key] = []
        elif not isinstance(cur, list):
            raise TypeError(f"state[{key!r}] must be list, got {type(cur)}")

    return st  # type: ignore[return-value]


def component_root(st: Json, container: str, address: str) -> Json:
    """Return the per-component dict under a top-level container."""
    root = st.get(container)
    if not isinstance(root, dict):
        root = {}
        st[container] = root
    cur = root.get(address)
    if not isinstance(cur, dict):
        cur = {}
        root[address] = cur
    return cur


__all__ = ["ensure_state", "component_root"]
