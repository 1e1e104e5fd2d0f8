# src/stakepool/ledger/accounts.py
from __future__ import annotations

"""Per-account signing keys and tx nonces.

Layout: state["accounts"][account] = {"keys": [{"pubkey", "active"}], "nonce": int}
"""

from typing import Any, Dict, List

from stakepool.crypto.sig import is_valid_public_key
from stakepool.runtime.errors import InvalidParameterError
from stakepool.runtime.host import Host
from stakepool.runtime.state_invariants import component_root

Json = Dict[str, Any]


def _account(state: Json, account: str) -> Json:
    acct = component_root(state, "accounts", str(account))
    if not isinstance(acct.get("keys"), list):
        acct["keys"] = []
    acct.setdefault("nonce", 0)
    return acct


def _existing(state: Json, account: str) -> Json:
    acct = (state.get("accounts") or {}).get(str(account))
    return acct if isinstance(acct, dict) else {}


def active_keys(state: Json, account: str) -> List[str]:
    out: List[str] = []
    for rec in _existing(state, account).get("keys") or []:
        if isinstance(rec, dict) and rec.get("active", True):
            pk = str(rec.get("pubkey") or "").strip()
            if pk and pk not in out:
                out.append(pk)
    return out


def account_nonce(state: Json, account: str) -> int:
    """Last nonce consumed by `account`; the next signed tx must use this + 1."""
    return int(_existing(state, account).get("nonce") or 0)


def set_account_nonce(state: Json, account: str, nonce: int) -> None:
    _account(state, account)["nonce"] = int(nonce)


def register_account_key(host: Host, account: str, pubkey: str) -> None:
    """Attach an active Ed25519 public key to an account."""
    pk = str(pubkey or "").strip()
    if not str(account or "").strip():
        raise InvalidParameterError("invalid_param", "account_required", {})
    if not is_valid_public_key(pk):
        raise InvalidParameterError("invalid_param", "bad_public_key", {"account": str(account)})
    with host.locked():
        keys = _account(host.state, account)["keys"]
        if not any(isinstance(r, dict) and r.get("pubkey") == pk for r in keys):
            keys.append({"pubkey": pk, "active": True})
