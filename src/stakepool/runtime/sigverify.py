# src/stakepool/runtime/sigverify.py

from __future__ import annotations

import os
from typing import Any, Dict

from stakepool.crypto.sig import canonical_tx_message, verify_ed25519_signature
from stakepool.ledger.accounts import account_nonce, active_keys, set_account_nonce
from stakepool.runtime.bootstrap import World
from stakepool.runtime.dispatch import TxEnvelope, apply_tx
from stakepool.runtime.errors import InvalidParameterError, PermissionDeniedError

Json = Dict[str, Any]


def unsigned_allowed(mode: str) -> bool:
    """Unsigned txs are accepted only in dev mode with STAKEPOOL_UNSAFE_DEV=1."""
    unsafe = (os.environ.get("STAKEPOOL_UNSAFE_DEV") or "").strip()
    return str(mode or "").strip().lower() == "dev" and unsafe == "1"


def authorize_tx(world: World, tx: Json) -> None:
    """Check that `tx` was signed by its sender and consume its nonce.

    Policy:
      - a sender with active keys must sign with one of them
      - a sender without keys is refused, unless unsigned_allowed()
      - the nonce must be exactly one above the sender's last consumed nonce

    Must run inside the call that applies the tx, so a failed apply leaves
    the nonce unconsumed.
    """
    env = TxEnvelope.from_json(tx)
    state = world.host.state
    keys = active_keys(state, env.sender)
    sig = str(tx.get("sig") or "").strip()

    if not sig:
        if not keys and unsigned_allowed(world.config.mode):
            return
        raise PermissionDeniedError("unauthorized", "missing_signature", {"sender": env.sender})
    if not keys:
        raise PermissionDeniedError("unauthorized", "no_active_keys", {"sender": env.sender})

    nonce = tx.get("nonce")
    expected = account_nonce(state, env.sender) + 1
    if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce != expected:
        raise InvalidParameterError("invalid_tx", "bad_nonce", {"sender": env.sender, "nonce": nonce, "expected": expected})

    msg = canonical_tx_message(tx_type=env.tx_type, sender=env.sender, nonce=nonce, payload=env.payload)
    if not any(verify_ed25519_signature(message=msg, sig=sig, pubkey=pk) for pk in keys):
        raise PermissionDeniedError("unauthorized", "invalid_signature", {"sender": env.sender})

    set_account_nonce(state, env.sender, nonce)


def submit_tx(world: World, tx: Json) -> Json:
    """Authorize and apply one externally submitted tx as a single atomic call."""

    def _run() -> Json:
        authorize_tx(world, tx)
        return apply_tx(world, tx)

    return world.host.run_atomic(_run)
