from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from stakepool.api.errors import ApiError
from stakepool.api.routes_public_parts.common import _world
from stakepool.api.schemas import TxSubmitRequest
from stakepool.runtime.dispatch import SUPPORTED_TX_TYPES
from stakepool.runtime.errors import ApplyError
from stakepool.runtime.sigverify import submit_tx

router = APIRouter()

Json = Dict[str, Any]


@router.post("/tx/submit")
def tx_submit(body: TxSubmitRequest, request: Request) -> Json:
    """Authorize and apply a signed tx immediately.

    The sender must sign {tx_type, sender, nonce, payload} with one of its
    registered keys. Unsigned txs are only accepted in dev mode with
    STAKEPOOL_UNSAFE_DEV=1, for senders that have no keys.

    Returns:
      { ok, tx_type, result } or an error body with the failing error kind.
    """
    world = _world(request)
    tx_type = body.tx_type.strip().lower()
    if tx_type not in SUPPORTED_TX_TYPES:
        raise ApiError.bad_request("unsupported_tx_type", "unsupported tx_type", {"supported": list(SUPPORTED_TX_TYPES)})

    tx: Json = {"tx_type": tx_type, "sender": body.sender, "payload": body.payload, "nonce": body.nonce, "sig": body.sig}
    try:
        result = submit_tx(world, tx)
    except ApplyError as e:
        raise ApiError.from_apply_error(e) from e

    return {"ok": True, "tx_type": tx_type, "result": result}
