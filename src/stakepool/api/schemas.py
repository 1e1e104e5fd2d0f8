from __future__ import annotations

"""Pydantic request schemas for the public API.

These exist only for HTTP input validation; the tx payload fields themselves
are checked by the runtime dispatcher.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., description="deposit | withdraw | claim_rewards | distribute_rewards | ...")
    sender: str = Field(..., min_length=1, description="Calling account id")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Tx-type specific fields")
    nonce: Optional[int] = Field(default=None, description="Sender's next nonce (last consumed + 1)")
    sig: Optional[str] = Field(default=None, description="Ed25519 signature (hex) over the canonical envelope")

    model_config = {"extra": "forbid"}
