# src/stakepool/ledger/shares.py
from __future__ import annotations

from typing import Any, Dict

from stakepool.ledger.fixed_point import checked_add, checked_sub, to_uint256
from stakepool.runtime.errors import TransferFailure
from stakepool.runtime.host import Host
from stakepool.runtime.state_invariants import component_root

Json = Dict[str, Any]


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return int(default)


class ShareLedger:
    """Claim-share balances for one pool.

    This ledger only keeps balances and supply. It has no entry points of its
    own: the owning pool calls mint/burn/move and pairs every call with the
    matching reward correction in the same step.
    """

    def __init__(self, host: Host, pool_address: str) -> None:
        self.host = host
        self.pool_address = str(pool_address)
        root = self._root()
        root.setdefault("total_supply", 0)
        root.setdefault("balances", {})
        root.setdefault("allowances", {})

    def _root(self) -> Json:
        return component_root(self.host.state, "shares", self.pool_address)

    def total_supply(self) -> int:
        return _as_int(self._root().get("total_supply"), 0)

    def balance_of(self, account: str) -> int:
        return _as_int(self._root()["balances"].get(str(account)), 0)

    def allowance(self, owner: str, spender: str) -> int:
        by_owner = self._root()["allowances"].get(str(owner)) or {}
        return _as_int(by_owner.get(str(spender)), 0)

    def mint(self, account: str, amount: int) -> None:
        amt = to_uint256(amount)
        root = self._root()
        root["total_supply"] = checked_add(self.total_supply(), amt)
        balances = root["balances"]
        balances[str(account)] = checked_add(_as_int(balances.get(str(account)), 0), amt)

    def burn(self, account: str, amount: int) -> None:
        amt = to_uint256(amount)
        root = self._root()
        balances = root["balances"]
        have = _as_int(balances.get(str(account)), 0)
        if have < amt:
            raise TransferFailure(
                "transfer_failed",
                "burn_exceeds_balance",
                {"pool": self.pool_address, "account": str(account), "balance": have, "amount": amt},
            )
        balances[str(account)] = have - amt
        root["total_supply"] = checked_sub(self.total_supply(), amt)

    def move(self, owner: str, to: str, amount: int) -> None:
        amt = to_uint256(amount)
        balances = self._root()["balances"]
        have = _as_int(balances.get(str(owner)), 0)
        if have < amt:
            raise TransferFailure(
                "transfer_failed",
                "insufficient_shares",
                {"pool": self.pool_address, "account": str(owner), "balance": have, "amount": amt},
            )
        balances[str(owner)] = have - amt
        balances[str(to)] = checked_add(_as_int(balances.get(str(to)), 0), amt)

    def set_allowance(self, owner: str, spender: str, amount: int) -> None:
        amt = to_uint256(amount)
        by_owner = self._root()["allowances"].setdefault(str(owner), {})
        if amt == 0:
            by_owner.pop(str(spender), None)
        else:
            by_owner[str(spender)] = amt
