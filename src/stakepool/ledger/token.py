# src/stakepool/ledger/token.py
from __future__ import annotations

from typing import Any, Dict, Optional

from stakepool.ledger.constants import UINT256_MAX
from stakepool.ledger.fixed_point import checked_add, checked_sub, to_uint256
from stakepool.runtime.errors import PermissionDeniedError, TransferFailure, ZeroAmountError
from stakepool.runtime.host import Host, atomic
from stakepool.runtime.state_invariants import component_root

Json = Dict[str, Any]


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return int(default)


class FungibleToken:
    """Balance/allowance ledger for a deposit or reward token.

    The core only needs two capabilities from it:
      - pull(owner, to, amount, sender=spender): fails without balance or allowance
      - push(to, amount, sender=holder)

    An allowance of UINT256_MAX is a standing authorization and is never
    decremented.
    """

    def __init__(
        self,
        host: Host,
        address: str,
        *,
        name: str = "",
        symbol: str = "",
        decimals: int = 18,
        minter: Optional[str] = None,
    ) -> None:
        self.host = host
        self.address = str(address)
        self.minter = str(minter) if minter else None
        host.register(self)

        root = self._root()
        root.setdefault("name", str(name))
        root.setdefault("symbol", str(symbol))
        root.setdefault("decimals", int(decimals))
        root.setdefault("total_supply", 0)
        root.setdefault("balances", {})
        root.setdefault("allowances", {})

    def _root(self) -> Json:
        return component_root(self.host.state, "tokens", self.address)

    # ----------------------------
    # Reads
    # ----------------------------

    @property
    def symbol(self) -> str:
        return str(self._root().get("symbol") or "")

    def total_supply(self) -> int:
        return _as_int(self._root().get("total_supply"), 0)

    def balance_of(self, account: str) -> int:
        return _as_int(self._root()["balances"].get(str(account)), 0)

    def allowance(self, owner: str, spender: str) -> int:
        by_owner = self._root()["allowances"].get(str(owner)) or {}
        return _as_int(by_owner.get(str(spender)), 0)

    # ----------------------------
    # Writes
    # ----------------------------

    def _move(self, owner: str, to: str, amount: int) -> None:
        balances = self._root()["balances"]
        have = _as_int(balances.get(owner), 0)
        if have < amount:
            raise TransferFailure(
                "transfer_failed",
                "insufficient_balance",
                {"token": self.address, "account": owner, "balance": have, "amount": amount},
            )
        balances[owner] = have - amount
        balances[to] = checked_add(_as_int(balances.get(to), 0), amount)

    @atomic
    def mint(self, to: str, amount: int, *, sender: str) -> None:
        if self.minter is None or str(sender) != self.minter:
            raise PermissionDeniedError("forbidden", "minter_only", {"token": self.address, "sender": sender})
        amt = to_uint256(amount)
        if amt == 0:
            raise ZeroAmountError("invalid_amount", "mint_amount_zero", {"token": self.address})
        root = self._root()
        root["total_supply"] = checked_add(self.total_supply(), amt)
        balances = root["balances"]
        balances[str(to)] = checked_add(_as_int(balances.get(str(to)), 0), amt)
        self.host.emit("token_minted", token=self.address, to=str(to), amount=amt)

    @atomic
    def approve(self, spender: str, amount: int, *, sender: str) -> None:
        amt = to_uint256(amount)
        allowances = self._root()["allowances"]
        by_owner = allowances.setdefault(str(sender), {})
        if amt == 0:
            by_owner.pop(str(spender), None)
        else:
            by_owner[str(spender)] = amt
        self.host.emit("token_approval", token=self.address, owner=str(sender), spender=str(spender), amount=amt)

    @atomic
    def push(self, to: str, amount: int, *, sender: str) -> None:
        amt = to_uint256(amount)
        self._move(str(sender), str(to), amt)
        self.host.emit("token_transfer", token=self.address, sender=str(sender), to=str(to), amount=amt)

    @atomic
    def pull(self, owner: str, to: str, amount: int, *, sender: str) -> None:
        amt = to_uint256(amount)
        owner_s = str(owner)
        spender = str(sender)

        if owner_s != spender:
            current = self.allowance(owner_s, spender)
            if current < amt:
                raise TransferFailure(
                    "transfer_failed",
                    "insufficient_allowance",
                    {"token": self.address, "owner": owner_s, "spender": spender, "allowance": current, "amount": amt},
                )
            if current != UINT256_MAX:
                by_owner = self._root()["allowances"].setdefault(owner_s, {})
                by_owner[spender] = checked_sub(current, amt)

        self._move(owner_s, str(to), amt)
        self.host.emit("token_transfer", token=self.address, sender=owner_s, to=str(to), amount=amt)
