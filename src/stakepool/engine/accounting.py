# src/stakepool/engine/accounting.py
from __future__ import annotations

"""
Pro-rata reward accounting (points per share with correction terms).

For every account:

    cumulative = (points_per_share * shares + points_correction) // POINTS_MULTIPLIER
    withdrawable = cumulative - withdrawn_rewards

points_per_share only grows, on distribute(). Every share-balance change must
be paired, in the same atomic step, with correct_on_shares_change() or
correct_on_transfer() using the points_per_share in effect at that moment, so
that minting, burning and transferring never moves past entitlement.

The engine never moves tokens. prepare_collect() books a withdrawal and
returns the amount; the caller performs (and may split) the transfer.
"""

from typing import Any, Callable, Dict

from stakepool.ledger.constants import POINTS_MULTIPLIER
from stakepool.ledger.fixed_point import checked_add, checked_mul, checked_sub, mul_div, signed_add, to_int256, to_uint256
from stakepool.runtime.errors import ArithmeticOverflowError, ZeroSharesError
from stakepool.runtime.host import Host
from stakepool.runtime.state_invariants import component_root

Json = Dict[str, Any]


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return int(default)


class RewardAccountingEngine:
    def __init__(
        self,
        host: Host,
        key: str,
        *,
        shares_of: Callable[[str], int],
        total_shares: Callable[[], int],
    ) -> None:
        self.host = host
        self.key = str(key)
        self._shares_of = shares_of
        self._total_shares = total_shares

        root = self._root()
        root.setdefault("points_per_share", 0)
        root.setdefault("points_correction", {})
        root.setdefault("withdrawn_rewards", {})

    def _root(self) -> Json:
        return component_root(self.host.state, "rewards", self.key)

    # ----------------------------
    # Reads
    # ----------------------------

    @property
    def points_per_share(self) -> int:
        return _as_int(self._root().get("points_per_share"), 0)

    def points_correction_of(self, account: str) -> int:
        return _as_int(self._root()["points_correction"].get(str(account)), 0)

    def withdrawn_rewards_of(self, account: str) -> int:
        return _as_int(self._root()["withdrawn_rewards"].get(str(account)), 0)

    def cumulative_rewards_of(self, account: str) -> int:
        raw = to_int256(checked_mul(self.points_per_share, self._shares_of(str(account))))
        points = signed_add(raw, self.points_correction_of(account))
        if points < 0:
            raise ArithmeticOverflowError(
                "underflow",
                "negative_cumulative_points",
                {"key": self.key, "account": str(account), "points": points},
            )
        return points // POINTS_MULTIPLIER

    def withdrawable_rewards_of(self, account: str) -> int:
        return checked_sub(self.cumulative_rewards_of(account), self.withdrawn_rewards_of(account))

    # ----------------------------
    # Writes (callers run these inside an atomic entry point)
    # ----------------------------

    def distribute(self, amount: int, *, sender: str) -> None:
        amt = to_uint256(amount)
        shares = int(self._total_shares())
        if shares <= 0:
            raise ZeroSharesError("zero_shares", "total_share_supply_is_zero", {"key": self.key, "amount": amt})
        if amt == 0:
            return

        root = self._root()
        root["points_per_share"] = checked_add(self.points_per_share, mul_div(amt, POINTS_MULTIPLIER, shares))
        self.host.emit("rewards_distributed", pool=self.key, sender=str(sender), amount=amt)

    def prepare_collect(self, account: str) -> int:
        acct = str(account)
        withdrawable = self.withdrawable_rewards_of(acct)
        if withdrawable > 0:
            withdrawn = self._root()["withdrawn_rewards"]
            withdrawn[acct] = checked_add(self.withdrawn_rewards_of(acct), withdrawable)
            self.host.emit("rewards_withdrawn", pool=self.key, account=acct, amount=withdrawable)
        return withdrawable

    def correct_on_shares_change(self, account: str, delta_shares: int) -> None:
        """Mint passes a negative delta, burn a positive one."""
        acct = str(account)
        magnitude = to_int256(int(delta_shares) * to_int256(self.points_per_share))
        corr = self._root()["points_correction"]
        corr[acct] = signed_add(self.points_correction_of(acct), magnitude)

    def correct_on_transfer(self, from_account: str, to_account: str, share_amount: int) -> None:
        magnitude = to_int256(checked_mul(self.points_per_share, share_amount))
        corr = self._root()["points_correction"]
        src, dst = str(from_account), str(to_account)
        corr[src] = signed_add(self.points_correction_of(src), magnitude)
        corr[dst] = signed_add(self.points_correction_of(dst), -magnitude)
