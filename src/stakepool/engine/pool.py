# src/stakepool/engine/pool.py
from __future__ import annotations

"""
Time-locked deposit pool.

Deposits lock the pool's deposit token for a clamped duration and mint
claim-shares weighted by a duration multiplier. Claim-shares accrue the
pool's reward token pro-rata through RewardAccountingEngine. On claim, a
fixed portion of rewards can be re-locked in a companion escrow pool.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from stakepool.engine.accounting import RewardAccountingEngine
from stakepool.ledger.constants import BASE, DUST_THRESHOLD, MIN_LOCK_DURATION, UINT256_MAX
from stakepool.ledger.fixed_point import checked_add, mul_div, to_uint256
from stakepool.ledger.shares import ShareLedger
from stakepool.ledger.token import FungibleToken
from stakepool.runtime.errors import (
    InvalidParameterError,
    NotFoundError,
    TooSoonError,
    TransferDisabledError,
    TransferFailure,
    ZeroAmountError,
)
from stakepool.runtime.host import Host, atomic
from stakepool.runtime.state_invariants import component_root

Json = Dict[str, Any]


@dataclass(frozen=True)
class Deposit:
    amount: int
    start: int
    end: int

    @property
    def duration(self) -> int:
        return int(self.end) - int(self.start)

    @staticmethod
    def from_json(j: Any) -> "Deposit":
        if isinstance(j, Deposit):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return Deposit(amount=int(j.get("amount", 0)), start=int(j.get("start", 0)), end=int(j.get("end", 0)))

    def to_json(self) -> Json:
        return {"amount": int(self.amount), "start": int(self.start), "end": int(self.end)}


@dataclass(frozen=True)
class PoolParams:
    """Immutable per-pool parameters.

    escrow_portion and max_bonus are fixed-point ratios scaled by BASE.
    """

    name: str
    symbol: str
    deposit_token: str
    reward_token: str
    max_bonus: int
    max_lock_duration: int
    escrow_pool: Optional[str] = None
    escrow_portion: int = 0
    escrow_duration: int = 0
    transferable: bool = True


def validate_pool_params(p: PoolParams) -> None:
    if not str(p.deposit_token or "").strip():
        raise InvalidParameterError("invalid_param", "deposit_token_required", {"pool": p.name})
    if not str(p.reward_token or "").strip():
        raise InvalidParameterError("invalid_param", "reward_token_required", {"pool": p.name})
    if int(p.max_lock_duration) < MIN_LOCK_DURATION:
        raise InvalidParameterError(
            "invalid_param",
            "max_lock_duration_below_minimum",
            {"max_lock_duration": int(p.max_lock_duration), "min_lock_duration": MIN_LOCK_DURATION},
        )
    if int(p.max_bonus) < 0:
        raise InvalidParameterError("invalid_param", "max_bonus_negative", {"max_bonus": int(p.max_bonus)})
    if int(p.escrow_portion) < 0 or int(p.escrow_portion) > BASE:
        raise InvalidParameterError(
            "invalid_param", "escrow_portion_out_of_range", {"escrow_portion": int(p.escrow_portion)}
        )
    if int(p.escrow_portion) > 0 and not p.escrow_pool:
        # Escrowed rewards would stay in pool custody with no owner.
        raise InvalidParameterError(
            "invalid_param", "escrow_portion_requires_escrow_pool", {"escrow_portion": int(p.escrow_portion)}
        )
    if int(p.escrow_duration) < 0:
        raise InvalidParameterError(
            "invalid_param", "escrow_duration_negative", {"escrow_duration": int(p.escrow_duration)}
        )


class TimeLockedPool:
    def __init__(self, host: Host, address: str, params: PoolParams) -> None:
        validate_pool_params(params)
        self.host = host
        self.address = str(address)
        self.params = params

        if params.escrow_pool:
            escrow = host.resolve(params.escrow_pool)
            if not isinstance(escrow, TimeLockedPool):
                raise InvalidParameterError("invalid_param", "escrow_pool_not_a_pool", {"escrow_pool": params.escrow_pool})
            if escrow.params.deposit_token != params.reward_token:
                raise InvalidParameterError(
                    "invalid_param",
                    "escrow_deposit_token_mismatch",
                    {"escrow_deposit_token": escrow.params.deposit_token, "reward_token": params.reward_token},
                )

        host.register(self)
        self.shares = ShareLedger(host, self.address)
        self.rewards = RewardAccountingEngine(
            host,
            self.address,
            shares_of=self.shares.balance_of,
            total_shares=self.shares.total_supply,
        )
        self._root().setdefault("deposits", {})

        # Escrow deposits pull reward tokens from this pool.
        if params.escrow_pool:
            self._reward_token().approve(params.escrow_pool, UINT256_MAX, sender=self.address)

    def _root(self) -> Json:
        return component_root(self.host.state, "pools", self.address)

    def _deposit_token(self) -> FungibleToken:
        return self.host.resolve(self.params.deposit_token)

    def _reward_token(self) -> FungibleToken:
        return self.host.resolve(self.params.reward_token)

    def _escrow(self) -> Optional["TimeLockedPool"]:
        if not self.params.escrow_pool:
            return None
        return self.host.resolve(self.params.escrow_pool)

    def _deposits(self, account: str) -> List[Json]:
        by_account = self._root()["deposits"]
        cur = by_account.get(str(account))
        if not isinstance(cur, list):
            cur = []
            by_account[str(account)] = cur
        return cur

    # ----------------------------
    # Reads
    # ----------------------------

    @property
    def name(self) -> str:
        return self.params.name

    @property
    def transferable(self) -> bool:
        return bool(self.params.transferable)

    def get_multiplier(self, duration: int) -> int:
        """BASE + max_bonus * duration / max_lock_duration."""
        return BASE + mul_div(self.params.max_bonus, to_uint256(duration), self.params.max_lock_duration)

    def clamp_duration(self, requested: int) -> int:
        d = min(int(requested), int(self.params.max_lock_duration))
        return max(d, MIN_LOCK_DURATION)

    def balance_of(self, account: str) -> int:
        return self.shares.balance_of(account)

    def total_supply(self) -> int:
        return self.shares.total_supply()

    def allowance(self, owner: str, spender: str) -> int:
        return self.shares.allowance(owner, spender)

    def withdrawable_rewards_of(self, account: str) -> int:
        return self.rewards.withdrawable_rewards_of(account)

    def cumulative_rewards_of(self, account: str) -> int:
        return self.rewards.cumulative_rewards_of(account)

    def withdrawn_rewards_of(self, account: str) -> int:
        return self.rewards.withdrawn_rewards_of(account)

    def get_deposits_of(self, account: str) -> List[Deposit]:
        cur = self._root()["deposits"].get(str(account)) or []
        return [Deposit.from_json(d) for d in cur]

    def get_deposits_of_length(self, account: str) -> int:
        return len(self._root()["deposits"].get(str(account)) or [])

    def get_total_deposit(self, account: str) -> int:
        return sum(d.amount for d in self.get_deposits_of(account))

    # ----------------------------
    # Share mutations (always paired with a reward correction)
    # ----------------------------

    def _mint(self, account: str, amount: int) -> None:
        self.shares.mint(account, amount)
        self.rewards.correct_on_shares_change(account, -int(amount))

    def _burn(self, account: str, amount: int) -> None:
        self.shares.burn(account, amount)
        self.rewards.correct_on_shares_change(account, int(amount))

    def _move(self, owner: str, to: str, amount: int) -> None:
        self.shares.move(owner, to, amount)
        self.rewards.correct_on_transfer(owner, to, amount)

    def _require_transferable(self, op: str) -> None:
        if not self.params.transferable:
            raise TransferDisabledError("transfer_disabled", "non_transferable_pool", {"pool": self.address, "op": op})

    # ----------------------------
    # Entry points
    # ----------------------------

    @atomic
    def deposit(self, amount: int, duration: int, receiver: str, *, sender: str) -> Deposit:
        amt = to_uint256(amount)
        if amt == 0:
            raise ZeroAmountError("invalid_amount", "cannot_deposit_zero", {"pool": self.address})

        lock = self.clamp_duration(duration)
        now = self.host.now()

        self._deposit_token().pull(sender, self.address, amt, sender=self.address)

        dep = Deposit(amount=amt, start=now, end=checked_add(now, lock))
        self._deposits(receiver).append(dep.to_json())

        mint_amount = mul_div(amt, self.get_multiplier(lock), BASE)
        self._mint(receiver, mint_amount)

        self.host.count("deposits_total", pool=self.address)
        self.host.emit(
            "deposited",
            pool=self.address,
            amount=amt,
            duration=lock,
            receiver=str(receiver),
            sender=str(sender),
            shares=mint_amount,
        )
        return dep

    @atomic
    def withdraw(self, deposit_id: int, receiver: str, *, sender: str) -> int:
        deposits = self._deposits(sender)
        idx = int(deposit_id)
        if idx < 0 or idx >= len(deposits):
            raise NotFoundError(
                "not_found",
                "deposit_does_not_exist",
                {"pool": self.address, "account": str(sender), "deposit_id": idx},
            )

        dep = Deposit.from_json(deposits[idx])
        now = self.host.now()
        if now < dep.end:
            raise TooSoonError("too_soon", "deposit_still_locked", {"deposit_id": idx, "end": dep.end, "now": now})

        share_amount = mul_div(dep.amount, self.get_multiplier(dep.duration), BASE)

        deposits[idx] = deposits[-1]
        deposits.pop()

        self._burn(sender, share_amount)
        self._deposit_token().push(receiver, dep.amount, sender=self.address)

        self.host.count("withdrawals_total", pool=self.address)
        self.host.emit(
            "withdrawn",
            pool=self.address,
            deposit_id=idx,
            receiver=str(receiver),
            sender=str(sender),
            amount=dep.amount,
            shares=share_amount,
        )
        return dep.amount

    @atomic
    def claim_rewards(self, receiver: str, *, sender: str) -> Json:
        reward_amount = self.rewards.prepare_collect(sender)
        escrowed = mul_div(reward_amount, self.params.escrow_portion, BASE)
        liquid = reward_amount - escrowed

        escrow = self._escrow()
        if escrowed != 0 and escrow is not None:
            escrow.deposit(escrowed, self.params.escrow_duration, receiver, sender=self.address)

        if liquid > DUST_THRESHOLD:
            self._reward_token().push(receiver, liquid, sender=self.address)

        self.host.count("claims_total", pool=self.address)
        self.host.emit(
            "rewards_claimed",
            pool=self.address,
            sender=str(sender),
            receiver=str(receiver),
            escrowed=escrowed,
            liquid=liquid,
        )
        return {"escrowed": escrowed, "liquid": liquid}

    @atomic
    def distribute_rewards(self, amount: int, *, sender: str) -> None:
        """Reward intake: pull `amount` of reward token from sender and distribute it.

        Fails with ZeroSharesError while no claim-shares are outstanding.
        """
        amt = to_uint256(amount)
        self._reward_token().pull(sender, self.address, amt, sender=self.address)
        self.rewards.distribute(amt, sender=sender)

    @atomic
    def transfer(self, to: str, amount: int, *, sender: str) -> None:
        self._require_transferable("transfer")
        self._move(sender, to, amount)
        self.host.emit("shares_transferred", pool=self.address, sender=str(sender), to=str(to), amount=int(amount))

    @atomic
    def approve(self, spender: str, amount: int, *, sender: str) -> None:
        self._require_transferable("approve")
        self.shares.set_allowance(sender, spender, amount)
        self.host.emit("shares_approved", pool=self.address, owner=str(sender), spender=str(spender), amount=int(amount))

    @atomic
    def transfer_from(self, owner: str, to: str, amount: int, *, sender: str) -> None:
        self._require_transferable("transfer_from")
        amt = to_uint256(amount)
        current = self.shares.allowance(owner, sender)
        if current < amt:
            raise TransferFailure(
                "transfer_failed",
                "insufficient_share_allowance",
                {"pool": self.address, "owner": str(owner), "spender": str(sender), "allowance": current},
            )
        if current != UINT256_MAX:
            self.shares.set_allowance(owner, sender, current - amt)
        self._move(owner, to, amt)
        self.host.emit("shares_transferred", pool=self.address, sender=str(owner), to=str(to), amount=amt)
