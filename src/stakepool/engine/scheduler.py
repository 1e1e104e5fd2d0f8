# src/stakepool/engine/scheduler.py
from __future__ import annotations

"""
Weighted multi-pool reward emission.

Rewards accrue at `reward_per_second` since the last distribution. Each
distribution pulls the accrued amount from the reward source and hands every
registered pool `total * weight / total_weight` through its reward intake.
Pool intakes are isolated: a failing pool is skipped for that tick and its
allocation is returned to the reward source with any rounding remainder.
"""

import logging
from typing import Any, Dict, List, Protocol, Tuple, Union

from stakepool.ledger.constants import (
    DUST_THRESHOLD,
    GOV_ROLE,
    MAX_POOL_COUNT,
    REWARD_DISTRIBUTOR_ROLE,
    UINT256_MAX,
)
from stakepool.ledger.fixed_point import checked_add, checked_mul, checked_sub, mul_div, to_uint256
from stakepool.ledger.token import FungibleToken
from stakepool.runtime.errors import (
    CapacityExceededError,
    DuplicatePoolError,
    InvalidParameterError,
    NotFoundError,
    PermissionDeniedError,
)
from stakepool.runtime.host import Host, atomic
from stakepool.runtime.state_invariants import component_root
from stakepool.runtime.structured_logging import log_event

Json = Dict[str, Any]

log = logging.getLogger("stakepool.scheduler")


class DistributionReceiver(Protocol):
    address: str

    def distribute_rewards(self, amount: int, *, sender: str) -> None: ...


class Permissions(Protocol):
    def has_role(self, role: str, account: str) -> bool: ...


class EmissionScheduler:
    def __init__(
        self,
        host: Host,
        address: str,
        *,
        reward_token: str,
        reward_source: str,
        permissions: Permissions,
    ) -> None:
        if not str(reward_token or "").strip():
            raise InvalidParameterError("invalid_param", "reward_token_required", {"address": address})
        if not str(reward_source or "").strip():
            raise InvalidParameterError("invalid_param", "reward_source_required", {"address": address})

        self.host = host
        self.address = str(address)
        self.reward_token = str(reward_token)
        self.reward_source = str(reward_source)
        self.permissions = permissions
        host.register(self)

        root = self._root()
        root.setdefault("pools", [])
        root.setdefault("pool_added", {})
        root.setdefault("total_weight", 0)
        root.setdefault("reward_per_second", 0)
        root.setdefault("last_distribution", 0)

    def _root(self) -> Json:
        return component_root(self.host.state, "emission", self.address)

    def _token(self) -> FungibleToken:
        return self.host.resolve(self.reward_token)

    def _require_role(self, role: str, sender: str) -> None:
        if not self.permissions.has_role(role, sender):
            raise PermissionDeniedError("forbidden", "missing_role", {"role": role, "sender": str(sender)})

    # ----------------------------
    # Reads
    # ----------------------------

    @property
    def total_weight(self) -> int:
        return int(self._root().get("total_weight", 0))

    @property
    def reward_per_second(self) -> int:
        return int(self._root().get("reward_per_second", 0))

    @property
    def last_distribution(self) -> int:
        return int(self._root().get("last_distribution", 0))

    @property
    def pool_count(self) -> int:
        return len(self._root()["pools"])

    def get_pools(self) -> List[Tuple[str, int]]:
        return [(str(p["pool"]), int(p["weight"])) for p in self._root()["pools"]]

    def is_pool_added(self, address: str) -> bool:
        return bool(self._root()["pool_added"].get(str(address)))

    # ----------------------------
    # Governance
    # ----------------------------

    @atomic
    def add_pool(self, pool: Union[DistributionReceiver, str, None], weight: int, *, sender: str) -> int:
        self._require_role(GOV_ROLE, sender)
        self._distribute(sender)

        address = pool if isinstance(pool, str) else getattr(pool, "address", None)
        if not address:
            raise InvalidParameterError("invalid_param", "pool_contract_must_be_set", {})
        address = str(address)
        if not self.host.is_registered(address):
            raise NotFoundError("not_found", "unknown_pool_contract", {"pool": address})

        root = self._root()
        if root["pool_added"].get(address):
            raise DuplicatePoolError("conflict", "pool_already_added", {"pool": address})
        if len(root["pools"]) >= MAX_POOL_COUNT:
            raise CapacityExceededError("capacity", "max_pool_count_reached", {"max": MAX_POOL_COUNT})

        w = to_uint256(weight)
        root["pools"].append({"pool": address, "weight": w})
        root["pool_added"][address] = True
        root["total_weight"] = checked_add(self.total_weight, w)

        self._token().approve(address, UINT256_MAX, sender=self.address)

        self.host.gauge("scheduler_pool_count", len(root["pools"]), scheduler=self.address)
        self.host.emit("pool_added", scheduler=self.address, pool=address, weight=w)
        return len(root["pools"]) - 1

    @atomic
    def remove_pool(self, pool_id: int, *, sender: str) -> str:
        self._require_role(GOV_ROLE, sender)
        idx = self._check_pool_id(pool_id)
        self._distribute(sender)

        root = self._root()
        pools = root["pools"]
        entry = pools[idx]
        address = str(entry["pool"])

        root["total_weight"] = checked_sub(self.total_weight, int(entry["weight"]))
        pools[idx] = pools[-1]
        pools.pop()
        root["pool_added"].pop(address, None)

        # Removed pools lose their standing pull authorization.
        self._token().approve(address, 0, sender=self.address)

        self.host.gauge("scheduler_pool_count", len(pools), scheduler=self.address)
        self.host.emit("pool_removed", scheduler=self.address, pool_id=idx, pool=address)
        return address

    @atomic
    def adjust_weight(self, pool_id: int, new_weight: int, *, sender: str) -> None:
        self._require_role(GOV_ROLE, sender)
        idx = self._check_pool_id(pool_id)
        self._distribute(sender)

        root = self._root()
        entry = root["pools"][idx]
        w = to_uint256(new_weight)
        root["total_weight"] = checked_add(checked_sub(self.total_weight, int(entry["weight"])), w)
        entry["weight"] = w

        self.host.emit("weight_adjusted", scheduler=self.address, pool_id=idx, pool=str(entry["pool"]), weight=w)

    @atomic
    def set_reward_per_second(self, rate: int, *, sender: str) -> None:
        self._require_role(GOV_ROLE, sender)
        self._distribute(sender)

        r = to_uint256(rate)
        self._root()["reward_per_second"] = r
        self.host.emit("reward_per_second_set", scheduler=self.address, reward_per_second=r)

    def _check_pool_id(self, pool_id: int) -> int:
        idx = int(pool_id)
        if idx < 0 or idx >= self.pool_count:
            raise NotFoundError("not_found", "pool_does_not_exist", {"pool_id": idx, "pool_count": self.pool_count})
        return idx

    # ----------------------------
    # Distribution
    # ----------------------------

    @atomic
    def distribute_rewards(self, *, sender: str) -> int:
        self._require_role(REWARD_DISTRIBUTOR_ROLE, sender)
        return self._distribute(sender)

    def _distribute(self, sender: str) -> int:
        root = self._root()
        now = self.host.now()
        elapsed = max(now - self.last_distribution, 0)
        total_amount = checked_mul(self.reward_per_second, elapsed)
        root["last_distribution"] = now

        pools = self.get_pools()
        total_weight = self.total_weight
        if not pools or total_amount == 0 or total_weight == 0:
            return 0

        token = self._token()
        token.pull(self.reward_source, self.address, total_amount, sender=self.address)

        for pool_id, (address, weight) in enumerate(pools):
            pool_amount = mul_div(total_amount, weight, total_weight)
            receiver: DistributionReceiver = self.host.resolve(address)
            ok, err = self.host.isolated_call(receiver.distribute_rewards, pool_amount, sender=self.address)
            if not ok:
                self.host.count("pool_distribution_skipped", pool=address)
                log_event(
                    log,
                    "pool_distribution_failed",
                    level=logging.WARNING,
                    scheduler=self.address,
                    pool_id=pool_id,
                    pool=address,
                    amount=pool_amount,
                    error=str(err),
                    error_type=type(err).__name__,
                )

        left_over = token.balance_of(self.address)
        if left_over > DUST_THRESHOLD:
            token.push(self.reward_source, left_over, sender=self.address)

        self.host.count("distributions_total", scheduler=self.address)
        self.host.emit("emission_distributed", scheduler=self.address, sender=str(sender), amount=total_amount)
        return total_amount
