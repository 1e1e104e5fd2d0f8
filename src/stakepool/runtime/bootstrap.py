# src/stakepool/runtime/bootstrap.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from stakepool.engine.pool import PoolParams, TimeLockedPool
from stakepool.engine.scheduler import EmissionScheduler
from stakepool.ledger.accounts import register_account_key
from stakepool.ledger.constants import GOV_ROLE, REWARD_DISTRIBUTOR_ROLE, UINT256_MAX
from stakepool.ledger.roles import RoleRegistry
from stakepool.ledger.token import FungibleToken
from stakepool.runtime.deploy_config import DeploymentConfig, PoolConfig, load_deployment_config
from stakepool.runtime.host import Clock, Host


@dataclass
class World:
    """A constructed deployment: host plus every component by address."""

    host: Host
    config: DeploymentConfig
    roles: RoleRegistry
    scheduler: EmissionScheduler
    tokens: Dict[str, FungibleToken] = field(default_factory=dict)
    pools: Dict[str, TimeLockedPool] = field(default_factory=dict)

    def pool(self, address: str) -> TimeLockedPool:
        return self.pools[address]

    def token(self, address: str) -> FungibleToken:
        return self.tokens[address]


def _pool_build_order(pools: List[PoolConfig]) -> List[PoolConfig]:
    """Escrow targets are built before the pools that escrow into them."""
    by_addr = {p.address: p for p in pools}
    out: List[PoolConfig] = []
    done: set[str] = set()

    def visit(p: PoolConfig) -> None:
        if p.address in done:
            return
        if p.escrow_pool:
            visit(by_addr[p.escrow_pool])
        done.add(p.address)
        out.append(p)

    for p in pools:
        visit(p)
    return out


def bootstrap_world(cfg: DeploymentConfig, *, clock: Optional[Clock] = None) -> World:
    """Construct tokens, roles, pools and the scheduler from a validated config."""
    host = Host(clock=clock)
    admin = cfg.admin

    roles = RoleRegistry(host, cfg.roles_address, admin=admin)
    # The deployer holds governance for setup; configured accounts are added.
    roles.grant_role(GOV_ROLE, admin, sender=admin)
    for acct in cfg.governance:
        roles.grant_role(GOV_ROLE, acct, sender=admin)
    for acct in cfg.distributors:
        roles.grant_role(REWARD_DISTRIBUTOR_ROLE, acct, sender=admin)

    tokens: Dict[str, FungibleToken] = {}
    for t in cfg.tokens:
        tokens[t.address] = FungibleToken(host, t.address, name=t.name, symbol=t.symbol, minter=admin)

    pools: Dict[str, TimeLockedPool] = {}
    for p in _pool_build_order(list(cfg.pools)):
        params = PoolParams(
            name=p.name,
            symbol=p.symbol,
            deposit_token=p.deposit_token,
            reward_token=p.reward_token,
            max_bonus=p.max_bonus,
            max_lock_duration=p.max_lock_duration,
            escrow_pool=p.escrow_pool or None,
            escrow_portion=p.escrow_portion,
            escrow_duration=p.escrow_duration,
            transferable=p.transferable,
        )
        pools[p.address] = TimeLockedPool(host, p.address, params)

    scheduler = EmissionScheduler(
        host,
        cfg.scheduler_address,
        reward_token=cfg.reward_token,
        reward_source=cfg.reward_source,
        permissions=roles,
    )

    for token_addr, by_account in cfg.balances.items():
        for account, amount in by_account.items():
            if int(amount) > 0:
                tokens[token_addr].mint(account, int(amount), sender=admin)

    for account, keys in cfg.account_keys.items():
        for pk in keys:
            register_account_key(host, account, pk)

    if cfg.approve_reward_source:
        tokens[cfg.reward_token].approve(scheduler.address, UINT256_MAX, sender=cfg.reward_source)

    for p in cfg.pools:
        if p.weight is not None:
            scheduler.add_pool(pools[p.address], p.weight, sender=admin)

    if cfg.reward_per_second > 0:
        scheduler.set_reward_per_second(cfg.reward_per_second, sender=admin)

    return World(host=host, config=cfg, roles=roles, scheduler=scheduler, tokens=tokens, pools=pools)


def build_world(cfg: Optional[DeploymentConfig] = None, *, clock: Optional[Clock] = None) -> World:
    """Build a World from an explicit config or, if omitted, from the environment."""
    return bootstrap_world(cfg or load_deployment_config(), clock=clock)
