# src/stakepool/runtime/deploy_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from stakepool.crypto.sig import is_valid_public_key
from stakepool.ledger.constants import BASE, MAX_POOL_COUNT, MIN_LOCK_DURATION, ONE_YEAR
from stakepool.ledger.fixed_point import parse_units

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    if v is None:
        return int(default)
    try:
        return int(v)
    except (TypeError, ValueError) as e:
        raise ValueError(f"expected an integer, got {v!r}") from e


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


def _as_ratio(v: Any, default: str) -> int:
    """Ratios are written as decimals of 1.0 ("0.2", "1") and scaled by BASE."""
    return parse_units(default if v is None else v)


@dataclass(frozen=True)
class TokenConfig:
    address: str
    name: str
    symbol: str


@dataclass(frozen=True)
class PoolConfig:
    address: str
    name: str
    symbol: str
    deposit_token: str
    reward_token: str
    max_bonus: int
    max_lock_duration: int
    escrow_pool: str = ""
    escrow_portion: int = 0
    escrow_duration: int = 0
    transferable: bool = False
    # Scheduler weight (scaled by BASE); None keeps the pool off the scheduler.
    weight: Optional[int] = None


@dataclass(frozen=True)
class DeploymentConfig:
    mode: str  # "dev" | "prod"
    admin: str
    reward_token: str
    reward_source: str
    scheduler_address: str
    roles_address: str
    reward_per_second: int
    governance: Tuple[str, ...] = ()
    distributors: Tuple[str, ...] = ()
    tokens: Tuple[TokenConfig, ...] = ()
    pools: Tuple[PoolConfig, ...] = ()
    # Dev-only convenience: initial balances minted by the admin, and a
    # standing allowance from the reward source to the scheduler.
    balances: Dict[str, Dict[str, int]] = field(default_factory=dict)
    approve_reward_source: bool = False
    # Ed25519 public keys (hex) allowed to sign txs for each account.
    account_keys: Dict[str, Tuple[str, ...]] = field(default_factory=dict)


_ALLOWED_MODES = {"dev", "prod"}


def validate_deployment_config(cfg: DeploymentConfig) -> None:
    """Fail-fast validation; raises ValueError on the first problem found."""
    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    for name in ("admin", "reward_token", "reward_source", "scheduler_address", "roles_address"):
        v = getattr(cfg, name)
        if not isinstance(v, str) or not v.strip():
            raise ValueError(f"{name} must be a non-empty string")

    if int(cfg.reward_per_second) < 0:
        raise ValueError(f"reward_per_second must be >= 0; got: {cfg.reward_per_second}")

    token_addrs = [t.address for t in cfg.tokens]
    if len(set(token_addrs)) != len(token_addrs):
        raise ValueError("duplicate token address in tokens")
    if cfg.reward_token not in token_addrs:
        raise ValueError(f"reward_token {cfg.reward_token!r} is not declared in tokens")

    pool_addrs = [p.address for p in cfg.pools]
    if len(set(pool_addrs)) != len(pool_addrs):
        raise ValueError("duplicate pool address in pools")
    if set(pool_addrs) & set(token_addrs):
        raise ValueError("pool and token addresses must not overlap")

    scheduled = [p for p in cfg.pools if p.weight is not None]
    if len(scheduled) > MAX_POOL_COUNT:
        raise ValueError(f"at most {MAX_POOL_COUNT} pools may be registered with the scheduler")

    for p in cfg.pools:
        if p.deposit_token not in token_addrs:
            raise ValueError(f"pool {p.address!r}: deposit_token {p.deposit_token!r} is not declared")
        if p.reward_token not in token_addrs:
            raise ValueError(f"pool {p.address!r}: reward_token {p.reward_token!r} is not declared")
        if int(p.max_lock_duration) < MIN_LOCK_DURATION:
            raise ValueError(f"pool {p.address!r}: max_lock_duration must be >= {MIN_LOCK_DURATION}")
        if int(p.max_bonus) < 0:
            raise ValueError(f"pool {p.address!r}: max_bonus must be >= 0")
        if int(p.escrow_portion) < 0 or int(p.escrow_portion) > BASE:
            raise ValueError(f"pool {p.address!r}: escrow_portion must be within 0..1")
        if int(p.escrow_portion) > 0 and not p.escrow_pool:
            raise ValueError(f"pool {p.address!r}: escrow_portion requires an escrow_pool")
        if int(p.escrow_duration) < 0:
            raise ValueError(f"pool {p.address!r}: escrow_duration must be >= 0")
        if p.escrow_pool:
            if p.escrow_pool not in pool_addrs:
                raise ValueError(f"pool {p.address!r}: escrow_pool {p.escrow_pool!r} is not declared")
            if p.escrow_pool == p.address:
                raise ValueError(f"pool {p.address!r}: a pool cannot escrow into itself")
            escrow = next(e for e in cfg.pools if e.address == p.escrow_pool)
            if escrow.deposit_token != p.reward_token:
                raise ValueError(f"pool {p.address!r}: escrow pool must take {p.reward_token!r} deposits")
        if p.weight is not None and p.reward_token != cfg.reward_token:
            raise ValueError(f"pool {p.address!r}: scheduled pools must use the scheduler reward token")

    for account, keys in cfg.account_keys.items():
        if not str(account).strip():
            raise ValueError("account_keys entries need a non-empty account id")
        for pk in keys:
            if not is_valid_public_key(pk):
                raise ValueError(f"account {account!r}: {pk!r} is not a 32-byte ed25519 public key")

    # Escrow chains must be acyclic so pools can be built in order.
    escrow_of = {p.address: p.escrow_pool for p in cfg.pools}
    for start in escrow_of:
        seen = {start}
        cur = escrow_of.get(start)
        while cur:
            if cur in seen:
                raise ValueError(f"escrow cycle detected starting at pool {start!r}")
            seen.add(cur)
            cur = escrow_of.get(cur)


def default_deployment_config() -> DeploymentConfig:
    """Reference layout: one escrow pool and two staking pools at 20/80."""
    return DeploymentConfig(
        mode="prod",
        admin="deployer",
        reward_token="MC",
        reward_source="multisig",
        scheduler_address="liquidity-mining-manager",
        roles_address="roles",
        reward_per_second=0,
        tokens=(
            TokenConfig(address="MC", name="Merit Circle", symbol="MC"),
            TokenConfig(address="MC-LP", name="Merit Circle Uniswap LP", symbol="MCLP"),
        ),
        pools=(
            PoolConfig(
                address="escrow-pool",
                name="Escrowed Merit Circle",
                symbol="EMC",
                deposit_token="MC",
                reward_token="MC",
                max_bonus=0,
                max_lock_duration=ONE_YEAR * 10,
            ),
            PoolConfig(
                address="mc-pool",
                name="Staked Merit Circle",
                symbol="SMC",
                deposit_token="MC",
                reward_token="MC",
                max_bonus=parse_units("1"),
                max_lock_duration=ONE_YEAR,
                escrow_pool="escrow-pool",
                escrow_portion=parse_units("1"),
                escrow_duration=ONE_YEAR,
                weight=parse_units("0.2"),
            ),
            PoolConfig(
                address="mc-lp-pool",
                name="Staked Merit Circle Uniswap LP",
                symbol="SMCUNILP",
                deposit_token="MC-LP",
                reward_token="MC",
                max_bonus=parse_units("1"),
                max_lock_duration=ONE_YEAR,
                escrow_pool="escrow-pool",
                escrow_portion=parse_units("1"),
                escrow_duration=ONE_YEAR,
                weight=parse_units("0.8"),
            ),
        ),
    )


def _pool_from_raw(raw: Json) -> PoolConfig:
    if not isinstance(raw, dict):
        raise ValueError("each pool entry must be an object")
    address = _as_str(raw.get("address"), "")
    if not address:
        raise ValueError("pool entry is missing 'address'")
    weight = raw.get("weight")
    return PoolConfig(
        address=address,
        name=_as_str(raw.get("name"), address),
        symbol=_as_str(raw.get("symbol"), address.upper()),
        deposit_token=_as_str(raw.get("deposit_token"), ""),
        reward_token=_as_str(raw.get("reward_token"), ""),
        max_bonus=_as_ratio(raw.get("max_bonus"), "0"),
        max_lock_duration=_as_int(raw.get("max_lock_duration"), ONE_YEAR),
        escrow_pool=_as_str(raw.get("escrow_pool"), ""),
        escrow_portion=_as_ratio(raw.get("escrow_portion"), "0"),
        escrow_duration=_as_int(raw.get("escrow_duration"), 0),
        transferable=_as_bool(raw.get("transferable"), False),
        weight=None if weight is None else _as_ratio(weight, "0"),
    )


def _token_from_raw(raw: Json) -> TokenConfig:
    if not isinstance(raw, dict):
        raise ValueError("each token entry must be an object")
    address = _as_str(raw.get("address"), "")
    if not address:
        raise ValueError("token entry is missing 'address'")
    return TokenConfig(
        address=address,
        name=_as_str(raw.get("name"), address),
        symbol=_as_str(raw.get("symbol"), address.upper()),
    )


def _balances_from_raw(raw: Any) -> Dict[str, Dict[str, int]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("balances must be an object of {token: {account: amount}}")
    out: Dict[str, Dict[str, int]] = {}
    for token, by_account in raw.items():
        if not isinstance(by_account, dict):
            raise ValueError(f"balances[{token!r}] must be an object")
        out[str(token)] = {str(a): _as_int(v, 0) for a, v in by_account.items()}
    return out


def _account_keys_from_raw(raw: Any) -> Dict[str, Tuple[str, ...]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("account_keys must be an object of {account: [pubkey, ...]}")
    out: Dict[str, Tuple[str, ...]] = {}
    for account, keys in raw.items():
        if isinstance(keys, str):
            keys = [keys]
        out[str(account).strip()] = _str_tuple(keys)
    return out


def _str_tuple(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError("expected a list of account ids")
    return tuple(str(x).strip() for x in raw if str(x).strip())


def parse_deployment_config(raw: Json) -> DeploymentConfig:
    if not isinstance(raw, dict):
        raise ValueError("deployment config must be an object")

    d = default_deployment_config()
    tokens: List[TokenConfig] = [_token_from_raw(t) for t in raw.get("tokens") or []]
    pools: List[PoolConfig] = [_pool_from_raw(p) for p in raw.get("pools") or []]

    cfg = DeploymentConfig(
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        admin=_as_str(raw.get("admin"), d.admin),
        reward_token=_as_str(raw.get("reward_token"), d.reward_token),
        reward_source=_as_str(raw.get("reward_source"), d.reward_source),
        scheduler_address=_as_str(raw.get("scheduler_address"), d.scheduler_address),
        roles_address=_as_str(raw.get("roles_address"), d.roles_address),
        reward_per_second=_as_int(raw.get("reward_per_second"), d.reward_per_second),
        governance=_str_tuple(raw.get("governance")),
        distributors=_str_tuple(raw.get("distributors")),
        tokens=tuple(tokens) if tokens else d.tokens,
        pools=tuple(pools) if pools else d.pools,
        balances=_balances_from_raw(raw.get("balances")),
        approve_reward_source=_as_bool(raw.get("approve_reward_source"), False),
        account_keys=_account_keys_from_raw(raw.get("account_keys")),
    )
    validate_deployment_config(cfg)
    return cfg


def read_deployment_config_file(path: str) -> DeploymentConfig:
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    return parse_deployment_config(raw)


def load_deployment_config(*, config_path: Optional[str] = None) -> DeploymentConfig:
    p = config_path or os.environ.get("STAKEPOOL_DEPLOY_CONFIG_PATH")
    if p:
        return read_deployment_config_file(p)

    cfg = default_deployment_config()
    mode = (os.environ.get("STAKEPOOL_MODE") or "").strip().lower()
    if mode:
        cfg = replace(cfg, mode=mode)
    validate_deployment_config(cfg)
    return cfg
