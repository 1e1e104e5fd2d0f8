# tests/test_deploy_config.py
from __future__ import annotations

import json
from pathlib import Path

import pytest

from stakepool.ledger.constants import BASE, MAX_POOL_COUNT, ONE_YEAR
from stakepool.runtime.deploy_config import (
    default_deployment_config,
    load_deployment_config,
    parse_deployment_config,
    read_deployment_config_file,
    validate_deployment_config,
)


def _pool(address: str, **kw) -> dict:
    base = {
        "address": address,
        "deposit_token": "MC",
        "reward_token": "MC",
        "max_bonus": "1",
        "max_lock_duration": ONE_YEAR,
    }
    base.update(kw)
    return base


def test_default_config_is_valid_reference_layout() -> None:
    cfg = default_deployment_config()
    validate_deployment_config(cfg)

    by_addr = {p.address: p for p in cfg.pools}
    assert by_addr["escrow-pool"].max_lock_duration == ONE_YEAR * 10
    assert by_addr["escrow-pool"].weight is None
    assert by_addr["mc-pool"].escrow_portion == BASE
    assert by_addr["mc-pool"].weight == 2 * 10**17
    assert by_addr["mc-lp-pool"].weight == 8 * 10**17
    assert by_addr["mc-lp-pool"].deposit_token == "MC-LP"


def test_parse_applies_defaults_and_ratios() -> None:
    cfg = parse_deployment_config(
        {
            "mode": "DEV",
            "reward_per_second": "25",
            "distributors": ["keeper", " "],
            "pools": [_pool("a", weight="0.25", escrow_portion="0.5", escrow_pool="e"), _pool("e", max_bonus=0)],
        }
    )
    assert cfg.mode == "dev"
    assert cfg.reward_per_second == 25
    assert cfg.distributors == ("keeper",)
    assert cfg.reward_token == "MC"
    a = cfg.pools[0]
    assert a.weight == BASE // 4
    assert a.escrow_portion == BASE // 2
    assert a.max_bonus == BASE
    assert a.transferable is False
    assert cfg.pools[1].weight is None


@pytest.mark.parametrize(
    "raw",
    [
        {"mode": "staging"},
        {"reward_per_second": -1},
        {"pools": [_pool("a"), _pool("a")]},
        {"pools": [_pool("MC")]},
        {"pools": [_pool("a", max_lock_duration=60)]},
        {"pools": [_pool("a", escrow_portion="1.5")]},
        {"pools": [_pool("a", escrow_portion="0.5")]},
        {"pools": [_pool("a", escrow_pool="missing")]},
        {"pools": [_pool("a", escrow_pool="a")]},
        {"pools": [_pool("a", escrow_pool="b"), _pool("b", escrow_pool="a")]},
        {"pools": [_pool("a", deposit_token="NOPE")]},
        {"pools": [_pool("a", escrow_pool="lp"), _pool("lp", deposit_token="MC-LP")]},
        {"pools": [_pool("a", reward_token="MC-LP", weight="1")]},
        {"pools": [_pool(f"p{i}", weight="1") for i in range(MAX_POOL_COUNT + 1)]},
        {"tokens": [{"address": "X"}], "reward_token": "Y"},
    ],
)
def test_invalid_configs_fail_fast(raw: dict) -> None:
    with pytest.raises(ValueError):
        parse_deployment_config(raw)


def test_read_json_and_yaml_files(tmp_path: Path) -> None:
    jp = tmp_path / "deploy.json"
    jp.write_text(json.dumps({"mode": "dev", "reward_per_second": 3}), encoding="utf-8")
    assert read_deployment_config_file(str(jp)).reward_per_second == 3

    yp = tmp_path / "deploy.yaml"
    yp.write_text(
        "\n".join(
            [
                "mode: dev",
                "reward_token: R",
                "reward_source: vault",
                "tokens:",
                "  - {address: R, name: Reward, symbol: RWD}",
                "pools:",
                "  - address: p1",
                "    deposit_token: R",
                "    reward_token: R",
                "    max_bonus: 0.5",
                "    max_lock_duration: 86400",
                "    transferable: true",
                "    weight: 1",
                "",
            ]
        ),
        encoding="utf-8",
    )
    cfg = read_deployment_config_file(str(yp))
    assert cfg.reward_source == "vault"
    assert cfg.tokens[0].symbol == "RWD"
    [p1] = cfg.pools
    assert p1.max_bonus == BASE // 2
    assert p1.transferable is True
    assert p1.weight == BASE


def test_load_from_env_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / "cfg.json"
    p.write_text(json.dumps({"mode": "dev", "admin": "ops"}), encoding="utf-8")
    monkeypatch.setenv("STAKEPOOL_DEPLOY_CONFIG_PATH", str(p))
    assert load_deployment_config().admin == "ops"


def test_load_default_with_mode_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STAKEPOOL_DEPLOY_CONFIG_PATH", raising=False)
    monkeypatch.setenv("STAKEPOOL_MODE", "dev")
    assert load_deployment_config().mode == "dev"

    monkeypatch.setenv("STAKEPOOL_MODE", "bogus")
    with pytest.raises(ValueError):
        load_deployment_config()
