# tests/test_structured_logging.py
from __future__ import annotations

import json
import logging
import os

import pytest

from stakepool import env as stakepool_env
from stakepool.runtime import metrics
from stakepool.runtime.structured_logging import log_event


def test_log_event_writes_sorted_json(caplog) -> None:
    logger = logging.getLogger("stakepool.test")
    with caplog.at_level(logging.INFO, logger="stakepool.test"):
        log_event(logger, "deposited", pool="p", amount=5)
    rec = json.loads(caplog.records[-1].getMessage())
    assert rec["event"] == "deposited"
    assert rec["amount"] == 5
    assert "ts_ms" in rec


def test_log_event_falls_back_for_unencodable_values(caplog) -> None:
    logger = logging.getLogger("stakepool.test")
    with caplog.at_level(logging.INFO, logger="stakepool.test"):
        log_event(logger, "odd", value=object())
    assert caplog.records[-1].getMessage().startswith("event=odd value=")


def test_prometheus_text_with_labels() -> None:
    metrics.reset()
    metrics.inc_counter("deposits_total", pool="mc-pool")
    metrics.inc_counter("deposits_total", 2, pool="mc-pool")
    metrics.inc_counter("deposits_total", pool="escrow-pool")
    metrics.set_gauge("scheduler_pool_count", 4, scheduler="sched")
    metrics.inc_counter("", pool="ignored")

    assert metrics.counter_value("deposits_total", pool="mc-pool") == 3
    text = metrics.format_prometheus()
    assert "# TYPE stakepool_deposits_total counter\n" in text
    assert text.count("# TYPE stakepool_deposits_total") == 1
    assert 'stakepool_deposits_total{pool="mc-pool"} 3\n' in text
    assert 'stakepool_deposits_total{pool="escrow-pool"} 1\n' in text
    assert 'stakepool_scheduler_pool_count{scheduler="sched"} 4\n' in text
    assert metrics.snapshot()["counters"]['deposits_total{pool="mc-pool"}'] == 3


def test_dotenv_loads_once(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / ".env"
    p.write_text("STAKEPOOL_TEST_DOTENV_VALUE=9191\n", encoding="utf-8")
    # setenv first so teardown removes whatever the loader wrote.
    monkeypatch.setenv("STAKEPOOL_TEST_DOTENV_VALUE", "unset")
    monkeypatch.delenv("STAKEPOOL_TEST_DOTENV_VALUE")
    monkeypatch.setattr(stakepool_env, "_LOADED", False)

    assert stakepool_env.load_dotenv_if_present(str(p)) is True
    assert os.environ["STAKEPOOL_TEST_DOTENV_VALUE"] == "9191"
    assert stakepool_env.load_dotenv_if_present(str(p)) is False
