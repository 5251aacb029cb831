from __future__ import annotations

import pytest

from tradeboard.core.types import PerformanceMetrics, PerformanceSnapshot
from tradeboard.monitor.reporter import (
    PerformanceReporter,
    normalize_account_history,
    normalize_metrics,
    normalize_recent_trades,
)
from tradeboard.monitor.storage import SnapshotStore


FILLS = {
    "bot-1": [
        {"id": "b", "coin": "BTC", "side": "BUY", "price": 100, "quantity": 1, "executed_at": 0},
        {"id": "s", "coin": "BTC", "side": "SELL", "price": 130, "quantity": 1, "executed_at": 60_000},
    ],
    "bot-empty": [{"id": "x", "coin": "BTC", "side": "BUY", "price": 0, "quantity": 1}],
}


@pytest.fixture()
def store(tmp_path, monkeypatch):
    monkeypatch.delenv("TRADEBOARD_SNAPSHOT_DB", raising=False)
    s = SnapshotStore(db_path=str(tmp_path / "snapshots.db"))
    yield s
    s.close()


def test_stored_snapshot_wins_over_computation(store) -> None:
    store.record_snapshot(
        PerformanceSnapshot(
            agent_id="bot-1",
            period_start="a",
            period_end="b",
            computed_at="2024-01-01T00:00:00+00:00",
            metrics={"account_value": 42.0, "win_rate": "50", "sharpe_ratio": None},
            account_history=[{"date": "2024-01-01T00:00:00.000Z", "value": 42.0}, {"value": 1}],
            recent_trades=[{"id": "t1", "coin": "BTC", "side": "LONG", "pnl": 3}, {"id": "t2", "side": "LONG"}],
            prompt="stay flat on weekends",
        )
    )
    calls = []
    reporter = PerformanceReporter(store, fill_loader=lambda agent_id: calls.append(agent_id) or [])
    result = reporter.get_performance("bot-1")
    assert result is not None
    assert result["source"] == "snapshot"
    assert result["metrics"]["account_value"] == 42.0
    assert result["metrics"]["win_rate"] == 50.0
    assert result["metrics"]["sharpe_ratio"] == 0.0
    assert len(result["account_history"]) == 1
    assert [t["id"] for t in result["recent_trades"]] == ["t1"]
    assert result["prompt"] == "stay flat on weekends"
    assert result["period_start"] == "a" and result["period_end"] == "b"
    assert calls == []


def test_falls_back_to_fills_without_snapshot(store) -> None:
    reporter = PerformanceReporter(store, fill_loader=lambda agent_id: FILLS.get(agent_id, []))
    result = reporter.get_performance("bot-1", now=120_000)
    assert result is not None
    assert result["source"] == "computed"
    assert result["metrics"]["account_value"] == pytest.approx(30.0)
    assert result["metrics"]["total_trades"] == 1.0
    assert result["account_history"][-1] == {"date": "1970-01-01T00:02:00.000Z", "value": 30.0}
    assert result["recent_trades"][0]["id"] == "b-s"
    assert result["period_start"] == "1970-01-01T00:00:00.000Z"
    assert result["period_end"] == "1970-01-01T00:01:00.000Z"


def test_agent_without_valid_fills_gets_zero_metrics(store) -> None:
    reporter = PerformanceReporter(store, fill_loader=lambda agent_id: FILLS.get(agent_id, []))
    result = reporter.get_performance("bot-empty", now=1)
    assert result is not None
    assert result["metrics"] == PerformanceMetrics.zero().to_dict()
    assert result["account_history"] == []
    assert result["period_start"] is None


def test_no_snapshot_and_no_loader_gives_nothing() -> None:
    assert PerformanceReporter(None).get_performance("ghost") is None


def test_normalizers_tolerate_malformed_payloads() -> None:
    assert normalize_metrics("oops") == PerformanceMetrics.zero().to_dict()
    assert normalize_account_history({"date": "x"}) == []
    assert normalize_recent_trades(None) == []
    assert normalize_recent_trades([{"id": 1, "coin": "ETH", "side": "SHORT", "entry_px": "2.5"}]) == [
        {"id": "1", "coin": "ETH", "side": "SHORT", "time": 0.0, "entry_px": 2.5, "exit_px": 0.0, "pnl": 0.0}
    ]
