from __future__ import annotations

import statistics

import pytest

from tradeboard.core.config import EngineConfig
from tradeboard.core.types import Fill, PerformanceMetrics, TimelinePoint
from tradeboard.engine.completed import match_completed_trades
from tradeboard.engine.metrics import (
    compute_agent_performance,
    compute_metrics,
    percent_change,
    select_baseline,
    sharpe_ratio,
    total_volume,
    win_rate,
)


def _f(fid: str, direction: str, qty: float, price: float, ts: int, asset: str = "X") -> Fill:
    return Fill(id=fid, asset=asset, direction=direction, price=price, quantity=qty, timestamp=ts)


def _round_trips(*pnls: float):
    fills = []
    for i, pnl in enumerate(pnls):
        fills.append(_f(f"b{i}", "BUY", 1.0, 100.0, i * 10))
        fills.append(_f(f"s{i}", "SELL", 1.0, 100.0 + pnl, i * 10 + 5))
    return fills, match_completed_trades(fills)


def test_no_fills_means_zero_metrics() -> None:
    assert compute_metrics([], []) == PerformanceMetrics.zero()
    perf = compute_agent_performance("a", [], {}, {}, 0, 100)
    assert perf.metrics == PerformanceMetrics.zero()
    assert perf.period_start is None and perf.period_end is None


def test_win_rate_and_sharpe_use_completed_trades() -> None:
    fills, trades = _round_trips(10.0, -5.0, 20.0)
    metrics = compute_metrics(fills, trades)
    assert metrics.total_trades == 3
    assert metrics.total_fills == 6
    assert metrics.winning_trades == 2
    assert metrics.win_rate == pytest.approx(200.0 / 3.0)
    expected = statistics.mean([10.0, -5.0, 20.0]) / statistics.pstdev([10.0, -5.0, 20.0])
    assert metrics.sharpe_ratio == pytest.approx(expected)
    assert metrics.total_volume == pytest.approx(6 * 100.0 + 10.0 - 5.0 + 20.0)


def test_sharpe_is_zero_without_dispersion() -> None:
    _, trades = _round_trips(5.0, 5.0)
    assert sharpe_ratio(trades) == 0.0
    assert sharpe_ratio([]) == 0.0
    assert win_rate([]) == 0.0


def test_account_value_without_timeline_is_floored_realized() -> None:
    fills, trades = _round_trips(-30.0)
    metrics = compute_metrics(fills, trades)
    assert metrics.account_value == 0.0
    assert metrics.total_pnl == pytest.approx(-30.0)


def test_pnl_percentage_uses_first_timeline_value_when_nonzero() -> None:
    fills, trades = _round_trips(25.0)
    timeline = [TimelinePoint(0, 50.0), TimelinePoint(10, 75.0)]
    metrics = compute_metrics(fills, trades, timeline)
    assert metrics.account_value == 75.0
    assert metrics.total_pnl == 75.0
    assert metrics.pnl_percentage == pytest.approx(50.0)


def test_baseline_falls_back_to_notional_then_constant() -> None:
    assert select_baseline(0.0, 210.0) == 210.0
    assert select_baseline(None, 0.0) == 10000.0
    assert select_baseline(1e-12, 0.0, fallback=500.0) == 500.0
    assert select_baseline(-40.0, 210.0) == -40.0
    assert percent_change(-20.0, -40.0) == pytest.approx(50.0)
    assert percent_change(5.0, 0.0) == 0.0


def test_total_volume_sums_absolute_notional() -> None:
    assert total_volume([_f("1", "BUY", 2.0, 10.0, 0), _f("2", "SELL", 0.5, 8.0, 1)]) == pytest.approx(24.0)


def test_agent_performance_ties_the_pieces_together() -> None:
    fills = [_f("b", "BUY", 1.0, 100.0, 0), _f("s", "SELL", 1.0, 110.0, 10)]
    perf = compute_agent_performance("a1", fills, {}, {}, 0, 20, config=EngineConfig(recent_trades_limit=1))
    assert perf.account_value == pytest.approx(10.0)
    assert perf.realized_pnl == pytest.approx(10.0)
    assert perf.unrealized_pnl == pytest.approx(0.0)
    assert perf.metrics.pnl_percentage == pytest.approx(percent_change(10.0, 210.0))
    assert [t.id for t in perf.recent_trades] == ["b-s"]
    assert perf.recent_trades[0].agent_id == "a1"
    assert perf.period_start == "1970-01-01T00:00:00.000Z"
    assert perf.period_end == "1970-01-01T00:00:00.010Z"
    assert perf.account_history()[-1] == {"date": "1970-01-01T00:00:00.020Z", "value": 10.0}
