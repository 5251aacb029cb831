from __future__ import annotations

import pytest

from tradeboard.core.types import Fill, PriceSample, TimelinePoint
from tradeboard.engine.timeline import (
    account_history,
    build_timeline,
    relative_series,
    resolve_window,
    to_frame,
    window,
)


def _f(fid: str, direction: str, qty: float, price: float, ts: int, asset: str = "X") -> Fill:
    return Fill(id=fid, asset=asset, direction=direction, price=price, quantity=qty, timestamp=ts)


def _prices(*rows):
    out = {}
    for asset, ts, close in rows:
        out.setdefault(asset, []).append(PriceSample(asset=asset, timestamp=ts, close=close))
    return out


def _values(result):
    return [(p.timestamp, p.account_value) for p in result.points]


def test_marks_open_position_at_latest_close() -> None:
    prices = _prices(("X", 5, 90.0), ("X", 20, 110.0), ("X", 50, 120.0))
    result = build_timeline([_f("1", "BUY", 1.0, 100.0, 10)], prices, {}, 0, 100)
    assert _values(result) == [(0, 0.0), (5, 0.0), (10, -10.0), (20, 10.0), (50, 20.0), (100, 20.0)]
    assert result.unrealized_pnl == pytest.approx(20.0)
    assert result.realized_pnl == 0.0
    assert result.total_traded_notional == pytest.approx(100.0)


def test_replay_is_deterministic() -> None:
    fills = [_f("1", "BUY", 2.0, 100.0, 10), _f("2", "SELL", 3.0, 120.0, 30), _f("3", "BUY", 1.0, 110.0, 60)]
    prices = _prices(("X", 0, 100.0), ("X", 40, 115.0), ("X", 80, 105.0))
    first = build_timeline(fills, prices, {"X": 101.0}, 0, 100)
    second = build_timeline(fills, prices, {"X": 101.0}, 0, 100)
    assert first == second
    assert first.account_value == pytest.approx(50.0)


def test_points_are_strictly_increasing_and_at_least_two() -> None:
    result = build_timeline([], {}, {}, 0, 100)
    stamps = [p.timestamp for p in result.points]
    assert len(stamps) >= 2
    assert stamps == sorted(set(stamps))
    assert all(p.account_value == 0.0 for p in result.points)


def test_live_price_used_only_at_window_end() -> None:
    result = build_timeline([_f("1", "BUY", 1.0, 100.0, 10)], {}, {"X": 130.0}, 0, 100)
    assert _values(result) == [(0, 0.0), (10, 0.0), (100, 30.0)]


def test_asset_without_any_price_contributes_realized_only() -> None:
    fills = [
        _f("1", "BUY", 1.0, 100.0, 10),
        _f("2", "SELL", 1.0, 110.0, 20),
        _f("3", "BUY", 1.0, 5.0, 30, asset="NOPX"),
    ]
    result = build_timeline(fills, {}, {}, 0, 100)
    assert result.account_value == pytest.approx(10.0)
    assert result.unrealized_pnl == 0.0


def test_fills_before_start_fold_into_first_point() -> None:
    prices = _prices(("X", 20, 105.0))
    result = build_timeline([_f("1", "BUY", 1.0, 100.0, 10)], prices, {}, 50, 100)
    assert _values(result) == [(50, 5.0), (100, 5.0)]


def test_fills_after_end_are_ignored() -> None:
    result = build_timeline([_f("1", "BUY", 1.0, 100.0, 200)], {}, {"X": 500.0}, 0, 100)
    assert result.total_traded_notional == 0.0
    assert result.account_value == 0.0


def test_window_end_defaults_to_now_and_never_precedes_start() -> None:
    assert resolve_window(None, None, now=1_000) == (0, 1_000)
    assert resolve_window(50, 50) == (50, 51)
    assert resolve_window(50, 10) == (50, 51)
    result = build_timeline([], {}, {}, 50, 50)
    assert [p.timestamp for p in result.points] == [50, 51]


def test_relative_series_and_window() -> None:
    points = [TimelinePoint(0, 200.0), TimelinePoint(10, 250.0), TimelinePoint(20, 150.0)]
    assert [p.account_value for p in relative_series(points)] == pytest.approx([0.0, 25.0, -25.0])
    assert [p.account_value for p in relative_series([TimelinePoint(0, 0.0), TimelinePoint(1, 5.0)])] == [0.0, 0.0]
    assert relative_series([]) == []
    assert [p.timestamp for p in window(points, 10)] == [10, 20]
    assert window(points, None) == points


def test_account_history_and_frame() -> None:
    points = [TimelinePoint(0, 1.234), TimelinePoint(60_000, -2.5)]
    assert account_history(points) == [
        {"date": "1970-01-01T00:00:00.000Z", "value": 1.23},
        {"date": "1970-01-01T00:01:00.000Z", "value": -2.5},
    ]
    frame = to_frame(points)
    assert list(frame.columns) == ["timestamp", "account_value"]
    assert frame["account_value"].tolist() == [1.234, -2.5]
