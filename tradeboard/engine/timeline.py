from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from tradeboard.core.logging import get_engine_logger
from tradeboard.core.types import Fill, PriceSample, TimelinePoint
from tradeboard.core.utils import now_ms, to_iso
from tradeboard.engine.positions import NOTIONAL_EPSILON, PositionBook


log = get_engine_logger()


@dataclass
class TimelineResult:
    points: List[TimelinePoint] = field(default_factory=list)
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    total_traded_notional: float = 0.0
    start: int = 0
    end: int = 0

    @property
    def account_value(self) -> float:
        return self.points[-1].account_value if self.points else 0.0


class PriceCursor:
    """Monotonic walk through one asset's sorted samples; remembers the last close seen."""

    def __init__(self, samples: Sequence[PriceSample]) -> None:
        self.samples = samples
        self.index = 0
        self.last_price: Optional[float] = None

    def advance(self, timestamp: int) -> Optional[float]:
        samples = self.samples
        while self.index < len(samples) and samples[self.index].timestamp <= timestamp:
            self.last_price = samples[self.index].close
            self.index += 1
        return self.last_price


def resolve_window(start: Optional[int], end: Optional[int], now: Optional[int] = None) -> tuple[int, int]:
    start_ms = int(start) if start is not None else 0
    end_ms = int(end) if end is not None else int(now if now is not None else now_ms())
    if end_ms <= start_ms:
        end_ms = start_ms + 1
    return start_ms, end_ms


def timeline_axis(
    fills: Sequence[Fill],
    prices_by_asset: Mapping[str, Sequence[PriceSample]],
    start: int,
    end: int,
) -> List[int]:
    """Sorted distinct timestamps: the window bounds plus every sample and fill inside it."""
    times = {start, end}
    for samples in prices_by_asset.values():
        times.update(s.timestamp for s in samples if start <= s.timestamp <= end)
    times.update(f.timestamp for f in fills if start <= f.timestamp <= end)
    return sorted(times)


def build_timeline(
    fills: Iterable[Fill],
    prices_by_asset: Mapping[str, Sequence[PriceSample]],
    live_prices: Mapping[str, float],
    start: Optional[int],
    end: Optional[int] = None,
    *,
    now: Optional[int] = None,
    epsilon: float = NOTIONAL_EPSILON,
) -> TimelineResult:
    """Replay fills against price history into an equity curve.

    At every axis timestamp, fills at or before it are folded into a PositionBook and
    each open position is valued at the latest close at or before it. Live prices are
    consulted only once the window end is reached. An asset with no usable price is
    left out of that point instead of failing it. Fills before ``start`` are folded
    into the first point; fills after ``end`` are never applied.
    """
    start_ms, end_ms = resolve_window(start, end, now)
    ordered = sorted(fills, key=lambda f: f.timestamp)
    prices = {asset: sorted(samples, key=lambda s: s.timestamp) for asset, samples in prices_by_asset.items()}
    cursors: Dict[str, PriceCursor] = {asset: PriceCursor(samples) for asset, samples in prices.items()}

    book = PositionBook(epsilon)
    points: List[TimelinePoint] = []
    unrealized = 0.0
    fill_index = 0
    missing: set[str] = set()

    for ts in timeline_axis(ordered, prices, start_ms, end_ms):
        while fill_index < len(ordered) and ordered[fill_index].timestamp <= ts:
            book.apply(ordered[fill_index])
            fill_index += 1

        unrealized = 0.0
        for asset, position in book.open_positions().items():
            cursor = cursors.get(asset)
            price = cursor.advance(ts) if cursor is not None else None
            if (price is None or price <= 0) and ts >= end_ms:
                fallback = float(live_prices.get(asset, 0.0) or 0.0)
                price = fallback if fallback > 0 else None
            if price is None or price <= 0:
                missing.add(asset)
                continue
            unrealized += position.unrealized_pnl(price)

        points.append(TimelinePoint(timestamp=ts, account_value=book.realized_pnl + unrealized))

    if len(points) == 1:
        points.append(TimelinePoint(timestamp=end_ms, account_value=points[0].account_value))
    if missing:
        log.debug(f"timeline: no price for {sorted(missing)} at some points; contribution skipped")

    return TimelineResult(
        points=points,
        realized_pnl=book.realized_pnl,
        unrealized_pnl=unrealized,
        total_traded_notional=book.traded_notional,
        start=start_ms,
        end=end_ms,
    )


def account_history(points: Iterable[TimelinePoint]) -> List[Dict[str, object]]:
    """Chart-ready rows: ISO date and value rounded to cents."""
    return [{"date": to_iso(p.timestamp), "value": round(p.account_value, 2)} for p in points]


def relative_series(points: Sequence[TimelinePoint], epsilon: float = 1e-8) -> List[TimelinePoint]:
    """Re-express values as percent change from the first point (all zeros for a ~zero baseline)."""
    if not points:
        return []
    baseline = points[0].account_value
    if abs(baseline) <= epsilon:
        return [TimelinePoint(p.timestamp, 0.0) for p in points]
    return [TimelinePoint(p.timestamp, (p.account_value - baseline) / abs(baseline) * 100.0) for p in points]


def window(points: Iterable[TimelinePoint], cutoff: Optional[int]) -> List[TimelinePoint]:
    if cutoff is None:
        return list(points)
    return [p for p in points if p.timestamp >= cutoff]


def to_frame(points: Iterable[TimelinePoint]) -> pd.DataFrame:
    rows = [{"timestamp": p.timestamp, "account_value": p.account_value} for p in points]
    return pd.DataFrame(rows, columns=["timestamp", "account_value"])
