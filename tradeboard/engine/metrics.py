from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from tradeboard.core.config import EngineConfig
from tradeboard.core.types import CompletedTrade, Fill, PerformanceMetrics, PriceSample, TimelinePoint
from tradeboard.core.utils import to_iso
from tradeboard.engine.completed import match_completed_trades, most_recent
from tradeboard.engine.timeline import TimelineResult, account_history, build_timeline


def win_rate(trades: Sequence[CompletedTrade]) -> float:
    if not trades:
        return 0.0
    wins = sum(1 for t in trades if t.pnl > 0)
    return wins / len(trades) * 100.0


def sharpe_ratio(trades: Sequence[CompletedTrade]) -> float:
    """Mean trade PnL over its population standard deviation; 0 without dispersion."""
    if not trades:
        return 0.0
    pnls = np.asarray([t.pnl for t in trades], dtype=float)
    std = float(pnls.std(ddof=0))
    if std <= 0 or not np.isfinite(std):
        return 0.0
    return float(pnls.mean()) / std


def total_volume(fills: Iterable[Fill]) -> float:
    return float(sum(abs(f.price * f.quantity) for f in fills))


def select_baseline(
    first_value: Optional[float],
    traded_notional: float,
    *,
    epsilon: float = 1e-8,
    fallback: float = 10000.0,
) -> float:
    # first timeline value, else traded notional, else a fixed starting value
    if first_value is not None and abs(first_value) > epsilon:
        return float(first_value)
    if traded_notional > 0:
        return float(traded_notional)
    return float(fallback)


def percent_change(value: float, baseline: float) -> float:
    if baseline == 0:
        return 0.0
    return (value - baseline) / abs(baseline) * 100.0


def compute_metrics(
    fills: Sequence[Fill],
    completed: Sequence[CompletedTrade],
    timeline: Optional[Sequence[TimelinePoint]] = None,
    *,
    traded_notional: Optional[float] = None,
    config: Optional[EngineConfig] = None,
) -> PerformanceMetrics:
    """Trade statistics plus account value and return for one agent.

    ``total_trades`` counts completed trades (the win-rate denominator);
    ``total_fills`` counts the fills they came from.
    """
    cfg = config or EngineConfig()
    if not fills:
        return PerformanceMetrics.zero()

    realized_total = float(sum(t.pnl for t in completed))
    volume = total_volume(fills)
    notional = volume if traded_notional is None else float(traded_notional)

    if timeline:
        account_value = timeline[-1].account_value
        first_value: Optional[float] = timeline[0].account_value
        total_pnl = account_value
    else:
        account_value = max(0.0, realized_total)
        first_value = None
        total_pnl = realized_total

    baseline = select_baseline(
        first_value,
        notional,
        epsilon=cfg.baseline_epsilon,
        fallback=cfg.fallback_baseline,
    )
    return PerformanceMetrics(
        account_value=account_value,
        total_pnl=total_pnl,
        pnl_percentage=percent_change(account_value, baseline),
        win_rate=win_rate(completed),
        winning_trades=sum(1 for t in completed if t.pnl > 0),
        total_trades=len(completed),
        total_fills=len(fills),
        sharpe_ratio=sharpe_ratio(completed),
        total_volume=volume,
    )


@dataclass
class AgentPerformance:
    agent_id: str
    metrics: PerformanceMetrics
    timeline: TimelineResult
    completed_trades: List[CompletedTrade] = field(default_factory=list)
    recent_trades: List[CompletedTrade] = field(default_factory=list)
    period_start: Optional[str] = None
    period_end: Optional[str] = None

    @property
    def account_value(self) -> float:
        return self.metrics.account_value

    @property
    def realized_pnl(self) -> float:
        return self.timeline.realized_pnl

    @property
    def unrealized_pnl(self) -> float:
        return self.metrics.account_value - self.timeline.realized_pnl

    def account_history(self) -> List[Dict[str, Any]]:
        return account_history(self.timeline.points)


def compute_agent_performance(
    agent_id: str,
    fills: Sequence[Fill],
    prices_by_asset: Mapping[str, Sequence[PriceSample]],
    live_prices: Mapping[str, float],
    start: Optional[int],
    end: Optional[int] = None,
    *,
    now: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> AgentPerformance:
    """Everything shown for one agent, derived from already-sanitized fills."""
    cfg = config or EngineConfig()
    completed = match_completed_trades(fills, agent_id=agent_id, epsilon=cfg.notional_epsilon)
    timeline = build_timeline(
        fills,
        prices_by_asset,
        live_prices,
        start,
        end,
        now=now,
        epsilon=cfg.notional_epsilon,
    )
    metrics = compute_metrics(
        fills,
        completed,
        timeline.points,
        traded_notional=timeline.total_traded_notional,
        config=cfg,
    )
    period_start = to_iso(min(f.timestamp for f in fills)) if fills else None
    period_end = to_iso(max(f.timestamp for f in fills)) if fills else None
    return AgentPerformance(
        agent_id=agent_id,
        metrics=metrics,
        timeline=timeline,
        completed_trades=completed,
        recent_trades=most_recent(completed, cfg.recent_trades_limit),
        period_start=period_start,
        period_end=period_end,
    )
