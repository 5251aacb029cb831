from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from tradeboard.core.config import EngineConfig
from tradeboard.core.logging import get_logger
from tradeboard.core.types import (
    AgentInput,
    CompletedTrade,
    LeaderboardEntry,
    OpenPositionView,
    PerformanceSnapshot,
    PriceSample,
    TimelinePoint,
)
from tradeboard.core.utils import now_ms, to_finite_number, to_iso
from tradeboard.engine.completed import match_completed_trades, most_recent
from tradeboard.engine.metrics import AgentPerformance, compute_agent_performance, percent_change, select_baseline
from tradeboard.engine.positions import open_position_views
from tradeboard.engine.sanitize import group_price_samples, sanitize_fills, sanitize_live_prices


log = get_logger()

SnapshotSink = Callable[[PerformanceSnapshot], None]


@dataclass
class MarketData:
    """Prices shared by every agent: history per asset plus live mids per network."""

    prices_by_asset: Dict[str, List[PriceSample]] = field(default_factory=dict)
    live_prices: Dict[str, float] = field(default_factory=dict)
    testnet_live_prices: Dict[str, float] = field(default_factory=dict)

    @staticmethod
    def from_raw(
        price_samples: Iterable[Any] = (),
        live_prices: Optional[Mapping[str, Any]] = None,
        testnet_live_prices: Optional[Mapping[str, Any]] = None,
    ) -> "MarketData":
        return MarketData(
            prices_by_asset=group_price_samples(price_samples),
            live_prices=sanitize_live_prices(live_prices),
            testnet_live_prices=sanitize_live_prices(testnet_live_prices),
        )

    def live_for(self, agent: AgentInput) -> Dict[str, float]:
        return self.testnet_live_prices if agent.is_testnet else self.live_prices


@dataclass
class RankedAgent:
    entry: LeaderboardEntry
    performance: AgentPerformance
    snapshot: PerformanceSnapshot


def round_history(points: Sequence[TimelinePoint]) -> List[TimelinePoint]:
    return [TimelinePoint(p.timestamp, round(p.account_value, 2)) for p in points]


def build_snapshot(performance: AgentPerformance, *, start: int, end: int, computed_at: Optional[int] = None) -> PerformanceSnapshot:
    """Point-in-time payload handed to persistence; metric values rounded to 6 decimals."""
    metrics: Dict[str, float] = {
        k: round(to_finite_number(v), 6) for k, v in performance.metrics.to_dict().items()
    }
    metrics["unrealized_pnl"] = round(performance.unrealized_pnl, 6)
    metrics["realized_pnl"] = round(performance.realized_pnl, 6)
    metrics["total_traded_amount"] = round(performance.timeline.total_traded_notional, 6)
    metrics["total_value"] = round(performance.account_value, 6)

    history = performance.account_history()
    computed = computed_at if computed_at is not None else now_ms()
    return PerformanceSnapshot(
        agent_id=performance.agent_id,
        period_start=history[0]["date"] if history else to_iso(start),
        period_end=history[-1]["date"] if history else to_iso(end),
        computed_at=datetime.fromtimestamp(computed / 1000.0, tz=timezone.utc).isoformat(),
        metrics=metrics,
        account_history=history,
        recent_trades=[t.to_dict() for t in performance.recent_trades],
    )


class LeaderboardAggregator:
    """Runs the per-agent pipeline for every agent and ranks them by account value.

    Agents share nothing mutable, so they are computed on a thread pool; results are
    put back in input order before the (stable) sort so ties stay deterministic.
    """

    def __init__(self, config: Optional[EngineConfig] = None, snapshot_sink: Optional[SnapshotSink] = None) -> None:
        self.config = config or EngineConfig()
        self.snapshot_sink = snapshot_sink

    def window_start(self, now: int) -> int:
        return int(now - self.config.history_window_hours * 3600 * 1000)

    def evaluate(
        self,
        agent: AgentInput,
        market: MarketData,
        *,
        start: int,
        end: int,
    ) -> Optional[RankedAgent]:
        fills = sanitize_fills(agent.fills, default_timestamp=end)
        if not fills:
            log.debug(f"leaderboard: agent {agent.agent_id} has no usable fills; skipped")
            return None

        performance = compute_agent_performance(
            agent.agent_id,
            fills,
            market.prices_by_asset,
            market.live_for(agent),
            start,
            end,
            config=self.config,
        )
        history = round_history(performance.timeline.points)
        baseline = select_baseline(
            history[0].account_value if history else None,
            performance.timeline.total_traded_notional,
            epsilon=self.config.baseline_epsilon,
            fallback=self.config.fallback_baseline,
        )
        entry = LeaderboardEntry(
            agent_id=agent.agent_id,
            account_value=performance.account_value,
            unrealized_pnl=performance.unrealized_pnl,
            realized_pnl=performance.realized_pnl,
            percent_change=percent_change(performance.account_value, baseline),
            total_traded_notional=performance.timeline.total_traded_notional,
            timeline=history,
            agent_name=agent.name,
            model=agent.model,
            is_testnet=agent.is_testnet,
        )
        snapshot = build_snapshot(performance, start=start, end=end, computed_at=end)
        return RankedAgent(entry=entry, performance=performance, snapshot=snapshot)

    def rank(
        self,
        agents: Sequence[AgentInput],
        market: MarketData,
        *,
        now: Optional[int] = None,
        start: Optional[int] = None,
    ) -> List[RankedAgent]:
        end = int(now if now is not None else now_ms())
        begin = int(start) if start is not None else self.window_start(end)

        results: List[Optional[RankedAgent]] = [None] * len(agents)
        if agents:
            max_workers = min(int(self.config.max_workers), len(agents))
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                future_map = {
                    pool.submit(self.evaluate, agent, market, start=begin, end=end): idx
                    for idx, agent in enumerate(agents)
                }
                for future in as_completed(future_map):
                    results[future_map[future]] = future.result()

        ranked = [r for r in results if r is not None]
        ranked.sort(key=lambda r: r.entry.account_value, reverse=True)
        log.info(f"leaderboard: ranked {len(ranked)} of {len(agents)} agent(s)")

        if self.snapshot_sink is not None:
            for r in ranked:
                self._hand_off(r.snapshot)
        return ranked

    def build(self, agents: Sequence[AgentInput], market: MarketData, **kwargs: Any) -> List[LeaderboardEntry]:
        return [r.entry for r in self.rank(agents, market, **kwargs)]

    def _hand_off(self, snapshot: PerformanceSnapshot) -> None:
        try:
            self.snapshot_sink(snapshot)  # type: ignore[misc]
        except Exception as exc:
            log.error(f"leaderboard: failed to persist snapshot for {snapshot.agent_id}: {exc}")


def collect_completed_trades(agents: Iterable[AgentInput], *, limit: int = 100, default_timestamp: Optional[int] = None) -> List[CompletedTrade]:
    """Cross-agent trade feed, newest first."""
    ts = int(default_timestamp if default_timestamp is not None else now_ms())
    trades: List[CompletedTrade] = []
    for agent in agents:
        trades.extend(match_completed_trades(sanitize_fills(agent.fills, ts), agent_id=agent.agent_id))
    return most_recent(trades, limit)


def collect_open_positions(agents: Iterable[AgentInput], market: MarketData, *, config: Optional[EngineConfig] = None, default_timestamp: Optional[int] = None) -> List[OpenPositionView]:
    cfg = config or EngineConfig()
    ts = int(default_timestamp if default_timestamp is not None else now_ms())
    views: List[OpenPositionView] = []
    for agent in agents:
        fills = sanitize_fills(agent.fills, ts)
        views.extend(open_position_views(agent.agent_id, fills, market.live_for(agent), cfg.display_epsilon))
    return views
