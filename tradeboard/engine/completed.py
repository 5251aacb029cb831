from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from tradeboard.core.types import CompletedTrade, Fill
from tradeboard.core.utils import format_holding_time
from tradeboard.engine.positions import NOTIONAL_EPSILON


@dataclass(frozen=True)
class OpenPointer:
    """The single fill a completed trade would be measured from, with its unmatched quantity."""

    fill: Fill
    quantity: float

    @property
    def direction(self) -> str:
        return self.fill.direction


def _roi_percentage(entry_price: float, exit_price: float, is_long: bool) -> float:
    if entry_price == 0:
        return 0.0
    ratio = (exit_price - entry_price) / entry_price * 100.0
    return ratio if is_long else -ratio


def close_trade(pointer: OpenPointer, fill: Fill) -> CompletedTrade:
    entry = pointer.fill
    closed = min(abs(pointer.quantity), abs(fill.quantity))
    is_long = entry.direction == "BUY"
    if is_long:
        pnl = (fill.price - entry.price) * closed
    else:
        pnl = (entry.price - fill.price) * closed
    holding_ms = max(0, fill.timestamp - entry.timestamp)
    return CompletedTrade(
        id=f"{entry.id}-{fill.id}",
        entry_fill_id=entry.id,
        exit_fill_id=fill.id,
        asset=entry.asset,
        direction="LONG" if is_long else "SHORT",
        entry_price=entry.price,
        exit_price=fill.price,
        closed_quantity=closed,
        pnl=pnl,
        entry_timestamp=entry.timestamp,
        exit_timestamp=fill.timestamp,
        holding_ms=holding_ms,
        holding_time=format_holding_time(holding_ms),
        notional_from=entry.price * closed,
        notional_to=fill.price * closed,
        roi_percentage=_roi_percentage(entry.price, fill.price, is_long),
    )


class CompletedTradeMatcher:
    """Pairs consecutive opposing fills of one asset into trade records.

    Unlike PositionTracker this keeps no weighted average: a same-direction fill
    simply replaces the pointer ("most recent entry").
    """

    def __init__(self, asset: str, epsilon: float = NOTIONAL_EPSILON) -> None:
        self.asset = asset
        self.epsilon = float(epsilon)
        self.pointer: Optional[OpenPointer] = None

    def apply(self, fill: Fill) -> Optional[CompletedTrade]:
        pointer = self.pointer
        if pointer is None or pointer.direction == fill.direction:
            self.pointer = OpenPointer(fill=fill, quantity=fill.quantity)
            return None

        trade = close_trade(pointer, fill)
        # Leftover below epsilon is float residue, not an open quantity
        if pointer.quantity - fill.quantity >= self.epsilon:
            self.pointer = OpenPointer(fill=pointer.fill, quantity=pointer.quantity - trade.closed_quantity)
        elif fill.quantity - pointer.quantity >= self.epsilon:
            self.pointer = OpenPointer(fill=fill, quantity=fill.quantity - pointer.quantity)
        else:
            self.pointer = None
        return trade


def match_completed_trades(
    fills: Iterable[Fill],
    agent_id: Optional[str] = None,
    epsilon: float = NOTIONAL_EPSILON,
) -> List[CompletedTrade]:
    """Run one matcher per asset over fills in ascending timestamp order.

    Output is grouped by asset in order of first appearance, chronological within each asset.
    """
    by_asset: Dict[str, List[Fill]] = {}
    for fill in fills:
        by_asset.setdefault(fill.asset, []).append(fill)

    trades: List[CompletedTrade] = []
    for asset, asset_fills in by_asset.items():
        matcher = CompletedTradeMatcher(asset, epsilon)
        for fill in sorted(asset_fills, key=lambda f: f.timestamp):
            trade = matcher.apply(fill)
            if trade is not None:
                trades.append(replace(trade, agent_id=agent_id) if agent_id else trade)
    return trades


def most_recent(trades: Iterable[CompletedTrade], limit: int) -> List[CompletedTrade]:
    """Newest-first by exit time, truncated to ``limit``."""
    return sorted(trades, key=lambda t: t.exit_timestamp, reverse=True)[: max(0, int(limit))]
