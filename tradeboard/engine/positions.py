from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from tradeboard.core.types import Fill, OpenPositionView, Position, PositionSide


NOTIONAL_EPSILON = 1e-8
DISPLAY_EPSILON = 1e-4


@dataclass(frozen=True)
class FillOutcome:
    """What one fill did to a position."""

    position: Position
    realized_pnl: float = 0.0
    closed_quantity: float = 0.0
    flipped: bool = False


def _opening_side(fill: Fill) -> PositionSide:
    return "LONG" if fill.direction == "BUY" else "SHORT"


def apply_fill(position: Position, fill: Fill, epsilon: float = NOTIONAL_EPSILON) -> FillOutcome:
    """Fold one fill into a weighted-average-cost position.

    Same-direction fills (or any fill on a FLAT position) increase the position and
    re-weight the entry price. Opposing fills close up to the open quantity at the fill
    price, realizing PnL, and any excess opens a new position on the other side priced
    at the fill. Residual quantity below ``epsilon`` collapses to FLAT.
    """
    side = _opening_side(fill)
    realized = 0.0
    closed = 0.0
    flipped = False

    if position.is_flat or position.side == side:
        new_qty = position.quantity + fill.quantity
        avg = (position.cost_basis + fill.price * fill.quantity) / new_qty
        result = Position(asset=fill.asset, side=side, quantity=new_qty, average_entry_price=avg)
    else:
        closed = min(position.quantity, fill.quantity)
        if position.side == "LONG":
            realized = (fill.price - position.average_entry_price) * closed
        else:
            realized = (position.average_entry_price - fill.price) * closed
        remaining_open = position.quantity - closed
        excess = fill.quantity - closed
        if excess > epsilon:
            flipped = True
            result = Position(asset=fill.asset, side=side, quantity=excess, average_entry_price=fill.price)
        else:
            result = Position(
                asset=fill.asset,
                side=position.side,
                quantity=remaining_open,
                average_entry_price=position.average_entry_price,
            )

    if result.quantity < epsilon:
        result = Position.flat(fill.asset)
    return FillOutcome(position=result, realized_pnl=realized, closed_quantity=closed, flipped=flipped)


class PositionTracker:
    """Running weighted-average position for a single asset."""

    def __init__(self, asset: str, epsilon: float = NOTIONAL_EPSILON) -> None:
        self.asset = asset
        self.epsilon = float(epsilon)
        self.position = Position.flat(asset)
        self.realized_pnl = 0.0
        self.leverage: Optional[float] = None

    def apply(self, fill: Fill) -> FillOutcome:
        if fill.asset != self.asset:
            raise ValueError(f"fill for {fill.asset} applied to {self.asset} tracker")
        outcome = apply_fill(self.position, fill, self.epsilon)
        self.position = outcome.position
        self.realized_pnl += outcome.realized_pnl
        if fill.leverage:
            self.leverage = fill.leverage
        return outcome


class PositionBook:
    """One PositionTracker per asset, created on first fill."""

    def __init__(self, epsilon: float = NOTIONAL_EPSILON) -> None:
        self.epsilon = float(epsilon)
        self.trackers: Dict[str, PositionTracker] = {}
        self.traded_notional = 0.0

    def apply(self, fill: Fill) -> FillOutcome:
        tracker = self.trackers.get(fill.asset)
        if tracker is None:
            tracker = PositionTracker(fill.asset, self.epsilon)
            self.trackers[fill.asset] = tracker
        self.traded_notional += abs(fill.price * fill.quantity)
        return tracker.apply(fill)

    @property
    def realized_pnl(self) -> float:
        return sum(t.realized_pnl for t in self.trackers.values())

    def position(self, asset: str) -> Position:
        tracker = self.trackers.get(asset)
        return tracker.position if tracker else Position.flat(asset)

    def open_positions(self) -> Dict[str, Position]:
        return {a: t.position for a, t in self.trackers.items() if not t.position.is_flat}


def replay_positions(fills: Iterable[Fill], epsilon: float = NOTIONAL_EPSILON) -> PositionBook:
    """Fold fills in timestamp order (stable for ties) into a fresh PositionBook."""
    book = PositionBook(epsilon)
    for fill in sorted(fills, key=lambda f: f.timestamp):
        book.apply(fill)
    return book


def open_position_views(
    agent_id: str,
    fills: Iterable[Fill],
    live_prices: Mapping[str, float],
    epsilon: float = DISPLAY_EPSILON,
) -> List[OpenPositionView]:
    """Open positions valued at live prices; assets without a positive live price are left out."""
    book = replay_positions(fills, epsilon)
    views: List[OpenPositionView] = []
    for asset, tracker in book.trackers.items():
        pos = tracker.position
        if pos.is_flat:
            continue
        price = float(live_prices.get(asset, 0.0) or 0.0)
        if price <= 0:
            continue
        leverage = tracker.leverage or 1
        views.append(
            OpenPositionView(
                agent_id=agent_id,
                asset=asset,
                side="LONG" if pos.side == "LONG" else "SHORT",
                quantity=pos.quantity,
                average_entry_price=pos.average_entry_price,
                leverage=f"{leverage:g}X",
                notional=price * pos.quantity,
                unrealized_pnl=pos.unrealized_pnl(price),
            )
        )
    return views
