from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional


Direction = Literal["BUY", "SELL"]
PositionSide = Literal["LONG", "SHORT", "FLAT"]
TradeSide = Literal["LONG", "SHORT"]


@dataclass(frozen=True)
class Fill:
    id: str
    asset: str
    direction: Direction
    price: float
    quantity: float
    timestamp: int  # epoch ms
    leverage: Optional[float] = None


@dataclass(frozen=True)
class PriceSample:
    asset: str
    timestamp: int  # epoch ms
    close: float


@dataclass(frozen=True)
class Position:
    """Weighted-average-cost holding in one asset. Quantity is unsigned; the side carries direction."""

    asset: str
    side: PositionSide = "FLAT"
    quantity: float = 0.0
    average_entry_price: float = 0.0

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_entry_price

    @property
    def signed_quantity(self) -> float:
        if self.side == "SHORT":
            return -self.quantity
        return self.quantity

    @property
    def is_flat(self) -> bool:
        return self.side == "FLAT"

    def unrealized_pnl(self, price: float) -> float:
        if self.side == "LONG":
            return (price - self.average_entry_price) * self.quantity
        if self.side == "SHORT":
            return (self.average_entry_price - price) * self.quantity
        return 0.0

    @staticmethod
    def flat(asset: str) -> "Position":
        return Position(asset=asset)


@dataclass(frozen=True)
class CompletedTrade:
    id: str
    entry_fill_id: str
    exit_fill_id: str
    asset: str
    direction: TradeSide
    entry_price: float
    exit_price: float
    closed_quantity: float
    pnl: float
    entry_timestamp: int
    exit_timestamp: int
    holding_ms: int
    holding_time: str
    notional_from: float
    notional_to: float
    roi_percentage: float
    agent_id: Optional[str] = None

    @property
    def signed_quantity(self) -> float:
        return self.closed_quantity if self.direction == "LONG" else -self.closed_quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "time": self.exit_timestamp,
            "coin": self.asset,
            "side": self.direction,
            "entry_px": self.entry_price,
            "exit_px": self.exit_price,
            "quantity": self.signed_quantity,
            "notional_from": self.notional_from,
            "notional_to": self.notional_to,
            "holding_time": self.holding_time,
            "roi_percentage": self.roi_percentage,
            "pnl": self.pnl,
        }


@dataclass(frozen=True)
class TimelinePoint:
    timestamp: int  # epoch ms
    account_value: float


@dataclass
class PerformanceMetrics:
    account_value: float = 0.0
    total_pnl: float = 0.0
    pnl_percentage: float = 0.0
    win_rate: float = 0.0
    winning_trades: int = 0
    total_trades: int = 0
    total_fills: int = 0
    sharpe_ratio: float = 0.0
    total_volume: float = 0.0

    @staticmethod
    def zero() -> "PerformanceMetrics":
        return PerformanceMetrics()

    def to_dict(self) -> Dict[str, float]:
        return {
            "account_value": float(self.account_value),
            "total_pnl": float(self.total_pnl),
            "pnl_percentage": float(self.pnl_percentage),
            "win_rate": float(self.win_rate),
            "winning_trades": float(self.winning_trades),
            "total_trades": float(self.total_trades),
            "total_fills": float(self.total_fills),
            "sharpe_ratio": float(self.sharpe_ratio),
            "total_volume": float(self.total_volume),
        }


@dataclass(frozen=True)
class AgentInput:
    agent_id: str
    fills: List[Any] = field(default_factory=list)  # raw records or Fill objects
    name: str = "Unknown Bot"
    model: str = ""
    is_testnet: bool = False


@dataclass(frozen=True)
class OpenPositionView:
    agent_id: str
    asset: str
    side: TradeSide
    quantity: float
    average_entry_price: float
    leverage: str
    notional: float
    unrealized_pnl: float

    @property
    def id(self) -> str:
        return f"{self.agent_id}-{self.asset}"


@dataclass
class LeaderboardEntry:
    agent_id: str
    account_value: float
    unrealized_pnl: float
    realized_pnl: float
    percent_change: float
    total_traded_notional: float
    timeline: List[TimelinePoint] = field(default_factory=list)
    agent_name: str = "Unknown Bot"
    model: str = ""
    is_testnet: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "model": self.model,
            "is_testnet": self.is_testnet,
            "account_value": self.account_value,
            "unrealized_pnl": self.unrealized_pnl,
            "realized_pnl": self.realized_pnl,
            "percent_change": self.percent_change,
            "total_traded_notional": self.total_traded_notional,
            "history": [{"time": p.timestamp, "value": p.account_value} for p in self.timeline],
        }


@dataclass
class PerformanceSnapshot:
    agent_id: str
    period_start: str
    period_end: str
    computed_at: str
    metrics: Dict[str, float]
    account_history: List[Dict[str, Any]]
    recent_trades: List[Dict[str, Any]]
    status: str = "ready"
    error_message: Optional[str] = None
    prompt: str = ""
