from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from tradeboard.core.config import EngineConfig
from tradeboard.core.logging import get_logger
from tradeboard.core.types import PerformanceMetrics
from tradeboard.core.utils import now_ms, to_finite_number
from tradeboard.engine.metrics import compute_agent_performance
from tradeboard.engine.sanitize import sanitize_fills
from tradeboard.monitor.storage import SnapshotStore


log = get_logger()

FillLoader = Callable[[str], Iterable[Any]]

_METRIC_KEYS = tuple(PerformanceMetrics.zero().to_dict().keys())


def normalize_metrics(raw: Any) -> Dict[str, float]:
    if not isinstance(raw, Mapping):
        return PerformanceMetrics.zero().to_dict()
    return {k: to_finite_number(raw.get(k)) for k in _METRIC_KEYS}


def normalize_account_history(raw: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    out: List[Dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, Mapping) or not item.get("date"):
            continue
        out.append({"date": str(item["date"]), "value": to_finite_number(item.get("value"))})
    return out


def normalize_recent_trades(raw: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    out: List[Dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        side = str(item.get("side") or "")
        if not item.get("id") or not item.get("coin") or side not in ("LONG", "SHORT"):
            continue
        out.append(
            {
                "id": str(item["id"]),
                "coin": str(item["coin"]),
                "side": side,
                "time": to_finite_number(item.get("time")),
                "entry_px": to_finite_number(item.get("entry_px")),
                "exit_px": to_finite_number(item.get("exit_px")),
                "pnl": to_finite_number(item.get("pnl")),
            }
        )
    return out


class PerformanceReporter:
    """Serves an agent's performance from the latest stored snapshot, computing it on demand otherwise."""

    def __init__(
        self,
        store: Optional[SnapshotStore],
        fill_loader: Optional[FillLoader] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.store = store
        self.fill_loader = fill_loader
        self.config = config or EngineConfig()

    def from_snapshot(self, agent_id: str) -> Optional[Dict[str, Any]]:
        if self.store is None:
            return None
        row = self.store.latest_snapshot(agent_id)
        if row is None:
            return None
        return {
            "metrics": normalize_metrics(row.get("metrics")),
            "account_history": normalize_account_history(row.get("account_history")),
            "prompt": row.get("prompt") or "",
            "period_start": row.get("period_start"),
            "period_end": row.get("period_end"),
            "recent_trades": normalize_recent_trades(row.get("recent_trades")),
            "source": "snapshot",
        }

    def compute_on_demand(self, agent_id: str, *, now: Optional[int] = None) -> Optional[Dict[str, Any]]:
        if self.fill_loader is None:
            return None
        end = int(now if now is not None else now_ms())
        fills = sanitize_fills(self.fill_loader(agent_id), default_timestamp=end)
        if not fills:
            return {
                "metrics": PerformanceMetrics.zero().to_dict(),
                "account_history": [],
                "prompt": "",
                "period_start": None,
                "period_end": None,
                "recent_trades": [],
                "source": "computed",
            }
        # No price history here: the curve carries realized PnL only, like a trade-log replay.
        performance = compute_agent_performance(
            agent_id,
            fills,
            {},
            {},
            start=min(f.timestamp for f in fills),
            end=end,
            config=self.config,
        )
        return {
            "metrics": performance.metrics.to_dict(),
            "account_history": performance.account_history(),
            "prompt": "",
            "period_start": performance.period_start,
            "period_end": performance.period_end,
            "recent_trades": normalize_recent_trades([t.to_dict() for t in performance.recent_trades]),
            "source": "computed",
        }

    def get_performance(self, agent_id: str, *, now: Optional[int] = None) -> Optional[Dict[str, Any]]:
        snapshot = self.from_snapshot(agent_id)
        if snapshot is not None:
            return snapshot
        log.debug(f"reporter: no snapshot for {agent_id}; computing from fills")
        return self.compute_on_demand(agent_id, now=now)
