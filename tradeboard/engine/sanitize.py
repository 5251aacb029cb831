from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from tradeboard.core.logging import get_engine_logger
from tradeboard.core.types import Direction, Fill, PriceSample
from tradeboard.core.utils import normalize_coin, parse_timestamp, to_finite_number


log = get_engine_logger()


def _field(raw: Any, *keys: str) -> Any:
    for k in keys:
        if isinstance(raw, Mapping):
            if k in raw and raw[k] is not None:
                return raw[k]
        elif getattr(raw, k, None) is not None:
            return getattr(raw, k)
    return None


def _direction(value: Any) -> Direction:
    # Anything not explicitly a sell is treated as a buy
    return "SELL" if str(value or "").strip().upper() == "SELL" else "BUY"


def sanitize_fill(raw: Any, default_timestamp: int) -> Optional[Fill]:
    """Normalize one raw trade record into a Fill, or None when it must be discarded.

    Accepts Fill instances, dicts shaped like persisted trade rows
    (``coin``/``side``/``executed_at``) or like Fills (``asset``/``direction``/``timestamp``).
    """
    price = to_finite_number(_field(raw, "price", "px"))
    quantity = to_finite_number(_field(raw, "quantity", "qty", "size", "sz"))
    if price <= 0 or quantity <= 0:
        return None

    ts = parse_timestamp(_field(raw, "timestamp", "executed_at", "time"))
    if ts is None:
        ts = parse_timestamp(_field(raw, "created_at"))
    if ts is None:
        ts = int(default_timestamp)

    leverage = to_finite_number(_field(raw, "leverage"))
    return Fill(
        id=str(_field(raw, "id", "order_id") or ""),
        asset=normalize_coin(_field(raw, "asset", "coin", "symbol")),
        direction=_direction(_field(raw, "direction", "side")),
        price=price,
        quantity=quantity,
        timestamp=ts,
        leverage=leverage if leverage > 0 else None,
    )


def sanitize_fills(raw_fills: Iterable[Any], default_timestamp: int) -> List[Fill]:
    """Drop unusable records and return the rest ordered by timestamp.

    The sort is stable, so fills sharing a timestamp keep their input order.
    Never raises on malformed input.
    """
    fills: List[Fill] = []
    dropped = 0
    for raw in raw_fills or []:
        fill = sanitize_fill(raw, default_timestamp)
        if fill is None:
            dropped += 1
            continue
        fills.append(fill)
    if dropped:
        log.debug(f"sanitize: dropped {dropped} fill(s) with non-positive price or quantity")
    fills.sort(key=lambda f: f.timestamp)
    return fills


def group_price_samples(samples: Iterable[Any]) -> Dict[str, List[PriceSample]]:
    """Group price samples by asset, sorted by timestamp; drop rows without time or a positive close."""
    grouped: Dict[str, List[PriceSample]] = {}
    for raw in samples or []:
        if isinstance(raw, PriceSample):
            sample = raw
        else:
            ts = parse_timestamp(_field(raw, "timestamp", "time"))
            close = to_finite_number(_field(raw, "close", "close_price", "price"))
            if ts is None or close <= 0:
                continue
            sample = PriceSample(asset=normalize_coin(_field(raw, "asset", "coin")), timestamp=ts, close=close)
        if sample.close <= 0:
            continue
        grouped.setdefault(sample.asset, []).append(sample)
    for bucket in grouped.values():
        bucket.sort(key=lambda s: s.timestamp)
    return grouped


def sanitize_live_prices(live_prices: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """Keep only strictly positive, finite live prices keyed by normalized coin."""
    out: Dict[str, float] = {}
    for coin, raw in (live_prices or {}).items():
        price = to_finite_number(raw)
        if price > 0:
            out[normalize_coin(coin)] = price
    return out
