from __future__ import annotations

import math
import numbers
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional


MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE


def normalize_coin(symbol: Any) -> str:
    """
    Map common external symbol formats to bare coin tickers.
    Examples:
    - 'BTC/USD:USD' -> 'BTC'
    - 'eth/usdt'    -> 'ETH'
    - 'SOL'         -> 'SOL' (unchanged)
    """
    s = str(symbol or "").strip().upper()
    if not s:
        return s
    base = s.split("/", 1)[0] if "/" in s else s
    base = base.split(":", 1)[0]
    return "".join(ch for ch in base if ch.isalnum())


def to_finite_number(value: Any) -> float:
    """Coerce numbers and numeric strings to float; anything else (None, NaN, inf, junk) becomes 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (numbers.Real, Decimal)):
        try:
            parsed = float(value)
        except (ValueError, OverflowError):
            return 0.0
        return parsed if math.isfinite(parsed) else 0.0
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value.strip())
        except ValueError:
            return 0.0
        return parsed if math.isfinite(parsed) else 0.0
    return 0.0


def parse_timestamp(value: Any) -> Optional[int]:
    """Return epoch milliseconds, or None when the value cannot be placed in time.

    Numbers (and numeric strings) are taken as epoch ms. Strings are otherwise read
    as ISO-8601; naive datetimes are assumed to be UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)
    if isinstance(value, (numbers.Real, Decimal)):
        try:
            num = float(value)
        except (ValueError, OverflowError):
            return None
        return int(num) if math.isfinite(num) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            num = float(text)
            return int(num) if math.isfinite(num) else None
        except ValueError:
            pass
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)
    return None


def to_iso(ts_ms: int) -> str:
    dt = datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_ms() -> int:
    return int(time.time() * 1000)


def format_holding_time(holding_ms: int) -> str:
    # "3H 12M" when at least an hour, otherwise "45M"
    holding_ms = max(0, int(holding_ms))
    hours = holding_ms // MS_PER_HOUR
    minutes = (holding_ms % MS_PER_HOUR) // MS_PER_MINUTE
    return f"{hours}H {minutes}M" if hours > 0 else f"{minutes}M"
