from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tradeboard.core.types import CompletedTrade, LeaderboardEntry, OpenPositionView


console = Console()


def _fmt_time(ts_ms: int) -> str:
    try:
        return datetime.fromtimestamp(float(ts_ms) / 1000.0, tz=timezone.utc).strftime("%m-%d %H:%M")
    except (OverflowError, OSError, ValueError):
        return "-"


def _signed(value: float, fmt: str = ",.2f", suffix: str = "") -> str:
    text = f"{value:{fmt}}{suffix}"
    return f"[green]{text}[/green]" if value >= 0 else f"[red]{text}[/red]"


def render_leaderboard(entries: Sequence[LeaderboardEntry], *, top_n: int = 10) -> None:
    if not entries:
        console.print(Panel("No agents with fills", title="Leaderboard"))
        return
    table = Table(title="Leaderboard")
    table.add_column("#", justify="right")
    table.add_column("Agent")
    table.add_column("Model")
    table.add_column("Net")
    table.add_column("Account Value", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Realized", justify="right")
    table.add_column("Unrealized", justify="right")
    table.add_column("Traded", justify="right")
    for rank, e in enumerate(entries[:top_n], start=1):
        table.add_row(
            str(rank),
            f"{e.agent_name} ({e.agent_id})"[:32],
            e.model[:16] or "-",
            "test" if e.is_testnet else "main",
            f"${e.account_value:,.2f}",
            _signed(e.percent_change, suffix="%"),
            _signed(e.realized_pnl),
            _signed(e.unrealized_pnl),
            f"${e.total_traded_notional:,.2f}",
        )
    console.print(table)


def render_positions(views: Iterable[OpenPositionView]) -> None:
    rows: List[OpenPositionView] = list(views)
    if not rows:
        console.print(Panel("No open positions", title="Positions"))
        return
    table = Table(title="Open Positions")
    table.add_column("Agent")
    table.add_column("Coin")
    table.add_column("Side")
    table.add_column("Qty", justify="right")
    table.add_column("Avg Price", justify="right")
    table.add_column("Leverage", justify="right")
    table.add_column("Notional", justify="right")
    table.add_column("Unrealized", justify="right")
    for v in rows:
        table.add_row(
            v.agent_id[:14],
            v.asset,
            v.side,
            f"{v.quantity:.6f}",
            f"{v.average_entry_price:.2f}",
            v.leverage,
            f"${v.notional:,.2f}",
            _signed(v.unrealized_pnl),
        )
    console.print(table)


def render_completed_trades(trades: Iterable[CompletedTrade], *, title: str = "Completed Trades") -> None:
    rows = list(trades)
    if not rows:
        console.print(Panel("No completed trades", title=title))
        return
    table = Table(title=title)
    table.add_column("Exit")
    table.add_column("Agent")
    table.add_column("Coin")
    table.add_column("Side")
    table.add_column("Qty", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Exit Px", justify="right")
    table.add_column("Held")
    table.add_column("PnL", justify="right")
    for t in rows:
        table.add_row(
            _fmt_time(t.exit_timestamp),
            str(t.agent_id or "-")[:14],
            t.asset,
            t.direction,
            f"{t.signed_quantity:.4f}",
            f"{t.entry_price:.2f}",
            f"{t.exit_price:.2f}",
            t.holding_time,
            _signed(t.pnl),
        )
    console.print(table)
