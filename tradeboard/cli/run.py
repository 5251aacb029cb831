from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from tradeboard.core.config import AppConfig
from tradeboard.core.env import load_local_environment
from tradeboard.core.logging import get_logger, setup_logging
from tradeboard.core.utils import MS_PER_HOUR, now_ms, parse_timestamp
from tradeboard.data.loader import (
    build_agent_inputs,
    load_agent_meta,
    load_fill_records,
    load_live_prices,
    load_price_records,
)
from tradeboard.engine.leaderboard import (
    LeaderboardAggregator,
    MarketData,
    collect_completed_trades,
    collect_open_positions,
)
from tradeboard.engine.timeline import relative_series, to_frame, window
from tradeboard.monitor.display import console, render_completed_trades, render_leaderboard, render_positions
from tradeboard.monitor.reporter import PerformanceReporter
from tradeboard.monitor.storage import SnapshotStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Agent performance leaderboard")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config")
    parser.add_argument("--fills", type=str, default=None, help="CSV/JSON of filled trades")
    parser.add_argument("--prices", type=str, default=None, help="CSV/JSON of price samples (coin, time, close)")
    parser.add_argument("--live-prices", type=str, default=None, help="JSON object coin -> live price")
    parser.add_argument("--testnet-live-prices", type=str, default=None)
    parser.add_argument("--agents", type=str, default=None, help="YAML/JSON agent metadata")
    parser.add_argument("--now", type=str, default=None, help="Window end (epoch ms or ISO-8601); default: now")
    parser.add_argument("--format", type=str, choices=["table", "json"], default=None)
    parser.add_argument("--positions", action="store_true", help="Also show open positions")
    parser.add_argument("--trades", type=int, default=0, help="Also show the N most recent completed trades")
    parser.add_argument("--persist", action="store_true", help="Store a snapshot per ranked agent")
    parser.add_argument("--export-timelines", type=str, default=None, help="Directory for per-agent timeline CSVs")
    parser.add_argument("--export-hours", type=float, default=None, help="Only export the last N hours of each timeline")
    parser.add_argument("--agent", type=str, default=None, help="Show one agent from its latest snapshot (computed from fills if none)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    load_local_environment()
    cfg = AppConfig.load(args.config) if args.config else AppConfig()
    setup_logging(log_dir=cfg.cli.log_dir, level=cfg.cli.log_level)
    log = get_logger()

    fills_path = args.fills or cfg.data.fills_path
    if not fills_path:
        log.error("no fills file given (--fills or data.fills_path)")
        return 2

    try:
        fills_by_agent = load_fill_records(fills_path)
        prices_path = args.prices or cfg.data.prices_path
        price_rows = load_price_records(prices_path) if prices_path else []
        live = load_live_prices(args.live_prices or cfg.data.live_prices_path)
        testnet_live = load_live_prices(args.testnet_live_prices or cfg.data.testnet_live_prices_path)
        meta = load_agent_meta(args.agents or cfg.data.agents_path)
    except (OSError, ValueError) as exc:
        log.error(f"failed to load input data: {exc}")
        return 1

    now = parse_timestamp(args.now) if args.now else None
    if now is None:
        now = now_ms()

    if args.agent:
        store = SnapshotStore(cfg.monitor.storage_path)
        try:
            reporter = PerformanceReporter(store, fill_loader=lambda agent_id: fills_by_agent.get(agent_id, []), config=cfg.engine)
            result = reporter.get_performance(args.agent, now=now)
        finally:
            store.close()
        json.dump(result, sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 0

    agents = build_agent_inputs(fills_by_agent, meta)
    market = MarketData.from_raw(price_rows, live, testnet_live)

    store = SnapshotStore(cfg.monitor.storage_path) if (args.persist or cfg.monitor.persist_snapshots) else None
    try:
        aggregator = LeaderboardAggregator(cfg.engine, snapshot_sink=store)
        ranked = aggregator.rank(agents, market, now=now)
    finally:
        if store is not None:
            store.close()
    entries = [r.entry for r in ranked]

    if args.export_timelines:
        outdir = Path(args.export_timelines)
        outdir.mkdir(parents=True, exist_ok=True)
        cutoff = now - int(args.export_hours * MS_PER_HOUR) if args.export_hours else None
        for r in ranked:
            out_csv = outdir / f"timeline_{r.entry.agent_id}.csv"
            points = window(r.performance.timeline.points, cutoff)
            frame = to_frame(points)
            frame["pct_change"] = [p.account_value for p in relative_series(points, cfg.engine.baseline_epsilon)]
            frame.to_csv(out_csv, index=False)
        log.info(f"Saved {len(ranked)} timeline(s) to {outdir}")

    trade_limit = min(args.trades, cfg.engine.completed_trades_limit)
    fmt = args.format or cfg.cli.format
    if fmt == "json":
        payload = {"leaderboard": [e.to_dict() for e in entries]}
        if args.positions:
            payload["positions"] = [
                dict(asdict(v), id=v.id) for v in collect_open_positions(agents, market, config=cfg.engine, default_timestamp=now)
            ]
        if args.trades:
            payload["completed_trades"] = [
                t.to_dict() for t in collect_completed_trades(agents, limit=trade_limit, default_timestamp=now)
            ]
        json.dump(payload, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        render_leaderboard(entries, top_n=cfg.cli.top_n)
        if args.positions:
            render_positions(collect_open_positions(agents, market, config=cfg.engine, default_timestamp=now))
        if args.trades:
            render_completed_trades(collect_completed_trades(agents, limit=trade_limit, default_timestamp=now))
        console.print(f"[bold]Agents ranked:[/bold] {len(entries)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
