from __future__ import annotations

import json
import os
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from tradeboard.core.types import PerformanceSnapshot


def _expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))


class SnapshotStore:
    """SQLite-backed store for computed performance snapshots.

    Tables:
      - performance_snapshots
    """

    def __init__(self, db_path: str = "~/.tradeboard/snapshots.db") -> None:
        # Allow overriding the DB path via environment to share snapshots across sessions
        env_override = os.getenv("TRADEBOARD_SNAPSHOT_DB")
        self.db_path = _expand(env_override or db_path)
        Path(os.path.dirname(self.db_path) or ".").mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS performance_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    agent_id TEXT,
                    period_start TEXT,
                    period_end TEXT,
                    computed_at TEXT,
                    status TEXT,
                    error_message TEXT,
                    prompt TEXT,
                    metrics_json TEXT,
                    account_history_json TEXT,
                    recent_trades_json TEXT
                );
                """
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_snapshots_agent ON performance_snapshots(agent_id, computed_at)"
            )

    def record_snapshot(self, snapshot: PerformanceSnapshot) -> int:
        """Insert a snapshot and return its row id."""
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO performance_snapshots (
                    agent_id, period_start, period_end, computed_at, status, error_message,
                    prompt, metrics_json, account_history_json, recent_trades_json
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    snapshot.agent_id,
                    snapshot.period_start,
                    snapshot.period_end,
                    snapshot.computed_at,
                    snapshot.status,
                    snapshot.error_message,
                    snapshot.prompt,
                    json.dumps(snapshot.metrics or {}),
                    json.dumps(snapshot.account_history or []),
                    json.dumps(snapshot.recent_trades or []),
                ),
            )
            return int(cur.lastrowid or 0)

    # Snapshot sink protocol used by LeaderboardAggregator
    def __call__(self, snapshot: PerformanceSnapshot) -> None:
        self.record_snapshot(snapshot)

    def latest_snapshot(self, agent_id: str, *, status: str = "ready") -> Optional[Dict[str, Any]]:
        row = self._conn.execute(
            """
            SELECT agent_id, period_start, period_end, computed_at, status, prompt,
                   metrics_json, account_history_json, recent_trades_json
            FROM performance_snapshots
            WHERE agent_id = ? AND status = ?
            ORDER BY computed_at DESC, id DESC
            LIMIT 1
            """,
            (str(agent_id), status),
        ).fetchone()
        if not row:
            return None
        return {
            "agent_id": row[0],
            "period_start": row[1],
            "period_end": row[2],
            "computed_at": row[3],
            "status": row[4],
            "prompt": row[5] or "",
            "metrics": json.loads(row[6] or "{}"),
            "account_history": json.loads(row[7] or "[]"),
            "recent_trades": json.loads(row[8] or "[]"),
        }

    def list_agents(self) -> List[str]:
        rows = self._conn.execute("SELECT DISTINCT agent_id FROM performance_snapshots ORDER BY agent_id").fetchall()
        return [str(r[0]) for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
