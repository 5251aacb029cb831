from __future__ import annotations

import os
import tempfile

from tradeboard.core.types import PerformanceSnapshot
from tradeboard.monitor.storage import SnapshotStore


def _snapshot(agent_id: str, computed_at: str, value: float, status: str = "ready") -> PerformanceSnapshot:
    return PerformanceSnapshot(
        agent_id=agent_id,
        period_start="2024-01-01T00:00:00.000Z",
        period_end="2024-01-02T00:00:00.000Z",
        computed_at=computed_at,
        metrics={"account_value": value},
        account_history=[{"date": "2024-01-02T00:00:00.000Z", "value": value}],
        recent_trades=[],
        status=status,
        prompt="be careful",
    )


def test_snapshot_roundtrip_returns_latest_ready(monkeypatch) -> None:
    monkeypatch.delenv("TRADEBOARD_SNAPSHOT_DB", raising=False)
    with tempfile.TemporaryDirectory() as tmp:
        store = SnapshotStore(db_path=os.path.join(tmp, "snapshots.db"))
        sid = store.record_snapshot(_snapshot("bot-1", "2024-01-02T00:00:00+00:00", 10.0))
        assert isinstance(sid, int) and sid > 0
        store(_snapshot("bot-1", "2024-01-03T00:00:00+00:00", 25.0))
        store(_snapshot("bot-1", "2024-01-04T00:00:00+00:00", 99.0, status="error"))
        store(_snapshot("bot-2", "2024-01-01T00:00:00+00:00", 1.0))

        latest = store.latest_snapshot("bot-1")
        assert latest is not None
        assert latest["metrics"] == {"account_value": 25.0}
        assert latest["account_history"][0]["value"] == 25.0
        assert latest["prompt"] == "be careful"
        assert store.latest_snapshot("bot-1", status="error")["metrics"]["account_value"] == 99.0
        assert store.latest_snapshot("missing") is None
        assert store.list_agents() == ["bot-1", "bot-2"]
        store.close()


def test_env_var_overrides_db_path(monkeypatch) -> None:
    with tempfile.TemporaryDirectory() as tmp:
        target = os.path.join(tmp, "nested", "override.db")
        monkeypatch.setenv("TRADEBOARD_SNAPSHOT_DB", target)
        store = SnapshotStore(db_path=os.path.join(tmp, "ignored.db"))
        assert store.db_path == target
        assert os.path.exists(target)
        store.close()
