from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import yaml

from tradeboard.core.types import AgentInput


def _read_table(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(p)
    if suffix in (".json", ".jsonl"):
        return pd.read_json(p, lines=(suffix == ".jsonl"))
    raise ValueError(f"unsupported file type: {p}")


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    # NaN cells become None so downstream coercion treats them as missing
    clean = df.astype(object).where(pd.notna(df), None)
    return clean.to_dict(orient="records")


def load_fill_records(path: str | Path) -> Dict[str, List[Dict[str, Any]]]:
    """Raw trade rows grouped by agent, in file order. The agent column is ``agent_id`` or ``bot_id``."""
    df = _read_table(path)
    agent_col = "agent_id" if "agent_id" in df.columns else "bot_id"
    if agent_col not in df.columns:
        raise ValueError(f"{path}: expected an 'agent_id' or 'bot_id' column")
    if "status" in df.columns:
        df = df[df["status"].astype(str).str.upper() == "FILLED"]
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for row in _records(df):
        grouped.setdefault(str(row[agent_col]), []).append(row)
    return grouped


def load_price_records(path: str | Path) -> List[Dict[str, Any]]:
    return _records(_read_table(path))


def load_live_prices(path: Optional[str | Path]) -> Dict[str, Any]:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object of coin -> price")
    return data


def load_agent_meta(path: Optional[str | Path]) -> Dict[str, Dict[str, Any]]:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or []
    rows = data if isinstance(data, list) else [dict(v, agent_id=k) for k, v in data.items()]
    return {str(r.get("agent_id") or r.get("id")): r for r in rows if isinstance(r, dict)}


def build_agent_inputs(
    fills_by_agent: Dict[str, List[Dict[str, Any]]],
    meta: Optional[Dict[str, Dict[str, Any]]] = None,
) -> List[AgentInput]:
    meta = meta or {}
    agents: List[AgentInput] = []
    for agent_id in sorted(set(fills_by_agent) | set(meta)):
        m = meta.get(agent_id, {})
        agents.append(
            AgentInput(
                agent_id=agent_id,
                fills=fills_by_agent.get(agent_id, []),
                name=str(m.get("name") or "Unknown Bot"),
                model=str(m.get("model") or ""),
                is_testnet=bool(m.get("is_testnet", False)),
            )
        )
    return agents
