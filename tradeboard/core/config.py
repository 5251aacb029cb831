from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, PositiveFloat, PositiveInt


class EngineConfig(BaseModel):
    # Positions below display_epsilon are FLAT for open-position views,
    # below notional_epsilon for PnL replay (timeline, realized PnL).
    display_epsilon: PositiveFloat = 1e-4
    notional_epsilon: PositiveFloat = 1e-8
    baseline_epsilon: PositiveFloat = 1e-8
    fallback_baseline: PositiveFloat = 10000.0
    recent_trades_limit: PositiveInt = 10
    completed_trades_limit: PositiveInt = 100
    history_window_hours: PositiveFloat = 72.0
    max_workers: PositiveInt = 4


class DataConfig(BaseModel):
    fills_path: Optional[str] = None
    prices_path: Optional[str] = None
    live_prices_path: Optional[str] = None
    testnet_live_prices_path: Optional[str] = None
    agents_path: Optional[str] = None


class MonitorConfig(BaseModel):
    persist_snapshots: bool = False
    storage_path: str = Field(
        default_factory=lambda: os.getenv("TRADEBOARD_SNAPSHOT_DB", "~/.tradeboard/snapshots.db")
    )


class CLIConfig(BaseModel):
    top_n: PositiveInt = 10
    format: str = "table"  # "table" | "json"
    log_dir: str = "logs"
    log_level: str = "INFO"


class AppConfig(BaseModel):
    engine: EngineConfig = Field(default_factory=EngineConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    cli: CLIConfig = Field(default_factory=CLIConfig)

    @staticmethod
    def load(path: str | Path) -> "AppConfig":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return AppConfig(**data)
