"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_SNAPSHOT_PATH = "data/snapshot.json"


@dataclass(frozen=True)
class BackendSettings:
    spawn_interval: float
    battle_timeout: float
    attempt_chance: float
    spawn_buffer: int
    database_url: str | None
    snapshot_path: str
    host: str
    port: int
    log_level: str
    seed: int | None


def load_settings() -> BackendSettings:
    spawn_interval = float(os.getenv("WORDMON_SPAWN_INTERVAL", "30"))
    if spawn_interval <= 0:
        spawn_interval = 1.0
    seed_raw = os.getenv("WORDMON_SEED")
    return BackendSettings(
        spawn_interval=spawn_interval,
        battle_timeout=float(os.getenv("WORDMON_BATTLE_TIMEOUT", "5")),
        attempt_chance=float(os.getenv("WORDMON_ATTEMPT_CHANCE", "0.8")),
        spawn_buffer=max(1, int(os.getenv("WORDMON_SPAWN_BUFFER", "1"))),
        database_url=os.getenv("WORDMON_DATABASE_URL"),
        snapshot_path=os.getenv("WORDMON_SNAPSHOT_PATH", DEFAULT_SNAPSHOT_PATH),
        host=os.getenv("WORDMON_HOST", "127.0.0.1"),
        port=int(os.getenv("WORDMON_PORT", "8000")),
        log_level=os.getenv("WORDMON_LOG_LEVEL", "INFO").upper(),
        seed=int(seed_raw) if seed_raw else None,
    )
