"""JSON snapshots of player progress, written on shutdown and read back on start."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from wordmon.backend.models import Player
from wordmon.backend.store import InMemoryPlayerStore


def build_snapshot(players: Iterable[Player]) -> dict[str, Any]:
    return {
        "updatedAt": datetime.now(timezone.utc).isoformat(),
        "players": [
            {
                "id": player.id,
                "name": player.name,
                "xp": player.xp,
                "level": player.level,
                "inventory": dict(player.inventory),
            }
            for player in players
        ],
    }


def save_snapshot(players: Iterable[Player], path: str | Path) -> Path:
    """Write the snapshot to a temp file, then rename it over ``path``."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target.with_name(target.name + ".tmp")
    payload = json.dumps(build_snapshot(players), indent=1)
    temp_path.write_text(payload, encoding="utf-8")
    try:
        os.replace(temp_path, target)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
    return target


def load_snapshot(path: str | Path) -> list[Player]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return [
        Player(
            id=entry["id"],
            name=entry["name"],
            xp=int(entry["xp"]),
            level=int(entry["level"]),
            inventory={str(word): int(count) for word, count in entry.get("inventory", {}).items()},
        )
        for entry in data.get("players", [])
    ]


def restore_snapshot(store: InMemoryPlayerStore, path: str | Path) -> int:
    """Seed ``store`` from the snapshot at ``path``; a missing file restores nobody."""
    if not Path(path).is_file():
        return 0
    players = load_snapshot(path)
    store.restore_players(players)
    return len(players)
