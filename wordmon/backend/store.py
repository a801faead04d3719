"""Persistence interfaces and implementations for player data."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator, Protocol

from wordmon.backend.errors import DuplicateNameError, PlayerNotFoundError, StoreError
from wordmon.backend.ledger import new_player
from wordmon.backend.models import Player, Rarity, SpawnEvent, Word


class PlayerStore(Protocol):
    started_at: datetime

    def create_player(self, name: str) -> Player:
        """Create a level 1 player; raise DuplicateNameError when the name is taken."""

    def get_player(self, player_id: str) -> Player:
        """Return a copy of the player or raise PlayerNotFoundError."""

    def find_player_by_name(self, name: str) -> Player | None:
        """Return a copy of the player called ``name``, if any."""

    def update_player(self, player: Player) -> None:
        """Replace the stored player or raise PlayerNotFoundError."""

    def list_players(self) -> list[Player]:
        """Return copies of every stored player."""

    def player_count(self) -> int:
        """Return how many players exist."""

    def record_spawn(self, event: SpawnEvent) -> None:
        """Remember the latest spawn for status reporting."""

    def current_spawn(self) -> SpawnEvent | None:
        """Return the latest recorded spawn, if any."""


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


@dataclass
class InMemoryPlayerStore:
    def __post_init__(self) -> None:
        self.started_at = datetime.now(timezone.utc)
        self._players: dict[str, Player] = {}
        self._current_spawn: SpawnEvent | None = None
        self._counter = 0
        self._lock = ReadWriteLock()

    def create_player(self, name: str) -> Player:
        with self._lock.write():
            if any(player.name == name for player in self._players.values()):
                raise DuplicateNameError(name)
            self._counter += 1
            player = new_player(name=name, player_id=f"p{self._counter}")
            self._players[player.id] = player
            return player.snapshot()

    def get_player(self, player_id: str) -> Player:
        with self._lock.read():
            player = self._players.get(player_id)
            if player is None:
                raise PlayerNotFoundError(player_id)
            return player.snapshot()

    def find_player_by_name(self, name: str) -> Player | None:
        with self._lock.read():
            for player in self._players.values():
                if player.name == name:
                    return player.snapshot()
            return None

    def restore_players(self, players: list[Player]) -> None:
        """Replace the registry with ``players``; new ids continue after the highest restored one."""
        with self._lock.write():
            self._players = {player.id: player.snapshot() for player in players}
            numbers = [int(player.id[1:]) for player in players if player.id[:1] == "p" and player.id[1:].isdigit()]
            self._counter = max(numbers, default=0)

    def update_player(self, player: Player) -> None:
        with self._lock.write():
            if player.id not in self._players:
                raise PlayerNotFoundError(player.id)
            self._players[player.id] = player.snapshot()

    def list_players(self) -> list[Player]:
        with self._lock.read():
            return [player.snapshot() for player in self._players.values()]

    def player_count(self) -> int:
        with self._lock.read():
            return len(self._players)

    def record_spawn(self, event: SpawnEvent) -> None:
        with self._lock.write():
            self._current_spawn = event

    def current_spawn(self) -> SpawnEvent | None:
        with self._lock.read():
            return self._current_spawn


@dataclass
class PostgresPlayerStore:
    database_url: str

    def __post_init__(self) -> None:
        self.started_at = datetime.now(timezone.utc)

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    @contextmanager
    def _session(self, action: str) -> Iterator[Any]:
        """Yield a connection; driver failures surface as StoreError."""
        import psycopg

        try:
            with self._connect() as conn:
                yield conn
        except psycopg.Error as exc:
            raise StoreError(action, str(exc)) from exc

    def create_player(self, name: str) -> Player:
        import psycopg

        with self._session("create_player") as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        """
                        INSERT INTO players (id, name, xp, level, inventory, created_at)
                        VALUES ('p' || nextval('player_ids'), %s, 0, 1, '{}'::jsonb, %s)
                        RETURNING id
                        """,
                        (name, datetime.now(timezone.utc)),
                    )
                except psycopg.errors.UniqueViolation as exc:
                    raise DuplicateNameError(name) from exc
                (player_id,) = cur.fetchone()
            conn.commit()
        return new_player(name=name, player_id=player_id)

    def get_player(self, player_id: str) -> Player:
        with self._session("get_player") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, name, xp, level, inventory FROM players WHERE id = %s",
                    (player_id,),
                )
                row = cur.fetchone()
        if row is None:
            raise PlayerNotFoundError(player_id)
        return _player_from_row(row)

    def find_player_by_name(self, name: str) -> Player | None:
        with self._session("find_player_by_name") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, name, xp, level, inventory FROM players WHERE name = %s",
                    (name,),
                )
                row = cur.fetchone()
        if row is None:
            return None
        return _player_from_row(row)

    def update_player(self, player: Player) -> None:
        with self._session("update_player") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE players
                    SET xp = %s, level = %s, inventory = %s::jsonb
                    WHERE id = %s
                    """,
                    (player.xp, player.level, json.dumps(player.inventory), player.id),
                )
                if cur.rowcount == 0:
                    raise PlayerNotFoundError(player.id)
            conn.commit()

    def list_players(self) -> list[Player]:
        with self._session("list_players") as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT id, name, xp, level, inventory FROM players ORDER BY created_at")
                rows = cur.fetchall()
        return [_player_from_row(row) for row in rows]

    def player_count(self) -> int:
        with self._session("player_count") as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT count(*) FROM players")
                (count,) = cur.fetchone()
        return int(count)

    def record_spawn(self, event: SpawnEvent) -> None:
        with self._session("record_spawn") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO spawns (round, word_id, text, rarity, points, spawned_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (
                        event.round,
                        event.word.id,
                        event.word.text,
                        event.word.rarity.value,
                        event.word.points,
                        datetime.now(timezone.utc),
                    ),
                )
            conn.commit()

    def current_spawn(self) -> SpawnEvent | None:
        with self._session("current_spawn") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT round, word_id, text, rarity, points
                    FROM spawns
                    ORDER BY spawned_at DESC, id DESC
                    LIMIT 1
                    """
                )
                row = cur.fetchone()
        if row is None:
            return None
        round_number, word_id, text, rarity, points = row
        return SpawnEvent(round=round_number, word=Word(id=word_id, text=text, rarity=Rarity(rarity), points=points))


def _player_from_row(row: tuple[Any, ...]) -> Player:
    player_id, name, xp, level, inventory = row
    if not isinstance(inventory, dict):
        inventory = json.loads(inventory)
    return Player(id=player_id, name=name, xp=int(xp), level=int(level), inventory=dict(inventory))


def create_store(database_url: str | None) -> PlayerStore:
    if database_url:
        return PostgresPlayerStore(database_url=database_url)
    return InMemoryPlayerStore()
