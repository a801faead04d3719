"""Wiring of one game session: catalog, store, spawner and round loop."""

from __future__ import annotations

import asyncio
import logging
import random
from pathlib import Path

from wordmon.backend.catalog import DEFAULT_CATALOG, Catalog
from wordmon.backend.config import BackendSettings
from wordmon.backend.encounter import Encounter
from wordmon.backend.ledger import describe_player
from wordmon.backend.models import Player, SpawnEvent
from wordmon.backend.orchestrator import OutcomeSink, PlayerAgent, RoundOrchestrator, SimulatedPlayer, run_spawner
from wordmon.backend.snapshot import save_snapshot
from wordmon.backend.store import PlayerStore

logger = logging.getLogger(__name__)


class GameService:
    def __init__(
        self,
        settings: BackendSettings,
        store: PlayerStore,
        player: Player,
        catalog: Catalog = DEFAULT_CATALOG,
        agent: PlayerAgent | None = None,
        outcome_sink: OutcomeSink | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.player = player
        self.catalog = catalog
        self._rng = rng if rng is not None else random.Random(settings.seed)
        self.spawns: asyncio.Queue[SpawnEvent] = asyncio.Queue(maxsize=settings.spawn_buffer)
        self.encounter = Encounter()
        self.orchestrator = RoundOrchestrator(
            encounter=self.encounter,
            player=player,
            spawns=self.spawns,
            battle_timeout=settings.battle_timeout,
            agent=agent,
            store=store,
            spawn_sink=store.record_spawn,
            outcome_sink=outcome_sink,
        )
        self._stop = asyncio.Event()

    @classmethod
    def create(
        cls,
        settings: BackendSettings,
        store: PlayerStore,
        player_name: str,
        simulate_player: bool = False,
        outcome_sink: OutcomeSink | None = None,
    ) -> GameService:
        """Build a session for ``player_name``, registering them on first play."""
        rng = random.Random(settings.seed)
        player = store.find_player_by_name(player_name)
        if player is None:
            player = store.create_player(player_name)
        else:
            logger.info("welcome back %s (%s)", player.name, describe_player(player))
        agent = SimulatedPlayer(attempt_chance=settings.attempt_chance, rng=rng) if simulate_player else None
        return cls(settings=settings, store=store, player=player, agent=agent, outcome_sink=outcome_sink, rng=rng)

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        self._stop.set()

    def submit_attempt(self, text: str) -> int:
        """Hand an attempt to the open battle and return its round.

        Raises ``InvalidStateError`` outside a battle and ``asyncio.QueueFull``
        when an attempt is already waiting.
        """
        self.orchestrator.submit_attempt(text)
        return self.orchestrator.current_round

    async def run(self) -> None:
        """Run spawner and round loop until ``stop()``; a crash in either stops both."""
        logger.info(
            "starting game for %s, spawn every %.1fs, battle timeout %.1fs",
            self.player.name,
            self.settings.spawn_interval,
            self.settings.battle_timeout,
        )
        tasks = [
            asyncio.create_task(
                run_spawner(self.catalog, self.spawns, self.settings.spawn_interval, self._stop, self._rng),
                name="wordmon-spawner",
            ),
            asyncio.create_task(self.orchestrator.run(self._stop), name="wordmon-rounds"),
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            self._stop.set()
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await asyncio.to_thread(self.save_snapshot)

    def save_snapshot(self) -> Path | None:
        if not self.settings.snapshot_path:
            return None
        try:
            path = save_snapshot(self.store.list_players(), self.settings.snapshot_path)
        except OSError as exc:
            logger.error("could not save snapshot to %s: %s", self.settings.snapshot_path, exc)
            return None
        logger.info("snapshot saved to %s", path)
        return path
