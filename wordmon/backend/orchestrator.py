"""Round loop racing spawns, player attempts and the battle timeout.

One task produces spawns on a timer, one task consumes them and is the
only writer of the encounter and its player. Attempts submitted from
elsewhere only travel as text through the attempt queue.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Protocol

from .catalog import Catalog
from .challenge import auto_attempt_for
from .encounter import Encounter, Phase
from .errors import InvalidAttemptError, InvalidStateError, WordMonError
from .ledger import describe_player
from .models import AttemptRecord, Outcome, Player, RoundOutcome, SpawnEvent
from .store import PlayerStore

logger = logging.getLogger(__name__)

OutcomeSink = Callable[[RoundOutcome], None]
SpawnSink = Callable[[SpawnEvent], None]

_ARRIVED = "arrived"
_STOPPED = "stopped"
_TIMED_OUT = "timed_out"


async def _race(awaitable: Awaitable[Any], stop: asyncio.Event, timeout: float | None = None) -> tuple[str, Any]:
    """Wait for ``awaitable``, the stop event or ``timeout``, whichever comes first."""
    getter = asyncio.ensure_future(awaitable)
    stopper = asyncio.ensure_future(stop.wait())
    try:
        done, _ = await asyncio.wait({getter, stopper}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (getter, stopper):
            if not task.done():
                task.cancel()
    if getter in done:
        return _ARRIVED, getter.result()
    if stopper in done:
        return _STOPPED, None
    return _TIMED_OUT, None


async def run_spawner(
    catalog: Catalog,
    spawns: asyncio.Queue[SpawnEvent],
    interval: float,
    stop: asyncio.Event,
    rng: random.Random | None = None,
) -> None:
    """Push a freshly drawn word every ``interval`` seconds until ``stop`` is set.

    Spawns are best effort: when the queue is full the word is dropped.
    """
    round_number = 0
    while True:
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
        else:
            return
        event = SpawnEvent(round=round_number + 1, word=catalog.spawn_word(rng))
        try:
            spawns.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("[round %d] spawn of %r dropped, previous round still running", event.round, event.word.text)
            continue
        round_number = event.round
        logger.info("[round %d] a WordMon appeared: %s", event.round, event.word.presentation())


class PlayerAgent(Protocol):
    def decide(self, encounter: Encounter) -> str | None:
        """Return an attempt for the open battle, or None to let the word go."""


class SimulatedPlayer:
    """Stand-in for a real player: attempts most battles with a shuffled word."""

    def __init__(self, attempt_chance: float = 0.8, rng: random.Random | None = None) -> None:
        self.attempt_chance = attempt_chance
        self._rng = rng if rng is not None else random.Random()

    def decide(self, encounter: Encounter) -> str | None:
        if self._rng.random() >= self.attempt_chance:
            return None
        return auto_attempt_for(encounter.word, self._rng)


class RoundOrchestrator:
    def __init__(
        self,
        encounter: Encounter,
        player: Player,
        spawns: asyncio.Queue[SpawnEvent],
        battle_timeout: float = 5.0,
        agent: PlayerAgent | None = None,
        store: PlayerStore | None = None,
        spawn_sink: SpawnSink | None = None,
        outcome_sink: OutcomeSink | None = None,
        attempt_buffer: int = 1,
    ) -> None:
        self.encounter = encounter
        self.player = player
        self.battle_timeout = battle_timeout
        self._spawns = spawns
        self._agent = agent
        self._store = store
        self._spawn_sink = spawn_sink
        self._outcome_sink = outcome_sink
        self._attempts: asyncio.Queue[str] = asyncio.Queue(maxsize=attempt_buffer)
        self.current_round = 0

    def submit_attempt(self, text: str) -> None:
        """Queue an attempt for the open battle.

        Raises ``InvalidStateError`` when no battle is open and
        ``asyncio.QueueFull`` when an attempt is already pending.
        """
        if self.encounter.phase is not Phase.IN_BATTLE:
            raise InvalidStateError(self.encounter.phase.value, Phase.IN_BATTLE.value)
        self._attempts.put_nowait(text)

    async def run(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            kind, event = await _race(self._spawns.get(), stop)
            if kind != _ARRIVED or stop.is_set():
                break
            await self.play_round(event, stop)
        logger.info("round loop stopped after round %d (%s)", self.current_round, describe_player(self.player))

    async def play_round(self, event: SpawnEvent, stop: asyncio.Event) -> RoundOutcome | None:
        """Play one spawn to completion; None means the round was abandoned."""
        self.current_round = event.round
        await self._record_spawn(event)
        try:
            if self.encounter.phase is Phase.IDLE:
                self.encounter.start(self.player, event.word)
            else:
                self.encounter.present(event.word)
            self.encounter.begin_battle()
        except WordMonError as exc:
            logger.warning("[round %d] battle against %r not started: %s", event.round, event.word.text, exc)
            return None
        logger.info("[round %d] battle started against %r, phase=%s", event.round, event.word.text, self.encounter.phase.value)

        self._drain_attempts()
        if self._agent is not None:
            text = self._agent.decide(self.encounter)
            if text is None:
                logger.info("[round %d] %s lets %r go by", event.round, self.player.name, event.word.text)
            else:
                logger.info("[round %d] %s tries %r", event.round, self.player.name, text)
                self._attempts.put_nowait(text)

        outcome = await self._battle(event, stop)
        if outcome is None:
            return None
        self._notify(self._outcome_sink, outcome)
        return outcome

    async def _battle(self, event: SpawnEvent, stop: asyncio.Event) -> RoundOutcome | None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.battle_timeout
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            kind, text = await _race(self._attempts.get(), stop, timeout=remaining)
            if kind == _STOPPED:
                self.encounter.flee()
                logger.info("[round %d] battle against %r abandoned on shutdown", event.round, event.word.text)
                return None
            if kind == _TIMED_OUT:
                break
            try:
                won = self.encounter.submit_attempt(text)
            except InvalidAttemptError as exc:
                logger.warning("[round %d] %s", event.round, exc)
                continue
            record = AttemptRecord(round=event.round, player=self.player.snapshot(), word=event.word, won=won)
            return await self._settle(record)

        self.encounter.flee()
        logger.info("[round %d] %r fled, no attempt within %.1fs", event.round, event.word.text, self.battle_timeout)
        return RoundOutcome(round=event.round, player_name=self.player.name, word=event.word, outcome=Outcome.TIMEOUT)

    async def _settle(self, record: AttemptRecord) -> RoundOutcome:
        outcome = Outcome.CAPTURED if record.won else Outcome.FLED
        try:
            points = self.encounter.resolve()
        except WordMonError as exc:
            logger.error("[round %d] resolution failed for %r: %s", record.round, record.word.text, exc)
            outcome = Outcome.FLED
        else:
            if record.won:
                logger.info("[round %d] %s captured %r (+%d XP)", record.round, self.player.name, record.word.text, points)
            else:
                logger.info("[round %d] wrong attempt, %r fled", record.round, record.word.text)
        await self._persist(record.round)
        return RoundOutcome(round=record.round, player_name=self.player.name, word=record.word, outcome=outcome)

    async def _record_spawn(self, event: SpawnEvent) -> None:
        if self._spawn_sink is None:
            return
        try:
            await asyncio.to_thread(self._spawn_sink, event)
        except Exception:
            logger.exception("[round %d] spawn hook failed", event.round)

    async def _persist(self, round_number: int) -> None:
        if self._store is None:
            return
        try:
            await asyncio.to_thread(self._store.update_player, self.player.snapshot())
        except WordMonError as exc:
            logger.error("[round %d] could not persist %s: %s", round_number, self.player.name, exc)

    def _drain_attempts(self) -> None:
        while not self._attempts.empty():
            stale = self._attempts.get_nowait()
            logger.debug("discarding stale attempt %r", stale)

    def _notify(self, sink: Callable[[Any], None] | None, payload: Any) -> None:
        if sink is None:
            return
        try:
            sink(payload)
        except Exception:
            logger.exception("[round %d] reporting hook failed", self.current_round)
