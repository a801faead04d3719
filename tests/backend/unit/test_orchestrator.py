import asyncio
import random
import threading
import time

import pytest

from wordmon.backend.catalog import DEFAULT_CATALOG
from wordmon.backend.encounter import Encounter, Phase
from wordmon.backend.errors import CatalogCorruptionError, InvalidStateError, PlayerNotFoundError
from wordmon.backend.models import Outcome, Player, Rarity, RoundOutcome, SpawnEvent, Word
from wordmon.backend.orchestrator import RoundOrchestrator, SimulatedPlayer, run_spawner
from wordmon.backend.store import InMemoryPlayerStore, PostgresPlayerStore

CHAT = Word(id="c1", text="chat", rarity=Rarity.COMMON, points=5)


class ScriptedPlayer:
    def __init__(self, *attempts: str | None) -> None:
        self.attempts = list(attempts)

    def decide(self, encounter: Encounter) -> str | None:
        if not self.attempts:
            return None
        return self.attempts.pop(0)


def _orchestrator(player: Player | None = None, spawn_buffer: int = 1, **kwargs) -> RoundOrchestrator:
    return RoundOrchestrator(
        encounter=Encounter(),
        player=player if player is not None else Player(id="p1", name="Ash"),
        spawns=asyncio.Queue(maxsize=spawn_buffer),
        **kwargs,
    )


def test_round_with_a_valid_anagram_captures_the_word() -> None:
    async def scenario() -> tuple[RoundOrchestrator, RoundOutcome | None]:
        orchestrator = _orchestrator(agent=ScriptedPlayer("tach"), battle_timeout=1.0)
        outcome = await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())
        return orchestrator, outcome

    orchestrator, outcome = asyncio.run(scenario())

    assert outcome == RoundOutcome(round=1, player_name="Ash", word=CHAT, outcome=Outcome.CAPTURED)
    assert orchestrator.player.inventory == {"chat": 1}
    assert orchestrator.player.xp == 5
    assert orchestrator.encounter.phase is Phase.ENCOUNTERED


def test_wrong_attempt_lets_the_word_flee() -> None:
    async def scenario() -> tuple[RoundOrchestrator, RoundOutcome | None]:
        orchestrator = _orchestrator(agent=ScriptedPlayer("chut"), battle_timeout=1.0)
        outcome = await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())
        return orchestrator, outcome

    orchestrator, outcome = asyncio.run(scenario())

    assert outcome is not None
    assert outcome.outcome is Outcome.FLED
    assert orchestrator.player.inventory == {}
    assert orchestrator.player.xp == 0


def test_timeout_leaves_player_unchanged_and_next_round_proceeds() -> None:
    async def scenario() -> tuple[RoundOrchestrator, list[RoundOutcome | None]]:
        orchestrator = _orchestrator(battle_timeout=0.05)
        stop = asyncio.Event()
        first = await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), stop)

        orchestrator.battle_timeout = 1.0
        asyncio.get_running_loop().call_later(0.01, orchestrator.submit_attempt, "tach")
        second = await orchestrator.play_round(SpawnEvent(round=2, word=CHAT), stop)
        return orchestrator, [first, second]

    orchestrator, (first, second) = asyncio.run(scenario())

    assert first is not None and first.outcome is Outcome.TIMEOUT
    assert second is not None and second.outcome is Outcome.CAPTURED
    assert second.round == 2
    assert orchestrator.player.inventory == {"chat": 1}


def test_declined_attempt_ends_in_timeout() -> None:
    async def scenario() -> RoundOutcome | None:
        orchestrator = _orchestrator(agent=ScriptedPlayer(None), battle_timeout=0.05)
        return await orchestrator.play_round(SpawnEvent(round=3, word=CHAT), asyncio.Event())

    outcome = asyncio.run(scenario())

    assert outcome is not None
    assert outcome.outcome is Outcome.TIMEOUT
    assert outcome.round == 3


def test_invalid_attempt_keeps_the_battle_open_for_a_retry() -> None:
    async def scenario() -> tuple[RoundOrchestrator, RoundOutcome | None]:
        orchestrator = _orchestrator(agent=ScriptedPlayer("chat"), battle_timeout=1.0)
        asyncio.get_running_loop().call_later(0.02, orchestrator.submit_attempt, "tach")
        outcome = await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())
        return orchestrator, outcome

    orchestrator, outcome = asyncio.run(scenario())

    assert outcome is not None
    assert outcome.outcome is Outcome.CAPTURED
    assert orchestrator.player.xp == 5


def test_stale_attempts_are_not_used_in_the_next_battle() -> None:
    async def scenario() -> RoundOutcome | None:
        orchestrator = _orchestrator(battle_timeout=0.05)
        orchestrator._attempts.put_nowait("tach")
        return await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())

    outcome = asyncio.run(scenario())

    assert outcome is not None
    assert outcome.outcome is Outcome.TIMEOUT


def test_shutdown_abandons_the_battle_promptly() -> None:
    async def scenario() -> tuple[RoundOrchestrator, RoundOutcome | None, float]:
        orchestrator = _orchestrator(battle_timeout=5.0)
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.02, stop.set)
        started = time.monotonic()
        outcome = await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), stop)
        return orchestrator, outcome, time.monotonic() - started

    orchestrator, outcome, elapsed = asyncio.run(scenario())

    assert outcome is None
    assert elapsed < 1.0
    assert orchestrator.encounter.phase is Phase.ENCOUNTERED
    assert orchestrator.player.inventory == {}


def test_reporting_hooks_never_break_the_round() -> None:
    def broken(_: object) -> None:
        raise RuntimeError("telemetry down")

    async def scenario() -> RoundOutcome | None:
        orchestrator = _orchestrator(
            agent=ScriptedPlayer("tach"),
            battle_timeout=1.0,
            spawn_sink=broken,
            outcome_sink=broken,
        )
        return await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())

    outcome = asyncio.run(scenario())

    assert outcome is not None
    assert outcome.outcome is Outcome.CAPTURED


def test_battle_that_cannot_start_abandons_the_round() -> None:
    async def scenario() -> tuple[RoundOrchestrator, RoundOutcome | None]:
        orchestrator = _orchestrator(agent=ScriptedPlayer("tach"), battle_timeout=1.0)
        orchestrator.encounter.start(orchestrator.player, CHAT)
        orchestrator.encounter.begin_battle()
        outcome = await orchestrator.play_round(SpawnEvent(round=2, word=CHAT), asyncio.Event())
        return orchestrator, outcome

    orchestrator, outcome = asyncio.run(scenario())

    assert outcome is None
    assert orchestrator.encounter.phase is Phase.IN_BATTLE
    assert orchestrator.player.inventory == {}


def test_empty_spawned_word_aborts_the_loop() -> None:
    async def scenario() -> None:
        orchestrator = _orchestrator(battle_timeout=0.05)
        empty = Word(id="x", text="", rarity=Rarity.COMMON, points=5)
        await orchestrator.play_round(SpawnEvent(round=1, word=empty), asyncio.Event())

    with pytest.raises(CatalogCorruptionError):
        asyncio.run(scenario())


def test_capture_is_persisted_to_the_store() -> None:
    store = InMemoryPlayerStore()
    player = store.create_player("Ash")

    async def scenario() -> None:
        orchestrator = _orchestrator(player=player, agent=ScriptedPlayer("tach"), battle_timeout=1.0, store=store)
        await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())

    asyncio.run(scenario())

    stored = store.get_player(player.id)
    assert stored.inventory == {"chat": 1}
    assert stored.xp == 5


def test_persistence_failure_is_reported_but_round_completes() -> None:
    class MissingStore(InMemoryPlayerStore):
        def update_player(self, player: Player) -> None:
            raise PlayerNotFoundError(player.id)

    async def scenario() -> RoundOutcome | None:
        orchestrator = _orchestrator(agent=ScriptedPlayer("tach"), battle_timeout=1.0, store=MissingStore())
        return await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())

    outcome = asyncio.run(scenario())

    assert outcome is not None
    assert outcome.outcome is Outcome.CAPTURED


def test_run_plays_rounds_in_order_until_stopped() -> None:
    outcomes: list[RoundOutcome] = []
    recorded: list[SpawnEvent] = []

    async def scenario() -> None:
        stop = asyncio.Event()

        def collect(outcome: RoundOutcome) -> None:
            outcomes.append(outcome)
            if len(outcomes) == 2:
                stop.set()

        orchestrator = _orchestrator(
            spawn_buffer=2,
            agent=ScriptedPlayer("tach", "chut"),
            battle_timeout=1.0,
            spawn_sink=recorded.append,
            outcome_sink=collect,
        )
        orchestrator._spawns.put_nowait(SpawnEvent(round=1, word=CHAT))
        orchestrator._spawns.put_nowait(SpawnEvent(round=2, word=CHAT))
        await asyncio.wait_for(orchestrator.run(stop), timeout=2.0)

    asyncio.run(scenario())

    assert [outcome.round for outcome in outcomes] == [1, 2]
    assert [outcome.outcome for outcome in outcomes] == [Outcome.CAPTURED, Outcome.FLED]
    assert [event.round for event in recorded] == [1, 2]


def test_run_returns_promptly_when_stopped_while_waiting_for_a_spawn() -> None:
    async def scenario() -> float:
        orchestrator = _orchestrator()
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.02, stop.set)
        started = time.monotonic()
        await orchestrator.run(stop)
        return time.monotonic() - started

    assert asyncio.run(scenario()) < 1.0


def test_spawner_drops_spawns_when_the_queue_is_full() -> None:
    async def scenario() -> asyncio.Queue:
        spawns: asyncio.Queue = asyncio.Queue(maxsize=1)
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.15, stop.set)
        await run_spawner(DEFAULT_CATALOG, spawns, 0.01, stop, random.Random(5))
        return spawns

    spawns = asyncio.run(scenario())

    assert spawns.qsize() == 1
    event = spawns.get_nowait()
    assert event.round == 1
    assert event.word.text


def test_spawner_numbers_delivered_rounds_sequentially() -> None:
    async def scenario() -> list[SpawnEvent]:
        spawns: asyncio.Queue = asyncio.Queue(maxsize=1)
        stop = asyncio.Event()
        events: list[SpawnEvent] = []
        spawner = asyncio.create_task(run_spawner(DEFAULT_CATALOG, spawns, 0.01, stop, random.Random(5)))
        while len(events) < 3:
            events.append(await spawns.get())
        stop.set()
        await spawner
        return events

    events = asyncio.run(scenario())

    assert [event.round for event in events] == [1, 2, 3]


def test_simulated_player_respects_attempt_chance() -> None:
    encounter = Encounter()
    encounter.start(Player(id="p1", name="Ash"), CHAT)
    encounter.begin_battle()

    never = SimulatedPlayer(attempt_chance=0.0, rng=random.Random(1))
    always = SimulatedPlayer(attempt_chance=1.0, rng=random.Random(1))

    assert never.decide(encounter) is None
    attempt = always.decide(encounter)
    assert attempt is not None
    assert sorted(attempt.rstrip("x")) == sorted("chat") or attempt == "chatx"


def test_attempts_are_refused_outside_a_battle() -> None:
    async def scenario() -> RoundOrchestrator:
        orchestrator = _orchestrator(battle_timeout=0.05)
        with pytest.raises(InvalidStateError):
            orchestrator.submit_attempt("tach")
        await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())
        with pytest.raises(InvalidStateError):
            orchestrator.submit_attempt("tach")
        return orchestrator

    orchestrator = asyncio.run(scenario())

    assert orchestrator._attempts.empty()
    assert orchestrator.encounter.phase is Phase.ENCOUNTERED


def test_database_outage_is_logged_and_the_round_completes() -> None:
    psycopg = pytest.importorskip("psycopg")

    class OfflineStore(PostgresPlayerStore):
        def _connect(self):
            raise psycopg.OperationalError("connection refused")

    async def scenario() -> tuple[RoundOrchestrator, RoundOutcome | None]:
        orchestrator = _orchestrator(
            agent=ScriptedPlayer("tach"),
            battle_timeout=1.0,
            store=OfflineStore(database_url="postgresql://unused"),
        )
        outcome = await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())
        return orchestrator, outcome

    orchestrator, outcome = asyncio.run(scenario())

    assert outcome is not None
    assert outcome.outcome is Outcome.CAPTURED
    assert orchestrator.player.inventory == {"chat": 1}
    assert orchestrator.encounter.phase is Phase.ENCOUNTERED


def test_store_calls_run_off_the_event_loop_thread() -> None:
    loop_thread = threading.get_ident()
    seen: dict[str, int] = {}

    class RecordingStore(InMemoryPlayerStore):
        def update_player(self, player: Player) -> None:
            seen["update_player"] = threading.get_ident()
            super().update_player(player)

        def record_spawn(self, event: SpawnEvent) -> None:
            seen["record_spawn"] = threading.get_ident()
            super().record_spawn(event)

    store = RecordingStore()
    player = store.create_player("Ash")

    async def scenario() -> None:
        orchestrator = _orchestrator(
            player=player,
            agent=ScriptedPlayer("tach"),
            battle_timeout=1.0,
            store=store,
            spawn_sink=store.record_spawn,
        )
        await orchestrator.play_round(SpawnEvent(round=1, word=CHAT), asyncio.Event())

    asyncio.run(scenario())

    assert set(seen) == {"update_player", "record_spawn"}
    assert loop_thread not in seen.values()
    assert store.get_player(player.id).xp == 5
    assert store.current_spawn() == SpawnEvent(round=1, word=CHAT)
