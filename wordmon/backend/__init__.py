"""Backend package for WordMon."""

__version__ = "0.3.0"

from .catalog import DEFAULT_CATALOG, Catalog
from .challenge import AnagramChallenge, Challenge, auto_attempt_for
from .config import BackendSettings, load_settings
from .encounter import Encounter, Phase
from .errors import (
    CaptureError,
    CatalogCorruptionError,
    DuplicateNameError,
    InvalidAttemptError,
    InvalidStateError,
    NegativePointsError,
    PlayerNotFoundError,
    StoreError,
    WordMonError,
)
from .ledger import award_xp, capture, level_from_xp, new_player
from .models import AttemptRecord, Outcome, Player, Rarity, RoundOutcome, SpawnEvent, Word
from .orchestrator import RoundOrchestrator, SimulatedPlayer, run_spawner
from .store import InMemoryPlayerStore, PlayerStore, PostgresPlayerStore, create_store

__all__ = [
    "AnagramChallenge",
    "AttemptRecord",
    "award_xp",
    "auto_attempt_for",
    "BackendSettings",
    "capture",
    "CaptureError",
    "Catalog",
    "CatalogCorruptionError",
    "Challenge",
    "create_store",
    "DEFAULT_CATALOG",
    "DuplicateNameError",
    "Encounter",
    "InMemoryPlayerStore",
    "InvalidAttemptError",
    "InvalidStateError",
    "level_from_xp",
    "load_settings",
    "NegativePointsError",
    "new_player",
    "Outcome",
    "Phase",
    "Player",
    "PlayerNotFoundError",
    "PlayerStore",
    "PostgresPlayerStore",
    "Rarity",
    "RoundOrchestrator",
    "RoundOutcome",
    "run_spawner",
    "SimulatedPlayer",
    "SpawnEvent",
    "StoreError",
    "Word",
    "WordMonError",
]
