"""Domain models shared by the catalog, the encounter core and the stores."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum


class Rarity(str, Enum):
    COMMON = "Common"
    RARE = "Rare"
    LEGENDARY = "Legendary"


class Outcome(str, Enum):
    CAPTURED = "captured"
    FLED = "fled"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Word:
    id: str
    text: str
    rarity: Rarity
    points: int

    def presentation(self) -> str:
        return f'{self.rarity.value} - "{self.text}" (+{self.points} XP)'


@dataclass
class Player:
    id: str
    name: str
    xp: int = 0
    level: int = 1
    inventory: dict[str, int] = field(default_factory=dict)

    def snapshot(self) -> Player:
        return copy.deepcopy(self)


@dataclass(frozen=True)
class SpawnEvent:
    round: int
    word: Word


@dataclass(frozen=True)
class AttemptRecord:
    round: int
    player: Player
    word: Word
    won: bool


@dataclass(frozen=True)
class RoundOutcome:
    round: int
    player_name: str
    word: Word
    outcome: Outcome
