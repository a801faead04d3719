"""Rarity-weighted word pools and the spawn draw."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable

from .errors import CatalogCorruptionError
from .models import Rarity, Word

# Upper bounds of each tier on a draw in [0, 100).
RARITY_THRESHOLDS: tuple[tuple[int, Rarity], ...] = (
    (80, Rarity.COMMON),
    (98, Rarity.RARE),
    (100, Rarity.LEGENDARY),
)


def rarity_for_roll(roll: int) -> Rarity:
    for upper, rarity in RARITY_THRESHOLDS:
        if roll < upper:
            return rarity
    raise ValueError(f"roll out of range: {roll}")


def validate_word(word: Word) -> Word:
    """Return ``word`` unchanged, or raise when it cannot be played."""
    if not word.text:
        raise CatalogCorruptionError(f"spawned word {word.id!r} has empty text")
    if word.points <= 0:
        raise CatalogCorruptionError(f"spawned word {word.text!r} has no reward ({word.points} points)")
    return word


@dataclass(frozen=True)
class Catalog:
    common: tuple[Word, ...]
    rare: tuple[Word, ...]
    legendary: tuple[Word, ...]

    def __post_init__(self) -> None:
        for rarity in Rarity:
            pool = self.pool(rarity)
            if not pool:
                raise CatalogCorruptionError(f"{rarity.value} pool is empty")
            for word in pool:
                if word.rarity is not rarity:
                    raise CatalogCorruptionError(f"{word.text!r} is {word.rarity.value}, found in {rarity.value} pool")

    @classmethod
    def from_words(cls, words: Iterable[Word]) -> Catalog:
        pools: dict[Rarity, list[Word]] = {rarity: [] for rarity in Rarity}
        for word in words:
            pools[word.rarity].append(word)
        return cls(
            common=tuple(pools[Rarity.COMMON]),
            rare=tuple(pools[Rarity.RARE]),
            legendary=tuple(pools[Rarity.LEGENDARY]),
        )

    def pool(self, rarity: Rarity) -> tuple[Word, ...]:
        if rarity is Rarity.COMMON:
            return self.common
        if rarity is Rarity.RARE:
            return self.rare
        return self.legendary

    def spawn_word(self, rng: random.Random | None = None) -> Word:
        """Draw a tier on the 80/18/2 split, then a word uniformly within it."""
        source = rng if rng is not None else random.Random()
        rarity = rarity_for_roll(source.randrange(100))
        return validate_word(source.choice(self.pool(rarity)))


DEFAULT_CATALOG = Catalog(
    common=(
        Word(id="c1", text="chat", rarity=Rarity.COMMON, points=5),
        Word(id="c2", text="chien", rarity=Rarity.COMMON, points=5),
        Word(id="c3", text="pomme", rarity=Rarity.COMMON, points=5),
        Word(id="c4", text="table", rarity=Rarity.COMMON, points=5),
        Word(id="c5", text="route", rarity=Rarity.COMMON, points=5),
    ),
    rare=(
        Word(id="r1", text="carafe", rarity=Rarity.RARE, points=20),
        Word(id="r2", text="trace", rarity=Rarity.RARE, points=20),
        Word(id="r3", text="atelier", rarity=Rarity.RARE, points=20),
        Word(id="r4", text="portail", rarity=Rarity.RARE, points=20),
        Word(id="r5", text="lingerie", rarity=Rarity.RARE, points=20),
    ),
    legendary=(
        Word(id="l1", text="polyglotte", rarity=Rarity.LEGENDARY, points=100),
        Word(id="l2", text="intergalaxie", rarity=Rarity.LEGENDARY, points=100),
        Word(id="l3", text="mythologie", rarity=Rarity.LEGENDARY, points=100),
        Word(id="l4", text="clairvoyance", rarity=Rarity.LEGENDARY, points=100),
        Word(id="l5", text="transcendant", rarity=Rarity.LEGENDARY, points=100),
    ),
)
