"""Word puzzles a player solves to capture a WordMon."""

from __future__ import annotations

import random
from collections import Counter
from typing import Protocol

from .errors import InvalidAttemptError
from .models import Rarity, Word


class Challenge(Protocol):
    def instructions(self) -> str:
        """Describe what the player has to type."""

    def check(self, attempt: str) -> bool:
        """Return whether ``attempt`` solves the puzzle; raise on malformed input."""

    def reset_for(self, rarity: Rarity, word: Word) -> None:
        """Arm the challenge with a new secret."""


def _normalize(text: str) -> str:
    return text.strip().casefold()


class AnagramChallenge:
    """Solved by a different string using exactly the secret's letters."""

    def __init__(self) -> None:
        self._secret: Word | None = None

    @property
    def secret(self) -> Word | None:
        return self._secret

    def instructions(self) -> str:
        text = self._secret.text if self._secret is not None else ""
        return f'Give a valid anagram of "{text}"'

    def reset_for(self, rarity: Rarity, word: Word) -> None:
        self._secret = word

    def check(self, attempt: str) -> bool:
        normalized = _normalize(attempt)
        if normalized == "":
            raise InvalidAttemptError(attempt=attempt, reason="empty attempt")
        secret = _normalize(self._secret.text) if self._secret is not None else ""
        if normalized == secret:
            raise InvalidAttemptError(attempt=attempt, reason="identical to the word")
        return Counter(normalized) == Counter(secret)


def auto_attempt_for(word: Word, rng: random.Random | None = None) -> str:
    """Shuffle the word's letters into a plausible attempt.

    A shuffle that lands back on the word gets an ``x`` appended so it
    never equals the secret.
    """
    source = rng if rng is not None else random.Random()
    letters = list(word.text)
    source.shuffle(letters)
    candidate = "".join(letters)
    if candidate.casefold() == word.text.casefold():
        candidate += "x"
    return candidate
