"""Phase machine sequencing one spawn-to-resolution cycle for a player.

The machine is synchronous: waiting, timeouts and cancellation belong to
the round orchestrator, which is the only writer of an ``Encounter``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from .catalog import validate_word
from .challenge import AnagramChallenge, Challenge
from .errors import CaptureError, InvalidStateError, NegativePointsError
from .ledger import award_xp, capture, release
from .models import Player, Word

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "IDLE"
    ENCOUNTERED = "ENCOUNTERED"
    IN_BATTLE = "IN_BATTLE"
    WON = "WON"
    LOST = "LOST"
    CAPTURED = "CAPTURED"
    FLED = "FLED"


ChallengeFactory = Callable[[], Challenge]


class Encounter:
    def __init__(self, challenge_factory: ChallengeFactory = AnagramChallenge) -> None:
        self._challenge_factory = challenge_factory
        self.phase = Phase.IDLE
        self.player: Player | None = None
        self.word: Word | None = None
        self.challenge: Challenge | None = None

    def _require(self, *expected: Phase) -> None:
        if self.phase not in expected:
            raise InvalidStateError(
                current=self.phase.value,
                expected=" or ".join(phase.value for phase in expected),
            )

    def start(self, player: Player, word: Word) -> None:
        """Attach ``player`` and show them the first spawned word."""
        self._require(Phase.IDLE)
        validate_word(word)
        self.player = player
        self.word = word
        self.phase = Phase.ENCOUNTERED

    def present(self, word: Word) -> None:
        """Replace the current word with a newer spawn."""
        self._require(Phase.ENCOUNTERED)
        validate_word(word)
        self.word = word

    def begin_battle(self) -> None:
        self._require(Phase.ENCOUNTERED)
        challenge = self._challenge_factory()
        challenge.reset_for(self.word.rarity, self.word)
        self.challenge = challenge
        self.phase = Phase.IN_BATTLE

    def submit_attempt(self, text: str) -> bool:
        """Check ``text`` against the armed challenge.

        ``InvalidAttemptError`` from the challenge propagates and the phase
        stays IN_BATTLE so the player can try again.
        """
        self._require(Phase.IN_BATTLE)
        won = self.challenge.check(text)
        self.phase = Phase.WON if won else Phase.LOST
        return won

    def resolve(self) -> int:
        """Settle a finished battle and return the points awarded.

        On a win the capture and the xp award land together: if the award
        fails the capture is rolled back, the word counts as fled and the
        error is raised.
        """
        self._require(Phase.WON, Phase.LOST)
        if self.phase is Phase.LOST:
            self._collapse(Phase.FLED)
            return 0

        try:
            points = capture(self.player, self.word)
        except CaptureError:
            self._collapse(Phase.FLED)
            raise
        try:
            award_xp(self.player, points)
        except NegativePointsError:
            release(self.player, self.word)
            self._collapse(Phase.FLED)
            raise
        self._collapse(Phase.CAPTURED)
        return points

    def flee(self) -> None:
        """Let the word escape an open battle without touching the player."""
        self._require(Phase.IN_BATTLE)
        self._collapse(Phase.FLED)

    def _collapse(self, transient: Phase) -> None:
        logger.debug("encounter %s word=%s", transient.value, self.word.text if self.word else "")
        self.phase = Phase.ENCOUNTERED
        self.challenge = None
