"""Error taxonomy for the encounter core and its stores."""

from __future__ import annotations


class WordMonError(Exception):
    """Recoverable error raised by the game core or a store."""


class InvalidStateError(WordMonError):
    def __init__(self, current: str, expected: str) -> None:
        super().__init__(f"transition not allowed: phase={current}, expected={expected}")
        self.current = current
        self.expected = expected


class InvalidAttemptError(WordMonError):
    def __init__(self, attempt: str, reason: str) -> None:
        super().__init__(f"invalid attempt {attempt!r} ({reason})")
        self.attempt = attempt
        self.reason = reason


class NegativePointsError(WordMonError):
    def __init__(self, points: int) -> None:
        super().__init__(f"negative points are not allowed ({points})")
        self.points = points


class CaptureError(WordMonError):
    def __init__(self, word: str, reason: str) -> None:
        super().__init__(f"cannot capture {word!r} ({reason})")
        self.word = word
        self.reason = reason


class PlayerNotFoundError(WordMonError):
    def __init__(self, player_id: str) -> None:
        super().__init__(f"player not found: {player_id}")
        self.player_id = player_id


class DuplicateNameError(WordMonError):
    def __init__(self, name: str) -> None:
        super().__init__(f"player name already taken: {name}")
        self.name = name


class StoreError(WordMonError):
    def __init__(self, action: str, reason: str) -> None:
        super().__init__(f"store {action} failed: {reason}")
        self.action = action
        self.reason = reason


class CatalogCorruptionError(RuntimeError):
    """A spawned word broke the catalog invariants.

    Deliberately not a ``WordMonError``: the round loop only recovers from
    those, so this one stops the process.
    """
