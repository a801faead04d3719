"""Experience, level and inventory bookkeeping for a player."""

from __future__ import annotations

from .errors import CaptureError, NegativePointsError
from .models import Player, Word

XP_PER_LEVEL = 100


def level_from_xp(xp: int) -> int:
    if xp < 0:
        return 1
    return 1 + xp // XP_PER_LEVEL


def new_player(name: str, player_id: str) -> Player:
    return Player(id=player_id, name=name, xp=0, level=1, inventory={})


def award_xp(player: Player, points: int) -> None:
    """Add ``points`` to the player's xp and recompute the level."""
    if points < 0:
        raise NegativePointsError(points)
    player.xp += points
    player.level = level_from_xp(player.xp)


def capture(player: Player, word: Word) -> int:
    """Add ``word`` to the inventory and return the points it is worth."""
    if word.text == "":
        raise CaptureError(word=word.text, reason="empty word")
    player.inventory[word.text] = player.inventory.get(word.text, 0) + 1
    return word.points


def release(player: Player, word: Word) -> None:
    """Undo one ``capture`` of ``word``."""
    count = player.inventory.get(word.text, 0)
    if count <= 1:
        player.inventory.pop(word.text, None)
    else:
        player.inventory[word.text] = count - 1


def describe_player(player: Player) -> str:
    return f"player={player.name} xp={player.xp} level={player.level} inventory={len(player.inventory)} word(s)"
