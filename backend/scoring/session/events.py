"""Notifications the score keeper pushes to its observers."""

from __future__ import annotations

from collections.abc import Callable

from pydantic import BaseModel

from scoring.logic.enums import GameEventType
from scoring.logic.models import DominoGame, Player, RummyGame


class GameEvent(BaseModel, frozen=True):
    """A state change of the active game.

    ``game`` is a detached snapshot, safe to hand to another task. It is
    None only for GAME_ABANDONED.
    """

    type: GameEventType
    game: DominoGame | RummyGame | None = None
    player: Player | None = None  # whose turn ran out, for TIME_UP


GameObserver = Callable[[GameEvent], None]
