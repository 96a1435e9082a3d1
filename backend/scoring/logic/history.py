"""Archive of finished games, most recent first."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from scoring.logic.exceptions import NoRoundsError, NotFoundError
from scoring.logic.ledger import standings
from scoring.logic.models import RummyGame, utc_now

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from scoring.logic.models import DominoGame

logger = structlog.get_logger()


class GameHistoryStore:
    """Finished games with their final standings and winner.

    ``finalize`` only archives; clearing the active game and counting the
    result in player stats is the caller's job.
    """

    def __init__(self, entries: Iterable[DominoGame | RummyGame] = ()) -> None:
        self._entries: list[DominoGame | RummyGame] = list(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> list[DominoGame | RummyGame]:
        return list(self._entries)

    def get(self, entry_id: str) -> DominoGame | RummyGame | None:
        return next((g for g in self._entries if g.id == entry_id), None)

    def contains(self, entry_id: str) -> bool:
        return self.get(entry_id) is not None

    def finalize(
        self,
        game: DominoGame | RummyGame,
        ended_at: datetime | None = None,
    ) -> DominoGame | RummyGame:
        """Rank the game, stamp its end, and archive it at the head of history.

        Rummy games need at least one committed round.
        """
        if isinstance(game, RummyGame) and not game.rounds:
            raise NoRoundsError(game.id)
        ranking = standings(game)
        entry = game.model_copy(deep=True)
        entry.ended_at = ended_at or utc_now()
        entry.winner = ranking[0].player if ranking else None
        entry.final_scores = ranking
        if isinstance(entry, RummyGame):
            entry.timer.running = False
        self._entries.insert(0, entry)
        logger.info(
            "game archived",
            game_id=entry.id,
            game_type=entry.game_type,
            winner_id=entry.winner.id if entry.winner else None,
        )
        return entry

    def resume(self, entry_id: str) -> DominoGame | RummyGame:
        """Take an entry out of history and return it as an unfinished game."""
        index = next((i for i, g in enumerate(self._entries) if g.id == entry_id), None)
        if index is None:
            raise NotFoundError("history entry", entry_id)
        game = self._entries.pop(index).model_copy(deep=True)
        game.ended_at = None
        game.winner = None
        game.final_scores = None
        if isinstance(game, RummyGame):
            game.timer.running = False
            game.timer.remaining = game.timer.total_time
        logger.info("game resumed from history", game_id=entry_id)
        return game

    def delete(self, entry_id: str) -> bool:
        """Remove an entry permanently. Unknown ids are ignored."""
        before = len(self._entries)
        self._entries = [g for g in self._entries if g.id != entry_id]
        removed = len(self._entries) != before
        if removed:
            logger.info("history entry deleted", game_id=entry_id)
        return removed
