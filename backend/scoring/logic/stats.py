"""Per-player statistics derived from the game history.

Everything here is computed on demand by scanning history, so the numbers
stay correct after players are renamed or deleted and after history
entries are removed. The ``gamesPlayed``/``gamesWon`` counters on the
player record are a separate, cumulative tally.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from pydantic import BaseModel

from scoring.logic.models import utc_now

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from scoring.logic.history import GameHistoryStore
    from scoring.logic.models import DominoGame, RummyGame

RECENT_RESULTS_LIMIT = 5
_MINUTES_PER_HOUR = 60


class PlayerSummary(BaseModel, frozen=True):
    total_games: int
    wins: int
    win_rate: int  # whole percent


class GameResult(NamedTuple):
    game: DominoGame | RummyGame
    won: bool


def _won(game: DominoGame | RummyGame, player_id: str) -> bool:
    return game.winner is not None and game.winner.id == player_id


def win_rate(wins: int, total: int) -> int:
    """Whole-percent win rate, rounding halves up. 0 when no games were played."""
    if total <= 0:
        return 0
    return (200 * wins + total) // (2 * total)


def format_duration(started_at: datetime, ended_at: datetime) -> str:
    minutes = int((ended_at - started_at).total_seconds() // 60)
    if minutes < _MINUTES_PER_HOUR:
        return f"{minutes} minutos"
    hours, mins = divmod(minutes, _MINUTES_PER_HOUR)
    return f"{hours}h {mins}m"


class StatsAggregator:
    def __init__(
        self,
        history: GameHistoryStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._history = history
        self._clock = clock

    def games_for(self, player_id: str) -> list[DominoGame | RummyGame]:
        """History entries the player took part in, most recent first."""
        return [g for g in self._history.entries() if player_id in g.player_ids]

    def summary(self, player_id: str) -> PlayerSummary:
        games = self.games_for(player_id)
        wins = sum(1 for g in games if _won(g, player_id))
        return PlayerSummary(total_games=len(games), wins=wins, win_rate=win_rate(wins, len(games)))

    def recent_results(self, player_id: str, limit: int = RECENT_RESULTS_LIMIT) -> list[GameResult]:
        return [GameResult(g, _won(g, player_id)) for g in self.games_for(player_id)[:limit]]

    def summary_text(self, player_id: str) -> str:
        """Caption shown under a player's name in the roster."""
        summary = self.summary(player_id)
        return f"{summary.total_games} juegos • {summary.wins} victorias"

    def game_duration(self, game: DominoGame | RummyGame) -> str:
        """How long a game lasted, or has lasted so far if it is still open."""
        return format_duration(game.started_at, game.ended_at or self._clock())
