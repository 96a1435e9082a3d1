"""Score totals and standings over a game's rounds.

Pure functions shared by both game types. Domino and rummy-penalty games
rank ascending (fewest points wins); rummy-accumulative ranks descending.
"""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING

from scoring.logic.enums import ScoringMode
from scoring.logic.models import RummyGame, Standing

if TYPE_CHECKING:
    from scoring.logic.models import DominoGame, DominoRound, RummyRound

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_score_input(raw: object) -> int:
    """Parse a score cell into a non-negative integer.

    Score entry happens during live play, so this never rejects input:
    anything that is not a non-negative number reads as 0. Strings are read
    up to the first non-digit ("12 pts" is 12), floats are truncated.
    """
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return max(raw, 0)
    if isinstance(raw, float):
        if not math.isfinite(raw):
            return 0
        return max(int(raw), 0)
    if isinstance(raw, str):
        match = _LEADING_INT.match(raw)
        if match is None:
            return 0
        return max(int(match.group(1)), 0)
    return 0


def ranks_descending(game: DominoGame | RummyGame) -> bool:
    """Whether the highest total wins this game."""
    return isinstance(game, RummyGame) and game.scoring_mode == ScoringMode.ACCUMULATIVE


def total_score(game: DominoGame | RummyGame, player_id: str) -> int:
    return sum(r.scores.get(player_id, 0) for r in game.rounds)


def totals(game: DominoGame | RummyGame) -> dict[str, int]:
    return {pid: total_score(game, pid) for pid in game.player_ids}


def standings(game: DominoGame | RummyGame) -> list[Standing]:
    """Rank every player of the game. Ties keep the original player order."""
    entries = [Standing(player=p, total_score=total_score(game, p.id)) for p in game.players]
    return sorted(entries, key=lambda s: s.total_score, reverse=ranks_descending(game))


def set_score(round_: DominoRound | RummyRound, player_id: str, raw: object) -> int:
    """Store a parsed score cell and return the stored value."""
    score = parse_score_input(raw)
    round_.scores[player_id] = score
    return score
