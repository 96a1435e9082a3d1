"""
Open-ended rummy play.

Rounds are appended one at a time as hands are closed. Each round's raw
hand points get a fixed penalty per joker left in hand, then the scoring
policy decides what is recorded:

- penalty: every player keeps their own points, lowest total wins;
- accumulative: the player with the lowest points (the one who closed)
  records the sum of everyone else's points, the rest record 0, and the
  highest total wins.

Turns rotate through the seating order with a per-turn countdown.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from scoring.logic.enums import ScoringMode
from scoring.logic.exceptions import EmptyRoundError
from scoring.logic.ledger import parse_score_input
from scoring.logic.ledger import totals as ledger_totals
from scoring.logic.models import RummyRound
from scoring.logic.timer import TurnCountdown

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from scoring.logic.models import Player, RummyGame

logger = structlog.get_logger()

# tiles dealt from a standard 106-tile set
_FULL_DEAL_MAX_PLAYERS = 4
_FULL_DEAL_TILES = 14
_SHORT_DEAL_TILES = 10


def recommended_tile_count(player_count: int) -> int:
    return _FULL_DEAL_TILES if player_count <= _FULL_DEAL_MAX_PLAYERS else _SHORT_DEAL_TILES


def apply_joker_penalties(
    raw_scores: Mapping[str, object],
    joker_flags: Mapping[str, Sequence[bool]],
    joker_value: int,
    player_ids: Sequence[str],
) -> dict[str, int]:
    """Final round points per player: parsed hand points plus joker penalties."""
    final: dict[str, int] = {}
    for pid in player_ids:
        jokers = sum(1 for flag in joker_flags.get(pid, ()) if flag)
        final[pid] = parse_score_input(raw_scores.get(pid)) + jokers * joker_value
    return final


def accumulate_to_winner(final_scores: Mapping[str, int]) -> dict[str, int]:
    """Give the round's lowest scorer the sum of everyone else's points.

    The first player in order wins ties for the lowest score.
    """
    if not final_scores:
        return {}
    winner_id = min(final_scores, key=lambda pid: final_scores[pid])
    pot = sum(score for pid, score in final_scores.items() if pid != winner_id)
    return {pid: pot if pid == winner_id else 0 for pid in final_scores}


def round_winners(round_: RummyRound, scoring_mode: ScoringMode) -> set[str]:
    """Players whose cell is highlighted as a round win."""
    if scoring_mode == ScoringMode.ACCUMULATIVE:
        if not round_.scores:
            return set()
        best = max(round_.scores.values())
        if best <= 0:
            return set()
        return {pid for pid, score in round_.scores.items() if score == best}
    return {pid for pid, score in round_.scores.items() if score == 0}


def _next_round_id(game: RummyGame) -> int:
    round_id = int(time.time() * 1000)
    if game.rounds and game.rounds[-1].id >= round_id:
        round_id = game.rounds[-1].id + 1
    return round_id


class RummyRoundEngine:
    """
    Drive one rummy game: commit rounds, rotate turns, run the turn countdown.

    The engine mutates the game record it wraps; the caller persists it.
    """

    def __init__(
        self,
        game: RummyGame,
        on_time_up: Callable[[], None] | None = None,
        countdown: TurnCountdown | None = None,
    ) -> None:
        self.game = game
        self.countdown = countdown or TurnCountdown(game.timer, on_time_up)

    @property
    def player_count(self) -> int:
        return len(self.game.players)

    @property
    def active_player(self) -> Player | None:
        if not self.game.players:
            return None
        return self.game.players[self.game.active_player_index % self.player_count]

    def recommended_tile_count(self) -> int:
        return recommended_tile_count(self.player_count)

    def commit_round(
        self,
        raw_scores: Mapping[str, object],
        joker_flags: Mapping[str, Sequence[bool]] | None = None,
        *,
        confirmed: bool = False,
    ) -> RummyRound:
        """Record a closed hand.

        Raises EmptyRoundError when every score came out as zero and the
        caller has not confirmed; nothing is recorded in that case.
        """
        joker_flags = joker_flags or {}
        player_ids = self.game.player_ids
        final_scores = apply_joker_penalties(raw_scores, joker_flags, self.game.joker_value, player_ids)
        if not confirmed and not any(final_scores.values()):
            raise EmptyRoundError

        if self.game.scoring_mode == ScoringMode.ACCUMULATIVE:
            round_ = RummyRound(
                id=_next_round_id(self.game),
                scores=accumulate_to_winner(final_scores),
                original_scores=final_scores,
            )
        else:
            round_ = RummyRound(id=_next_round_id(self.game), scores=final_scores)
        self.game.rounds.append(round_)
        logger.info(
            "rummy round committed",
            game_id=self.game.id,
            round_count=len(self.game.rounds),
            scoring_mode=self.game.scoring_mode,
        )
        return round_

    def advance_turn(self) -> Player | None:
        """Pass the turn to the next player with a fresh countdown."""
        self.countdown.stop()
        if self.player_count:
            self.game.active_player_index = (self.game.active_player_index + 1) % self.player_count
        self.countdown.reset()
        self.countdown.start()
        return self.active_player

    def start_timer(self) -> bool:
        return self.countdown.start()

    def stop_timer(self) -> None:
        self.countdown.stop()

    def toggle_timer(self) -> bool:
        return self.countdown.toggle()

    def totals(self) -> dict[str, int]:
        return ledger_totals(self.game)

    def round_winners(self, round_: RummyRound) -> set[str]:
        return round_winners(round_, self.game.scoring_mode)

    def live_ranking(self, pending_scores: Mapping[str, object] | None = None) -> list[str]:
        """Player ids ranked ascending by committed totals plus uncommitted inputs."""
        running = self.totals()
        for pid, raw in (pending_scores or {}).items():
            if pid in running:
                running[pid] += parse_score_input(raw)
        return sorted(running, key=lambda pid: running[pid])
