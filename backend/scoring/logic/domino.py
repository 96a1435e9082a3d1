"""
Fixed-round domino play.

A domino game has one round per double ("mula"), played from the highest
double of the set down to the blank double. Lowest accumulated total wins.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from scoring.logic.enums import CommentaryKind, Severity
from scoring.logic.ledger import standings
from scoring.logic.models import DominoRound
from scoring.logic.settings import MIN_PLAYERS, validate_max_double

if TYPE_CHECKING:
    from collections.abc import Sequence

    from scoring.logic.models import DominoGame, Player

logger = structlog.get_logger()

# tiles in a double-9 and a double-12 set
DOUBLE_NINE_TILES = 55
DOUBLE_TWELVE_TILES = 91

_DOUBLE_NINE_DEAL: dict[int, int] = {2: 14, 3: 13, 4: 13, 5: 11, 6: 9}

CLOSE_RIVALRY_GAP = 15
COMMENTARY_STAGGER_SECONDS = 2.5


class RoundLabel(BaseModel, frozen=True):
    name: str
    value: int


class Commentary(BaseModel, frozen=True):
    """Advisory message shown when the table moves past a round."""

    kind: CommentaryKind
    severity: Severity
    text: str
    player_names: tuple[str, ...]
    gap: int | None = None
    delay_seconds: float = 0.0


def round_labels(max_double: int) -> list[RoundLabel]:
    """Round labels from ``max_double`` down to 0. Deterministic, so never persisted."""
    max_double = validate_max_double(max_double)
    return [RoundLabel(name=f"Mula del {value}", value=value) for value in range(max_double, -1, -1)]


def build_rounds(players: Sequence[Player], max_double: int) -> list[DominoRound]:
    """Create every round of a new game with all scores at 0."""
    return [
        DominoRound(round_number=i + 1, round_name=label.name, scores=dict.fromkeys((p.id for p in players), 0))
        for i, label in enumerate(round_labels(max_double))
    ]


def recommended_tile_count(player_count: int, max_double: int = 12) -> int:
    """Tiles each player draws at the start of a round (table rule, not a formula).

    Returns 0 when there are too few players to deal a game.
    """
    if player_count < MIN_PLAYERS:
        return 0
    if max_double == 9:
        return _DOUBLE_NINE_DEAL.get(player_count, DOUBLE_NINE_TILES // player_count)
    if player_count <= 6:
        return 12
    if player_count <= 8:
        return 10
    return DOUBLE_TWELVE_TILES // player_count


def round_commentary(game: DominoGame, round_index: int) -> list[Commentary]:
    """Messages to surface when leaving ``round_index``.

    Order matters: the round-winner celebration comes first, then the
    rivalry or tie warning 2.5 seconds later.
    """
    if not 0 <= round_index < len(game.rounds) or not game.players:
        return []
    ranking = standings(game)
    round_scores = game.rounds[round_index].scores

    messages: list[Commentary] = []
    delay = 0.0

    round_winner = ranking[0]
    for entry in ranking[1:]:
        if round_scores.get(entry.player.id, 0) < round_scores.get(round_winner.player.id, 0):
            round_winner = entry
    if round_scores.get(round_winner.player.id, 0) == 0:
        name = round_winner.player.name
        messages.append(
            Commentary(
                kind=CommentaryKind.ROUND_DOMINATED,
                severity=Severity.SUCCESS,
                text=f"¡{name} dominó la ronda! 💥",
                player_names=(name,),
                delay_seconds=delay,
            ),
        )
        delay += COMMENTARY_STAGGER_SECONDS

    if len(ranking) < 2 or round_index == 0:
        return messages

    leader, chaser = ranking[0], ranking[1]
    gap = chaser.total_score - leader.total_score
    names = (leader.player.name, chaser.player.name)
    if 0 < gap < CLOSE_RIVALRY_GAP:
        messages.append(
            Commentary(
                kind=CommentaryKind.CLOSE_RIVALRY,
                severity=Severity.WARNING,
                text=f"¡Cuidado {names[0]}! {names[1]} está a solo {gap} puntos de alcanzarte 👀",
                player_names=names,
                gap=gap,
                delay_seconds=delay,
            ),
        )
    elif gap == 0:
        messages.append(
            Commentary(
                kind=CommentaryKind.TIE,
                severity=Severity.WARNING,
                text=f"¡Empate técnico entre {names[0]} y {names[1]}! 🔥",
                player_names=names,
                gap=0,
                delay_seconds=delay,
            ),
        )
    return messages


class DominoRoundEngine:
    """
    Track the current round of a domino game.

    Round labels are rebuilt from ``max_double`` alone, so only the index
    needs persisting across reloads. Navigation clamps at both ends.
    """

    def __init__(self, max_double: int = 12, current_round_index: int = 0) -> None:
        self.max_double = max_double
        self.round_names: list[RoundLabel] = []
        self.current_round_index = 0
        self.generate_rounds(max_double)
        self.current_round_index = max(0, min(current_round_index, len(self.round_names) - 1))

    @classmethod
    def for_game(cls, game: DominoGame, current_round_index: int = 0) -> DominoRoundEngine:
        return cls(max_double=game.mode, current_round_index=current_round_index)

    @property
    def round_count(self) -> int:
        return len(self.round_names)

    @property
    def current_label(self) -> RoundLabel:
        return self.round_names[self.current_round_index]

    def generate_rounds(self, max_double: int) -> list[RoundLabel]:
        self.round_names = round_labels(max_double)
        self.max_double = max_double
        self.current_round_index = min(self.current_round_index, len(self.round_names) - 1)
        return self.round_names

    def advance(self) -> bool:
        """Move to the next round. Returns False (and stays put) on the last round."""
        if self.is_final_round():
            return False
        self.current_round_index += 1
        return True

    def retreat(self) -> bool:
        """Move to the previous round. Returns False (and stays put) on the first round."""
        if self.current_round_index == 0:
            return False
        self.current_round_index -= 1
        return True

    def is_final_round(self) -> bool:
        return self.current_round_index == len(self.round_names) - 1

    def recommended_tile_count(self, player_count: int) -> int:
        return recommended_tile_count(player_count, self.max_double)

    def round_commentary(self, game: DominoGame) -> list[Commentary]:
        """Commentary for the round currently shown, computed before advancing."""
        messages = round_commentary(game, self.current_round_index)
        if messages:
            logger.debug(
                "round commentary",
                game_id=game.id,
                round_index=self.current_round_index,
                kinds=[m.kind for m in messages],
            )
        return messages
