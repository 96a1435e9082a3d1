from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from scoring.logic.enums import ScoringMode
from scoring.logic.models import DominoGame, DominoRound, Player, RummyGame, RummyRound, TimerState
from scoring.logic.timer import TurnCountdown
from scoring.session.keeper import ScoreKeeper
from scoring.tests.helpers.clock import FakeClock
from shared.storage import InMemoryKeyValueStore

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


def make_player(name: str, player_id: str | None = None, **kwargs) -> Player:
    return Player(id=player_id or name.lower(), name=name, **kwargs)


def make_domino_game(
    players: Sequence[Player],
    round_scores: Sequence[Mapping[str, int]] = (),
    mode: int = 12,
) -> DominoGame:
    """Domino game with one round per entry of ``round_scores``."""
    rounds = [
        DominoRound(round_number=i + 1, round_name=f"Mula del {mode - i}", scores=dict(scores))
        for i, scores in enumerate(round_scores)
    ]
    return DominoGame(players=list(players), mode=mode, rounds=rounds)


def make_rummy_game(
    players: Sequence[Player],
    round_scores: Sequence[Mapping[str, int]] = (),
    scoring_mode: ScoringMode = ScoringMode.PENALTY,
    joker_value: int = 30,
    turn_seconds: int = 120,
) -> RummyGame:
    return RummyGame(
        players=list(players),
        scoring_mode=scoring_mode,
        joker_value=joker_value,
        timer=TimerState(total_time=turn_seconds, remaining=turn_seconds),
        rounds=[RummyRound(id=i + 1, scores=dict(scores)) for i, scores in enumerate(round_scores)],
    )


@pytest.fixture
def ana() -> Player:
    return make_player("Ana")


@pytest.fixture
def ben() -> Player:
    return make_player("Ben")


@pytest.fixture
def cruz() -> Player:
    return make_player("Cruz")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def keeper(store, clock) -> ScoreKeeper:
    return ScoreKeeper(
        store,
        countdown_factory=lambda state, on_time_up: TurnCountdown(state, on_time_up, sleep=clock.sleep),
    )
