import pytest

from scoring.logic.enums import ScoringMode
from scoring.logic.exceptions import EmptyRoundError
from scoring.logic.models import RummyRound
from scoring.logic.rummy import (
    RummyRoundEngine,
    accumulate_to_winner,
    apply_joker_penalties,
    recommended_tile_count,
    round_winners,
)
from scoring.logic.timer import TurnCountdown
from scoring.tests.conftest import make_rummy_game
from scoring.tests.helpers.clock import settle


def _engine(game, clock):
    return RummyRoundEngine(game, countdown=TurnCountdown(game.timer, sleep=clock.sleep))


class TestHelpers:
    @pytest.mark.parametrize(("players", "expected"), [(2, 14), (3, 14), (4, 14), (5, 10), (10, 10)])
    def test_recommended_tile_count(self, players, expected):
        assert recommended_tile_count(players) == expected

    def test_joker_penalties_add_per_flag(self):
        final = apply_joker_penalties(
            {"ana": "10", "ben": ""},
            {"ana": [True, False], "ben": [True, True]},
            30,
            ["ana", "ben", "cruz"],
        )

        assert final == {"ana": 40, "ben": 60, "cruz": 0}

    def test_accumulate_gives_pot_to_lowest(self):
        assert accumulate_to_winner({"ana": 0, "ben": 40, "cruz": 25}) == {"ana": 65, "ben": 0, "cruz": 0}

    def test_accumulate_tie_goes_to_first(self):
        assert accumulate_to_winner({"ana": 5, "ben": 5, "cruz": 10}) == {"ana": 15, "ben": 0, "cruz": 0}

    def test_penalty_winners_are_zero_scores(self):
        round_ = RummyRound(id=1, scores={"ana": 0, "ben": 12, "cruz": 0})

        assert round_winners(round_, ScoringMode.PENALTY) == {"ana", "cruz"}

    def test_accumulative_winners_need_positive_max(self):
        scored = RummyRound(id=1, scores={"ana": 65, "ben": 0})
        empty = RummyRound(id=2, scores={"ana": 0, "ben": 0})

        assert round_winners(scored, ScoringMode.ACCUMULATIVE) == {"ana"}
        assert round_winners(empty, ScoringMode.ACCUMULATIVE) == set()


class TestCommitRound:
    def test_penalty_round_keeps_final_scores(self, ana, ben, clock):
        game = make_rummy_game([ana, ben])
        engine = _engine(game, clock)

        round_ = engine.commit_round({"ana": "12", "ben": 3}, {"ben": [True]})

        assert round_.scores == {"ana": 12, "ben": 33}
        assert round_.original_scores is None
        assert game.rounds == [round_]

    def test_accumulative_round_transforms_and_keeps_original(self, ana, ben, cruz, clock):
        game = make_rummy_game([ana, ben, cruz], scoring_mode=ScoringMode.ACCUMULATIVE)
        engine = _engine(game, clock)

        round_ = engine.commit_round({"ana": 0, "ben": 40, "cruz": 25})

        assert round_.scores == {"ana": 65, "ben": 0, "cruz": 0}
        assert round_.original_scores == {"ana": 0, "ben": 40, "cruz": 25}
        assert engine.totals() == {"ana": 65, "ben": 0, "cruz": 0}

    def test_all_zero_round_needs_confirmation(self, ana, ben, clock):
        game = make_rummy_game([ana, ben])
        engine = _engine(game, clock)

        with pytest.raises(EmptyRoundError):
            engine.commit_round({"ana": "", "ben": "0"})
        assert game.rounds == []

        round_ = engine.commit_round({}, confirmed=True)
        assert round_.scores == {"ana": 0, "ben": 0}

    def test_jokers_alone_make_a_round(self, ana, ben, clock):
        game = make_rummy_game([ana, ben], joker_value=25)
        engine = _engine(game, clock)

        round_ = engine.commit_round({}, {"ana": [True]})

        assert round_.scores == {"ana": 25, "ben": 0}

    def test_round_ids_increase(self, ana, ben, clock):
        game = make_rummy_game([ana, ben])
        engine = _engine(game, clock)

        first = engine.commit_round({"ana": 1})
        second = engine.commit_round({"ben": 1})

        assert second.id > first.id

    def test_live_ranking_adds_pending_inputs(self, ana, ben, cruz, clock):
        game = make_rummy_game([ana, ben, cruz], [{"ana": 10, "ben": 20, "cruz": 30}])
        engine = _engine(game, clock)

        assert engine.live_ranking({"ana": "25", "cruz": "x"}) == ["ben", "cruz", "ana"]


class TestTurns:
    async def test_advance_turn_rotates_and_resets_timer(self, ana, ben, clock):
        game = make_rummy_game([ana, ben], turn_seconds=60)
        engine = _engine(game, clock)
        engine.start_timer()
        await clock.advance(5)
        assert game.timer.remaining == 55

        assert engine.advance_turn() == ben
        assert game.active_player_index == 1
        assert game.timer.remaining == 60
        assert game.timer.running is True

        assert engine.advance_turn() == ana
        engine.stop_timer()

    async def test_toggle_timer(self, ana, ben, clock):
        game = make_rummy_game([ana, ben])
        engine = _engine(game, clock)

        assert engine.toggle_timer() is True
        await settle()
        assert engine.toggle_timer() is False
        assert game.timer.running is False
