import pytest

from scoring.logic.domino import (
    COMMENTARY_STAGGER_SECONDS,
    DominoRoundEngine,
    build_rounds,
    recommended_tile_count,
    round_commentary,
    round_labels,
)
from scoring.logic.enums import CommentaryKind, Severity
from scoring.logic.exceptions import InvalidSettingsError
from scoring.tests.conftest import make_domino_game


class TestRoundLabels:
    @pytest.mark.parametrize("max_double", [9, 12])
    def test_one_round_per_double_descending(self, max_double):
        labels = round_labels(max_double)

        assert len(labels) == max_double + 1
        assert [label.value for label in labels] == list(range(max_double, -1, -1))
        assert labels[0].name == f"Mula del {max_double}"
        assert labels[-1].name == "Mula del 0"

    @pytest.mark.parametrize("max_double", [-1, 13])
    def test_out_of_range_rejected(self, max_double):
        with pytest.raises(InvalidSettingsError):
            round_labels(max_double)

    def test_build_rounds_zeroes_every_player(self, ana, ben):
        rounds = build_rounds([ana, ben], 9)

        assert len(rounds) == 10
        assert rounds[0].round_number == 1
        assert rounds[0].round_name == "Mula del 9"
        assert all(r.scores == {"ana": 0, "ben": 0} for r in rounds)


class TestRecommendedTileCount:
    @pytest.mark.parametrize(
        ("players", "max_double", "expected"),
        [
            (4, 12, 12),
            (6, 12, 12),
            (7, 12, 10),
            (8, 12, 10),
            (9, 12, 10),
            (10, 12, 9),
            (2, 9, 14),
            (3, 9, 13),
            (4, 9, 13),
            (5, 9, 11),
            (6, 9, 9),
            (7, 9, 7),
        ],
    )
    def test_table(self, players, max_double, expected):
        assert recommended_tile_count(players, max_double) == expected

    @pytest.mark.parametrize("max_double", [9, 12])
    @pytest.mark.parametrize("players", [-1, 0, 1])
    def test_too_few_players_deal_nothing(self, players, max_double):
        assert recommended_tile_count(players, max_double) == 0


class TestDominoRoundEngine:
    def test_navigation_clamps_at_both_ends(self):
        engine = DominoRoundEngine(max_double=2)

        assert engine.retreat() is False
        assert engine.current_round_index == 0
        assert engine.advance() is True
        assert engine.advance() is True
        assert engine.is_final_round()
        assert engine.advance() is False
        assert engine.current_round_index == 2

    def test_regenerate_is_idempotent(self):
        engine = DominoRoundEngine(max_double=12)
        first = engine.generate_rounds(12)

        assert engine.generate_rounds(12) == first

    def test_restored_index_is_clamped(self):
        engine = DominoRoundEngine(max_double=9, current_round_index=40)

        assert engine.current_round_index == 9
        assert engine.current_label.name == "Mula del 0"

    def test_for_game_uses_game_mode(self, ana, ben):
        game = make_domino_game([ana, ben], mode=9)

        engine = DominoRoundEngine.for_game(game, current_round_index=3)

        assert engine.round_count == 10
        assert engine.current_round_index == 3
        assert engine.recommended_tile_count(2) == 14


class TestRoundCommentary:
    def test_zero_round_score_celebrates(self, ana, ben):
        game = make_domino_game([ana, ben], [{"ana": 0, "ben": 40}])

        messages = round_commentary(game, 0)

        assert [m.kind for m in messages] == [CommentaryKind.ROUND_DOMINATED]
        assert messages[0].severity == Severity.SUCCESS
        assert messages[0].text == "¡Ana dominó la ronda! 💥"
        assert messages[0].delay_seconds == 0

    def test_first_round_never_warns(self, ana, ben):
        game = make_domino_game([ana, ben], [{"ana": 5, "ben": 10}])

        assert round_commentary(game, 0) == []

    def test_close_rivalry_after_first_round(self, ana, ben):
        game = make_domino_game([ana, ben], [{"ana": 20, "ben": 25}, {"ana": 10, "ben": 10}])

        messages = round_commentary(game, 1)

        assert len(messages) == 1
        rivalry = messages[0]
        assert rivalry.kind == CommentaryKind.CLOSE_RIVALRY
        assert rivalry.gap == 5
        assert rivalry.player_names == ("Ana", "Ben")
        assert rivalry.text == "¡Cuidado Ana! Ben está a solo 5 puntos de alcanzarte 👀"

    def test_tie_after_first_round(self, ana, ben):
        game = make_domino_game([ana, ben], [{"ana": 20, "ben": 25}, {"ana": 10, "ben": 5}])

        messages = round_commentary(game, 1)

        assert [m.kind for m in messages] == [CommentaryKind.TIE]
        assert messages[0].text == "¡Empate técnico entre Ana y Ben! 🔥"

    def test_wide_gap_says_nothing(self, ana, ben):
        game = make_domino_game([ana, ben], [{"ana": 5, "ben": 40}, {"ana": 10, "ben": 10}])

        assert round_commentary(game, 1) == []

    def test_celebration_then_warning_is_staggered(self, ana, ben, cruz):
        game = make_domino_game(
            [ana, ben, cruz],
            [{"ana": 20, "ben": 30, "cruz": 50}, {"ana": 10, "ben": 0, "cruz": 5}],
        )

        messages = round_commentary(game, 1)

        assert [m.kind for m in messages] == [CommentaryKind.ROUND_DOMINATED, CommentaryKind.TIE]
        assert messages[0].player_names == ("Ben",)
        assert messages[1].delay_seconds == COMMENTARY_STAGGER_SECONDS

    def test_out_of_range_round_is_silent(self, ana, ben):
        game = make_domino_game([ana, ben], [{"ana": 0, "ben": 0}])

        assert round_commentary(game, 5) == []
