from datetime import UTC, datetime, timedelta

import pytest

from scoring.logic.history import GameHistoryStore
from scoring.logic.stats import StatsAggregator, format_duration, win_rate
from scoring.tests.conftest import make_domino_game, make_rummy_game

START = datetime(2025, 5, 1, 18, 0, tzinfo=UTC)


@pytest.fixture
def history(ana, ben, cruz):
    history = GameHistoryStore()
    history.finalize(make_domino_game([ana, ben], [{"ana": 0, "ben": 10}]))  # ana wins
    history.finalize(make_rummy_game([ana, ben, cruz], [{"ana": 20, "ben": 0, "cruz": 5}]))  # ben wins
    history.finalize(make_domino_game([ana, cruz], [{"ana": 2, "cruz": 9}]))  # ana wins
    return history


class TestSummary:
    def test_counts_games_and_wins(self, history):
        stats = StatsAggregator(history)

        summary = stats.summary("ana")

        assert summary.total_games == 3
        assert summary.wins == 2
        assert summary.win_rate == 67

    def test_player_without_games(self, history):
        summary = StatsAggregator(history).summary("nobody")

        assert (summary.total_games, summary.wins, summary.win_rate) == (0, 0, 0)

    def test_summary_text(self, history):
        assert StatsAggregator(history).summary_text("cruz") == "2 juegos • 0 victorias"

    @pytest.mark.parametrize(
        ("wins", "total", "expected"),
        [(0, 0, 0), (1, 2, 50), (1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 8, 38), (5, 5, 100)],
    )
    def test_win_rate_rounds_half_up(self, wins, total, expected):
        assert win_rate(wins, total) == expected


class TestRecentResults:
    def test_most_recent_first_with_outcome(self, history):
        results = StatsAggregator(history).recent_results("ana")

        assert [r.won for r in results] == [True, False, True]
        assert results[0].game.players[1].id == "cruz"

    def test_limit(self, history):
        assert len(StatsAggregator(history).recent_results("ana", limit=2)) == 2

    def test_games_for_filters_participants(self, history):
        assert len(StatsAggregator(history).games_for("cruz")) == 2


class TestDuration:
    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [(0, "0 minutos"), (45, "45 minutos"), (59, "59 minutos"), (60, "1h 0m"), (135, "2h 15m")],
    )
    def test_format(self, minutes, expected):
        assert format_duration(START, START + timedelta(minutes=minutes, seconds=30)) == expected

    def test_open_game_measured_against_clock(self, ana, ben):
        game = make_domino_game([ana, ben])
        game.started_at = START
        stats = StatsAggregator(GameHistoryStore(), clock=lambda: START + timedelta(minutes=90))

        assert stats.game_duration(game) == "1h 30m"

    def test_finished_game_uses_end(self, ana, ben):
        game = make_domino_game([ana, ben], [{"ana": 1}])
        game.started_at = START
        entry = GameHistoryStore().finalize(game, ended_at=START + timedelta(minutes=25))

        assert StatsAggregator(GameHistoryStore()).game_duration(entry) == "25 minutos"
