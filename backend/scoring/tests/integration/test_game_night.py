"""
End-to-end evening at the table: roster, a domino game, a rummy game with
the turn clock running, a resumed game and a backup restored on another store.
"""

import json

from scoring.logic.enums import CommentaryKind, GameEventType, ScoringMode
from scoring.logic.settings import RummySettings
from scoring.session.factory import create_keeper
from scoring.session.settings import ScoreKeeperSettings
from shared.storage import JsonFileKeyValueStore, SqliteKeyValueStore


async def test_game_night_on_file_store(tmp_path, keeper, clock):
    events = []
    keeper.subscribe(events.append)
    ana = keeper.create_player("Ana")
    ben = keeper.create_player("Ben")
    cruz = keeper.create_player("Cruz")
    keeper.complete_onboarding()

    # domino: double-nine set, three rounds scored
    keeper.start_game([ana.id, ben.id, cruz.id], mode=9)
    for scores in ({ana.id: 0, ben.id: 22, cruz.id: 30}, {ana.id: 12, ben.id: 0, cruz.id: 8}):
        for pid, value in scores.items():
            keeper.update_score(pid, value)
        commentary = keeper.next_round()
    assert commentary
    assert commentary[0].kind == CommentaryKind.ROUND_DOMINATED
    keeper.update_score(cruz.id, "5")
    domino = keeper.finish_game()
    assert domino.winner.id == ana.id
    assert [s.total_score for s in domino.final_scores] == [12, 22, 43]

    # rummy: accumulative, clock ticks, one hand closed
    settings = RummySettings(scoring_mode=ScoringMode.ACCUMULATIVE, turn_minutes=1)
    keeper.start_rummy_game([ben.id, cruz.id], settings)
    await clock.advance(10)
    assert keeper.current_game.timer.remaining == 50
    keeper.next_turn()
    await clock.advance(61)
    assert events[-1].type == GameEventType.TIME_UP
    assert events[-1].player.id == cruz.id
    keeper.save_rummy_round({ben.id: 25, cruz.id: 0}, {ben.id: [True, False]})
    rummy = keeper.finish_rummy_game()
    assert rummy.winner.id == cruz.id
    assert rummy.rounds[0].scores == {ben.id: 0, cruz.id: 55}

    # reopen the domino game and close it again without double counting
    keeper.resume_game_from_history(domino.id)
    keeper.finish_game()
    assert keeper.player_summary(ana.id).total_games == 1
    assert keeper.players.require(ana.id).games_played == 1
    assert keeper.player_summary(cruz.id).wins == 1
    assert keeper.player_summary_text(ben.id) == "2 juegos • 0 victorias"

    # restore the backup into a file store through the configured factory
    backup = keeper.export_data()
    path = tmp_path / "restore" / "state.json"
    restored = create_keeper(ScoreKeeperSettings(storage_backend="file", storage_path=str(path)))
    restored.import_data(backup)

    assert [p.name for p in restored.players.all()] == ["Ana", "Ben", "Cruz"]
    assert [g.id for g in restored.history.entries()] == [domino.id, rummy.id]
    assert restored.onboarding_completed is True
    assert json.loads(JsonFileKeyValueStore(path).get("dominoscore_recorded_results")) == [domino.id, rummy.id]
    assert restored.current_game is None


def test_sqlite_store_keeps_active_game(tmp_path):
    settings = ScoreKeeperSettings(storage_backend="sqlite", storage_path=str(tmp_path / "scores.db"))
    keeper = create_keeper(settings)
    ana = keeper.create_player("Ana")
    ben = keeper.create_player("Ben")
    keeper.start_game([ana.id, ben.id])
    keeper.update_score(ben.id, 40)
    keeper.next_round()

    store = SqliteKeyValueStore(settings.storage_path)
    store.connect()
    try:
        reopened = create_keeper(settings, store=store)
        assert reopened.current_round == 1
        assert reopened.totals() == {ana.id: 0, ben.id: 40}
        assert reopened.current_game.rounds[1].round_name == "Mula del 11"
    finally:
        store.close()
