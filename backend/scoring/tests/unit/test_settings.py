import pytest
from pydantic import ValidationError

from scoring.logic.enums import ScoringMode
from scoring.logic.exceptions import InvalidSettingsError
from scoring.logic.settings import RummySettings, clamp_turn_minutes, validate_max_double
from scoring.session.factory import create_keeper, create_store
from scoring.session.settings import ScoreKeeperSettings, StorageBackend
from shared.storage import InMemoryKeyValueStore, JsonFileKeyValueStore, SqliteKeyValueStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("SCORE_STORAGE_BACKEND", "SCORE_STORAGE_PATH", "SCORE_KEY_PREFIX", "SCORE_DEFAULT_TURN_MINUTES"):
        monkeypatch.delenv(name, raising=False)


class TestScoreKeeperSettings:
    def test_defaults(self):
        settings = ScoreKeeperSettings()

        assert settings.storage_backend == StorageBackend.FILE
        assert settings.key_prefix == "dominoscore_"
        assert settings.default_turn_minutes == 2
        assert settings.default_joker_value == 30
        assert settings.default_domino_mode == 12

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SCORE_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("SCORE_KEY_PREFIX", "club_")
        monkeypatch.setenv("SCORE_DEFAULT_TURN_MINUTES", "5")

        settings = ScoreKeeperSettings()

        assert settings.storage_backend == StorageBackend.SQLITE
        assert settings.key_prefix == "club_"
        assert settings.default_turn_minutes == 5

    @pytest.mark.parametrize(
        "overrides",
        [
            {"default_turn_minutes": 0},
            {"default_turn_minutes": 11},
            {"default_joker_value": -1},
            {"default_domino_mode": 6},
            {"key_prefix": "with space"},
            {"key_prefix": ""},
            {"storage_backend": "cloud"},
        ],
    )
    def test_rejects_invalid(self, overrides):
        with pytest.raises(ValidationError):
            ScoreKeeperSettings(**overrides)


class TestGameSettings:
    @pytest.mark.parametrize(("minutes", "expected"), [(-3, 1), (0, 1), (1, 1), (4, 4), (10, 10), (25, 10)])
    def test_turn_minutes_clamped(self, minutes, expected):
        assert clamp_turn_minutes(minutes) == expected
        assert RummySettings(turn_minutes=minutes).turn_seconds == expected * 60

    def test_rummy_defaults(self):
        settings = RummySettings()

        assert settings.scoring_mode == ScoringMode.PENALTY
        assert settings.joker_value == 30
        assert settings.turn_seconds == 120

    @pytest.mark.parametrize("value", [-1, 13])
    def test_max_double_range(self, value):
        with pytest.raises(InvalidSettingsError):
            validate_max_double(value)


class TestFactory:
    def test_memory_store(self):
        assert isinstance(create_store(ScoreKeeperSettings(storage_backend="memory")), InMemoryKeyValueStore)

    def test_file_store(self, tmp_path):
        settings = ScoreKeeperSettings(storage_path=str(tmp_path / "state.json"))

        assert isinstance(create_store(settings), JsonFileKeyValueStore)

    def test_sqlite_store_is_connected(self, tmp_path):
        store = create_store(ScoreKeeperSettings(storage_backend="sqlite", storage_path=str(tmp_path / "s.db")))

        assert isinstance(store, SqliteKeyValueStore)
        store.set("k", "v")
        assert store.get("k") == "v"
        store.close()

    def test_keeper_uses_configured_defaults(self):
        settings = ScoreKeeperSettings(
            storage_backend="memory",
            key_prefix="club_",
            default_turn_minutes=4,
            default_joker_value=20,
            default_domino_mode=9,
        )

        keeper = create_keeper(settings)

        assert keeper.key_prefix == "club_"
        assert keeper.default_rummy_settings.turn_seconds == 240
        assert keeper.default_rummy_settings.joker_value == 20
        assert keeper.default_domino_mode == 9

    def test_keeper_loads_saved_state(self):
        store = InMemoryKeyValueStore({"dominoscore_onboarding": "true"})

        keeper = create_keeper(ScoreKeeperSettings(storage_backend="memory"), store=store)

        assert keeper.onboarding_completed is True
