"""Names of the records persisted under the storage prefix."""

PLAYERS_KEY = "players"
HISTORY_KEY = "history"
CURRENT_GAME_KEY = "current_game"
CURRENT_ROUND_KEY = "current_round"
SETTINGS_KEY = "settings"
ONBOARDING_KEY = "onboarding"
RECORDED_RESULTS_KEY = "recorded_results"

ALL_KEYS = (
    PLAYERS_KEY,
    HISTORY_KEY,
    CURRENT_GAME_KEY,
    CURRENT_ROUND_KEY,
    SETTINGS_KEY,
    ONBOARDING_KEY,
    RECORDED_RESULTS_KEY,
)
