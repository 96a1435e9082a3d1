"""
String enum definitions for score keeping concepts.
"""

from enum import StrEnum


class GameType(StrEnum):
    DOMINO = "domino"
    RUMMY = "rummy"


class ScoringMode(StrEnum):
    """Rummy scoring policy."""

    PENALTY = "penalty"  # every player keeps their hand points, lowest total wins
    ACCUMULATIVE = "accumulative"  # round winner collects everyone else's points, highest total wins


class Theme(StrEnum):
    DARK = "dark"
    GREEN = "green"
    LIGHT = "light"


class CommentaryKind(StrEnum):
    """Advisory messages produced when leaving a domino round."""

    ROUND_DOMINATED = "round_dominated"
    CLOSE_RIVALRY = "close_rivalry"
    TIE = "tie"


class Severity(StrEnum):
    SUCCESS = "success"
    WARNING = "warning"
    INFO = "info"


class GameEventType(StrEnum):
    """Notifications pushed to observers of the score keeper."""

    GAME_STARTED = "game_started"
    GAME_UPDATED = "game_updated"
    GAME_FINISHED = "game_finished"
    GAME_ABANDONED = "game_abandoned"
    GAME_RESUMED = "game_resumed"
    TIME_UP = "time_up"
