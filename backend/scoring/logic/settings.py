"""Rule settings chosen when a game is set up."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, ValidationError

from scoring.logic.enums import ScoringMode
from scoring.logic.exceptions import InvalidSettingsError
from scoring.logic.models import DEFAULT_DOMINO_MODE, DEFAULT_JOKER_VALUE

MIN_PLAYERS = 2
MAX_PLAYERS = 10

MAX_DOUBLE_LIMIT = 12
MIN_TURN_MINUTES = 1
MAX_TURN_MINUTES = 10
DEFAULT_TURN_MINUTES = 2


class DominoSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_double: int = Field(default=DEFAULT_DOMINO_MODE, ge=0, le=MAX_DOUBLE_LIMIT)


class RummySettings(BaseModel):
    """Rummy table options.

    The turn length is picked in whole minutes; values outside the
    setup control's range are clamped rather than rejected.
    """

    model_config = ConfigDict(frozen=True)

    scoring_mode: ScoringMode = ScoringMode.PENALTY
    joker_value: NonNegativeInt = DEFAULT_JOKER_VALUE
    turn_minutes: int = DEFAULT_TURN_MINUTES

    @property
    def turn_seconds(self) -> int:
        return clamp_turn_minutes(self.turn_minutes) * 60


def clamp_turn_minutes(minutes: int) -> int:
    return max(MIN_TURN_MINUTES, min(MAX_TURN_MINUTES, minutes))


def validate_max_double(max_double: int) -> int:
    """Return max_double unchanged or raise InvalidSettingsError."""
    try:
        return DominoSettings(max_double=max_double).max_double
    except ValidationError as exc:
        raise InvalidSettingsError(f"max double must be 0-{MAX_DOUBLE_LIMIT}, got {max_double}") from exc
