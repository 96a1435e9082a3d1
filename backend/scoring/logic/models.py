"""
Pydantic models for players, rounds and games.

Persisted records keep the camelCase field names of the browser app
(``gamesPlayed``, ``startedAt``, ``activePlayerIndex``...) so existing backups
load unchanged. Python code uses the snake_case attribute names.

Games are a tagged union on ``type``. Records written before rummy support
carry no ``type`` at all and are read as domino games.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Discriminator,
    Field,
    NonNegativeInt,
    Tag,
    TypeAdapter,
    model_validator,
)
from pydantic.alias_generators import to_camel

from scoring.logic.enums import GameType, ScoringMode, Theme

DEFAULT_TURN_SECONDS = 120
DEFAULT_JOKER_VALUE = 30
DEFAULT_DOMINO_MODE = 12


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def new_id() -> str:
    return str(uuid4())


def _clamp_scores(value: Any) -> Any:  # noqa: ANN401
    """Read missing or negative legacy score cells as 0."""
    if isinstance(value, dict):
        return {k: 0 if v is None or (isinstance(v, int) and v < 0) else v for k, v in value.items()}
    return value


ScoreMap = Annotated[dict[str, NonNegativeInt], BeforeValidator(_clamp_scores)]


class RecordModel(BaseModel):
    """Base for every persisted record: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """Dump to the JSON-compatible persisted form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Player(RecordModel, frozen=True):
    """Registered player. Games hold denormalized copies of this record."""

    id: str = Field(default_factory=new_id)
    name: str
    photo: str | None = None  # data URL or file path
    games_played: NonNegativeInt = 0
    games_won: NonNegativeInt = 0
    created_at: datetime = Field(default_factory=utc_now)


class DominoRound(RecordModel):
    round_number: int = Field(ge=1)
    round_name: str
    scores: ScoreMap = Field(default_factory=dict)


class RummyRound(RecordModel):
    id: int  # millisecond timestamp of the commit
    scores: ScoreMap = Field(default_factory=dict)
    original_scores: dict[str, int] | None = None  # pre-transform scores, accumulative mode only


class TimerState(RecordModel):
    """Per-turn countdown state stored inside a rummy game."""

    total_time: NonNegativeInt = DEFAULT_TURN_SECONDS
    remaining: NonNegativeInt = DEFAULT_TURN_SECONDS
    running: bool = False


class Standing(RecordModel):
    player: Player
    total_score: int


class GameHeader(RecordModel):
    """Fields shared by every game type."""

    id: str = Field(default_factory=new_id)
    players: list[Player]
    started_at: datetime = Field(default_factory=utc_now)
    ended_at: datetime | None = None
    winner: Player | None = None
    final_scores: list[Standing] | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_fields(cls, data: Any) -> Any:  # noqa: ANN401
        """Fold legacy ``finishedAt``/``finalStandings`` into the current fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        finished_at = data.pop("finishedAt", None)
        if data.get("endedAt") is None and data.get("ended_at") is None and finished_at is not None:
            data["endedAt"] = finished_at
        final_standings = data.pop("finalStandings", None)
        if data.get("finalScores") is None and data.get("final_scores") is None and final_standings is not None:
            data["finalScores"] = final_standings
        return data

    @property
    def player_ids(self) -> list[str]:
        return [p.id for p in self.players]

    @property
    def is_finished(self) -> bool:
        return self.ended_at is not None


class DominoGame(GameHeader):
    type: Literal["domino"] = "domino"
    mode: int = Field(default=DEFAULT_DOMINO_MODE, ge=0, le=12)  # highest double of the set
    rounds: list[DominoRound] = Field(default_factory=list)

    @property
    def game_type(self) -> GameType:
        return GameType.DOMINO


class RummyGame(GameHeader):
    type: Literal["rummy"] = "rummy"
    scoring_mode: ScoringMode = ScoringMode.PENALTY
    joker_value: NonNegativeInt = DEFAULT_JOKER_VALUE
    active_player_index: NonNegativeInt = 0
    timer: TimerState = Field(default_factory=TimerState)
    rounds: list[RummyRound] = Field(default_factory=list)

    @property
    def game_type(self) -> GameType:
        return GameType.RUMMY


def _game_tag(value: Any) -> str:  # noqa: ANN401
    if isinstance(value, dict):
        return value.get("type") or GameType.DOMINO.value
    return getattr(value, "type", GameType.DOMINO.value)


Game = Annotated[
    Union[Annotated[DominoGame, Tag("domino")], Annotated[RummyGame, Tag("rummy")]],  # noqa: UP007
    Discriminator(_game_tag),
]

GAME_ADAPTER: TypeAdapter[DominoGame | RummyGame] = TypeAdapter(Game)
GAME_LIST_ADAPTER: TypeAdapter[list[DominoGame | RummyGame]] = TypeAdapter(list[Game])
PLAYER_LIST_ADAPTER: TypeAdapter[list[Player]] = TypeAdapter(list[Player])


class AppPreferences(RecordModel):
    """User preferences persisted under the ``settings`` key."""

    audio_enabled: bool = True
    voice_enabled: bool = True
    theme: Theme = Theme.DARK
