"""Score keeper configuration via environment variables."""

from enum import StrEnum
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from scoring.logic.models import DEFAULT_JOKER_VALUE
from scoring.logic.settings import DEFAULT_TURN_MINUTES, MAX_TURN_MINUTES, MIN_TURN_MINUTES
from shared.validators import parse_key_prefix

DEFAULT_KEY_PREFIX = "dominoscore_"


class StorageBackend(StrEnum):
    MEMORY = "memory"
    FILE = "file"
    SQLITE = "sqlite"


class ScoreKeeperSettings(BaseSettings):
    model_config = {"env_prefix": "SCORE_"}

    storage_backend: StorageBackend = StorageBackend.FILE
    storage_path: str = Field(default="backend/data/dominoscore.json", min_length=1)
    key_prefix: str = DEFAULT_KEY_PREFIX
    log_dir: str | None = None
    default_turn_minutes: int = Field(default=DEFAULT_TURN_MINUTES, ge=MIN_TURN_MINUTES, le=MAX_TURN_MINUTES)
    default_joker_value: int = Field(default=DEFAULT_JOKER_VALUE, ge=0)
    default_domino_mode: Literal[9, 12] = 12

    @field_validator("key_prefix")
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        return parse_key_prefix(v)
