"""Build a ready-to-use ScoreKeeper from settings."""

from __future__ import annotations

import structlog

from scoring.logic.settings import RummySettings
from scoring.session.keeper import ScoreKeeper
from scoring.session.settings import ScoreKeeperSettings, StorageBackend
from shared.storage import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore, SqliteKeyValueStore

logger = structlog.get_logger()


def create_store(settings: ScoreKeeperSettings) -> KeyValueStore:
    if settings.storage_backend == StorageBackend.MEMORY:
        return InMemoryKeyValueStore()
    if settings.storage_backend == StorageBackend.SQLITE:
        store = SqliteKeyValueStore(settings.storage_path)
        store.connect()
        return store
    return JsonFileKeyValueStore(settings.storage_path)


def create_keeper(
    settings: ScoreKeeperSettings | None = None,
    store: KeyValueStore | None = None,
) -> ScoreKeeper:
    """Create a keeper over the configured store and load its saved state."""
    if settings is None:
        settings = ScoreKeeperSettings()
    if store is None:
        store = create_store(settings)
    keeper = ScoreKeeper(
        store,
        key_prefix=settings.key_prefix,
        default_rummy_settings=RummySettings(
            joker_value=settings.default_joker_value,
            turn_minutes=settings.default_turn_minutes,
        ),
        default_domino_mode=settings.default_domino_mode,
    )
    keeper.load()
    logger.info("score keeper ready", storage_backend=settings.storage_backend, key_prefix=settings.key_prefix)
    return keeper
