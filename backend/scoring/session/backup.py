"""Bulk export, import and wipe of the namespaced record set.

A backup is a JSON object mapping each full store key (``dominoscore_players``,
``dominoscore_history``...) to the raw string stored under it, so backups
taken by the browser app restore unchanged and vice versa.
"""

from __future__ import annotations

import json
import sqlite3
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from scoring.logic.exceptions import ImportFormatError, PersistenceError
from scoring.logic.models import GAME_LIST_ADAPTER, PLAYER_LIST_ADAPTER
from scoring.session.records import HISTORY_KEY, PLAYERS_KEY
from scoring.session.settings import DEFAULT_KEY_PREFIX
from shared.storage import clear_prefix

if TYPE_CHECKING:
    from shared.storage import KeyValueStore

logger = structlog.get_logger()

_STORE_ERRORS = (OSError, sqlite3.Error)


def export_data(store: KeyValueStore, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    """Serialize every namespaced key to a 2-space indented JSON document."""
    try:
        data = {key: store.get(key) for key in store.keys() if key.startswith(prefix)}
    except _STORE_ERRORS as exc:
        raise PersistenceError("failed to read from store") from exc
    logger.info("data exported", keys=len(data))
    return json.dumps(data, indent=2, ensure_ascii=False)


def parse_backup(document: str | bytes, prefix: str = DEFAULT_KEY_PREFIX) -> dict[str, str]:
    """Validate a backup document and return the namespaced entries to restore.

    Raises ImportFormatError if the document is not a JSON object, holds
    neither a players nor a history record, or those records do not parse.
    """
    try:
        data = json.loads(document)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ImportFormatError("backup is not valid JSON") from exc
    if not isinstance(data, dict):
        raise ImportFormatError("backup must be a JSON object")

    players_key, history_key = f"{prefix}{PLAYERS_KEY}", f"{prefix}{HISTORY_KEY}"
    if not data.get(players_key) and not data.get(history_key):
        raise ImportFormatError("backup holds neither players nor history")

    entries = {
        key: value if isinstance(value, str) else json.dumps(value)
        for key, value in data.items()
        if key.startswith(prefix) and value is not None
    }
    try:
        if entries.get(players_key):
            PLAYER_LIST_ADAPTER.validate_json(entries[players_key])
        if entries.get(history_key):
            GAME_LIST_ADAPTER.validate_json(entries[history_key])
    except ValidationError as exc:
        raise ImportFormatError("backup records are corrupt") from exc
    return entries


def import_data(store: KeyValueStore, document: str | bytes, prefix: str = DEFAULT_KEY_PREFIX) -> int:
    """Replace every namespaced key with the backup's. Returns how many keys were restored.

    The document is fully validated before anything is written, and the
    swap is a single batch, so a failed import leaves the old data in place.
    """
    entries = parse_backup(document, prefix)
    try:
        stale = [key for key in store.keys() if key.startswith(prefix) and key not in entries]
        store.write_many(entries, stale)
    except _STORE_ERRORS as exc:
        raise PersistenceError("failed to write backup to store") from exc
    logger.info("data imported", cleared=len(stale), restored=len(entries))
    return len(entries)


def factory_reset(store: KeyValueStore, prefix: str = DEFAULT_KEY_PREFIX) -> int:
    """Delete every namespaced key. Keys of other applications are left alone."""
    try:
        removed = clear_prefix(store, prefix)
    except _STORE_ERRORS as exc:
        raise PersistenceError("failed to clear store") from exc
    logger.warning("factory reset", removed=removed)
    return removed
