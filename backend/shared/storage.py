"""Key-value storage backends for persisted app state.

Every backend is a flat string-to-string map with the same shape as browser
``localStorage``: the caller owns key naming (namespacing by prefix) and
serialization. Backends raise ``OSError`` (file) or ``sqlite3.Error``
(SQLite) on I/O failure and never leave a half-written value behind.

``write_many`` applies a batch of sets and deletes all-or-nothing, so a
record set that must stay consistent (a finished game moving from the
active slot to history) is never persisted half old and half new.
"""

import contextlib
import json
import os
import sqlite3
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()

# Owner-only file permissions for stored data.
_FILE_MODE = 0o600

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""
_UPSERT_SQL = "INSERT INTO kv (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value"


class KeyValueStore(Protocol):
    """Protocol for a flat string key-value store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def write_many(self, sets: Mapping[str, str], deletes: Iterable[str] = ()) -> None:
        """Apply every set and delete, or none of them."""
        ...

    def keys(self) -> list[str]: ...


def _apply(data: dict[str, str], sets: Mapping[str, str], deletes: Iterable[str]) -> dict[str, str]:
    updated = dict(data)
    updated.update(sets)
    for key in deletes:
        updated.pop(key, None)
    return updated


class InMemoryKeyValueStore:
    """Dict-backed store. Nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self.write_many({key: value})

    def delete(self, key: str) -> None:
        self.write_many({}, [key])

    def write_many(self, sets: Mapping[str, str], deletes: Iterable[str] = ()) -> None:
        self._data = _apply(self._data, sets, deletes)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore:
    """Store every key in a single JSON object file.

    The file is read once on first access and rewritten in full after each
    mutation, atomically via temp-file-then-rename so readers never see a
    truncated file. A failed write rolls the in-memory copy back and
    re-raises ``OSError``.

    Limitation: single process only. Two writers would overwrite each
    other's changes.
    """

    def __init__(self, file_path: str | Path) -> None:
        self._file_path = Path(file_path)
        self._data: dict[str, str] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._file_path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._data = self._load_from_file()
        self._loaded = True

    def _load_from_file(self) -> dict[str, str]:
        """Read the backing file. A missing file is an empty store.

        Raises on read/parse failures of an existing file rather than
        starting empty, which would overwrite the unreadable data on the
        next save.
        """
        if not self._file_path.exists():
            return {}
        try:
            data = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            msg = f"Failed to load store from {self._file_path}"
            raise OSError(msg) from exc
        if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
            msg = f"Expected JSON object of strings in {self._file_path}"
            raise OSError(msg)
        return data

    def _save_to_file(self) -> None:
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(self._data, indent=2, ensure_ascii=False).encode("utf-8")

        fd, tmp_path = tempfile.mkstemp(dir=self._file_path.parent, prefix=".store_", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fchmod(f.fileno(), _FILE_MODE)
            Path(tmp_path).replace(self._file_path)
        except BaseException:
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise

    def get(self, key: str) -> str | None:
        self._ensure_loaded()
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self.write_many({key: value})

    def delete(self, key: str) -> None:
        self._ensure_loaded()
        if key not in self._data:
            return
        self.write_many({}, [key])

    def write_many(self, sets: Mapping[str, str], deletes: Iterable[str] = ()) -> None:
        """Apply the batch with a single file rewrite."""
        self._ensure_loaded()
        previous = self._data
        self._data = _apply(previous, sets, deletes)
        try:
            self._save_to_file()
        except OSError:
            self._data = previous
            raise

    def keys(self) -> list[str]:
        self._ensure_loaded()
        return list(self._data)


class SqliteKeyValueStore:
    """Store keys as rows of a single ``kv`` table."""

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise RuntimeError("Store is not connected")
        return self._conn

    def connect(self) -> None:
        """Open the database and create the schema."""
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA_SQL)
        self._harden_permissions()
        logger.debug("sqlite store connected", path=self._path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def get(self, key: str) -> str | None:
        row = self.connection.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self.connection:
            self.connection.execute(_UPSERT_SQL, (key, value))

    def delete(self, key: str) -> None:
        with self.connection:
            self.connection.execute("DELETE FROM kv WHERE key = ?", (key,))

    def write_many(self, sets: Mapping[str, str], deletes: Iterable[str] = ()) -> None:
        """Apply the batch in one transaction; any failure rolls all of it back."""
        with self.connection:
            self.connection.executemany(_UPSERT_SQL, list(sets.items()))
            self.connection.executemany("DELETE FROM kv WHERE key = ?", [(key,) for key in deletes])

    def keys(self) -> list[str]:
        return [row[0] for row in self.connection.execute("SELECT key FROM kv ORDER BY rowid")]

    def _harden_permissions(self) -> None:
        """Set owner-only permissions on the database file (best effort)."""
        if os.name != "posix" or self._path == ":memory:":  # pragma: no cover
            return
        p = Path(self._path)
        if p.exists():
            try:
                p.chmod(_FILE_MODE)
            except OSError:
                logger.warning("could not set file permissions", permissions=oct(_FILE_MODE), path=str(p))


def clear_prefix(store: KeyValueStore, prefix: str) -> int:
    """Delete every key starting with ``prefix``. Returns how many were removed."""
    doomed = [key for key in store.keys() if key.startswith(prefix)]
    if doomed:
        store.write_many({}, doomed)
    return len(doomed)
