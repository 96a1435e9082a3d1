"""
Spectator sessions: read-only live views of a host's active game.

A host opens a session and gets a 4-character join code. Every change of the
host's active game is published as a full ``{"type": "UPDATE", "game": ...}``
snapshot to each subscribed viewer. Delivery is best-effort: each viewer has
a bounded queue and the oldest pending snapshot is dropped when it is full,
which loses nothing since every snapshot supersedes the previous one.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
import secrets
import string
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

from scoring.logic.enums import GameEventType

if TYPE_CHECKING:
    from collections.abc import Callable

    from scoring.logic.models import DominoGame, RummyGame
    from scoring.session.events import GameEvent, GameObserver
    from scoring.session.keeper import ScoreKeeper

logger = structlog.get_logger()

JOIN_CODE_ALPHABET = string.digits + string.ascii_uppercase
JOIN_CODE_LENGTH = 4
SESSION_ID_PREFIX = "domino-score-"
UPDATE_MESSAGE_TYPE = "UPDATE"
DEFAULT_QUEUE_SIZE = 16

_JOIN_CODE_PATTERN = re.compile(rf"^[0-9A-Z]{{{JOIN_CODE_LENGTH}}}$")
_MAX_CODE_ATTEMPTS = 100


def generate_join_code() -> str:
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))


def is_valid_join_code(code: str) -> bool:
    return _JOIN_CODE_PATTERN.match(code) is not None


def session_id(code: str) -> str:
    return f"{SESSION_ID_PREFIX}{code}"


def update_message(game: DominoGame | RummyGame) -> dict[str, Any]:
    return {"type": UPDATE_MESSAGE_TYPE, "game": game.to_record()}


class Viewer:
    """One connected viewer's pending snapshots. ``None`` marks the end of the session."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.viewer_id = str(uuid4())
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0

    def push(self, message: dict[str, Any] | None) -> None:
        """Enqueue without blocking, discarding the oldest pending message when full."""
        while True:
            try:
                self._queue.put_nowait(message)
            except asyncio.QueueFull:
                with contextlib.suppress(asyncio.QueueEmpty):
                    self._queue.get_nowait()
                    self.dropped += 1
            else:
                return

    async def next_message(self) -> dict[str, Any] | None:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()


class SpectatorSession:
    def __init__(self, code: str) -> None:
        self.code = code
        self.latest: dict[str, Any] | None = None
        self.viewers: dict[str, Viewer] = {}

    @property
    def session_id(self) -> str:
        return session_id(self.code)


class SpectatorHub:
    """Registry of live spectator sessions keyed by join code."""

    def __init__(
        self,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        code_factory: Callable[[], str] = generate_join_code,
    ) -> None:
        self._queue_size = queue_size
        self._code_factory = code_factory
        self._sessions: dict[str, SpectatorSession] = {}

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def get(self, code: str) -> SpectatorSession | None:
        return self._sessions.get(code)

    def open_session(self) -> SpectatorSession:
        """Open a session under a fresh join code."""
        for _ in range(_MAX_CODE_ATTEMPTS):
            code = self._code_factory()
            if code not in self._sessions:
                break
        else:
            raise RuntimeError("could not allocate a free join code")
        session = SpectatorSession(code)
        self._sessions[code] = session
        logger.info("spectator session opened", session_id=session.session_id)
        return session

    def close_session(self, code: str) -> bool:
        """End a session; connected viewers receive the end marker."""
        session = self._sessions.pop(code, None)
        if session is None:
            return False
        for viewer in session.viewers.values():
            viewer.push(None)
        logger.info("spectator session closed", session_id=session.session_id, viewers=len(session.viewers))
        return True

    def publish(self, code: str, game: DominoGame | RummyGame) -> int:
        """Store the snapshot as the session's latest and fan it out. Returns the viewer count."""
        session = self._sessions.get(code)
        if session is None:
            logger.debug("publish to unknown session ignored", code=code)
            return 0
        message = update_message(game)
        session.latest = message
        for viewer in session.viewers.values():
            viewer.push(message)
        return len(session.viewers)

    def join(self, code: str) -> Viewer | None:
        """Subscribe a viewer. The latest snapshot, if any, is queued right away."""
        session = self._sessions.get(code)
        if session is None:
            return None
        viewer = Viewer(self._queue_size)
        if session.latest is not None:
            viewer.push(session.latest)
        session.viewers[viewer.viewer_id] = viewer
        logger.info("viewer joined", session_id=session.session_id, viewer_id=viewer.viewer_id)
        return viewer

    def leave(self, code: str, viewer: Viewer) -> None:
        session = self._sessions.get(code)
        if session is not None and session.viewers.pop(viewer.viewer_id, None) is not None:
            logger.info("viewer left", session_id=session.session_id, viewer_id=viewer.viewer_id)

    def observer_for(self, code: str) -> GameObserver:
        """Keeper observer that publishes every active-game change to this session."""

        def observe(event: GameEvent) -> None:
            if event.game is None or event.type == GameEventType.GAME_ABANDONED:
                return
            self.publish(code, event.game)

        return observe

    def host(self, keeper: ScoreKeeper) -> SpectatorSession:
        """Open a session that follows ``keeper``'s active game, starting from its current state."""
        session = self.open_session()
        keeper.subscribe(self.observer_for(session.code))
        if keeper.current_game is not None:
            self.publish(session.code, keeper.current_game)
        return session
