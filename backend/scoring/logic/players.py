"""Roster of known players and their win/loss statistics."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from scoring.logic.exceptions import DuplicateNameError, EmptyNameError, NotFoundError
from scoring.logic.models import Player, new_id, utc_now

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = structlog.get_logger()


class PlayerRegistry:
    """In-memory player roster, insertion ordered.

    Names are unique case-insensitively. Players are immutable records;
    every mutation replaces the stored record. Deleting a player never
    touches the copies held by archived games.
    """

    def __init__(self, players: Iterable[Player] = ()) -> None:
        self._players: dict[str, Player] = {p.id: p for p in players}

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def all(self) -> list[Player]:
        return list(self._players.values())

    def get(self, player_id: str) -> Player | None:
        return self._players.get(player_id)

    def require(self, player_id: str) -> Player:
        player = self._players.get(player_id)
        if player is None:
            raise NotFoundError("player", player_id)
        return player

    def create(self, name: str, photo: str | None = None) -> Player:
        """Register a new player. Raises EmptyNameError or DuplicateNameError."""
        clean = self._validate_name(name, exclude_id=None)
        player = Player(id=self._fresh_id(), name=clean, photo=photo, created_at=utc_now())
        self._players[player.id] = player
        logger.info("player created", player_id=player.id)
        return player

    def update(self, player_id: str, name: str, photo: str | None = None) -> Player:
        """Change a player's name and photo. Stats and creation time are preserved."""
        existing = self.require(player_id)
        clean = self._validate_name(name, exclude_id=player_id)
        updated = existing.model_copy(update={"name": clean, "photo": photo})
        self._players[player_id] = updated
        logger.info("player updated", player_id=player_id)
        return updated

    def delete(self, player_id: str) -> bool:
        """Remove a player. Returns False if the id was unknown."""
        if self._players.pop(player_id, None) is None:
            logger.warning("delete of unknown player ignored", player_id=player_id)
            return False
        logger.info("player deleted", player_id=player_id)
        return True

    def record_game_result(self, player_ids: Iterable[str], winner_id: str | None) -> None:
        """Count one played game for each participant and one win for the winner.

        Not idempotent: every call counts again. Participants no longer
        registered are skipped.
        """
        for pid in set(player_ids):
            player = self._players.get(pid)
            if player is None:
                continue
            won = 1 if pid == winner_id else 0
            self._players[pid] = player.model_copy(
                update={"games_played": player.games_played + 1, "games_won": player.games_won + won},
            )

    def _validate_name(self, name: str, exclude_id: str | None) -> str:
        clean = name.strip()
        if not clean:
            raise EmptyNameError
        lower = clean.lower()
        for existing in self._players.values():
            if existing.id != exclude_id and existing.name.lower() == lower:
                raise DuplicateNameError(clean)
        return clean

    def _fresh_id(self) -> str:
        player_id = new_id()
        while player_id in self._players:
            player_id = new_id()
        return player_id
