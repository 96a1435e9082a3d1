"""
Application state of the score keeper.

ScoreKeeper owns the player roster, the game history, the single active game
and the user's preferences. Every user-level operation goes through it: it
runs the round engines, saves through the injected key-value store after each
mutation and pushes a snapshot of the active game to its observers.

Persisted records are JSON strings under ``<prefix><name>`` keys, the same
layout the browser app kept in localStorage:

- ``players``, ``history``: JSON arrays;
- ``current_game``, ``current_round``: present only while a game is active;
- ``settings``: audio/voice/theme preferences;
- ``onboarding``: ``"true"`` once the first-run screen was completed;
- ``recorded_results``: ids of finished games already counted in player stats.

A failing save raises PersistenceError after the in-memory mutation has been
applied; the next successful save writes everything again.
"""

from __future__ import annotations

import json
import sqlite3
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from scoring.logic.domino import DominoRoundEngine, build_rounds
from scoring.logic.enums import GameEventType, Theme
from scoring.logic.exceptions import (
    ActiveGameExistsError,
    InvalidPlayerCountError,
    InvalidSettingsError,
    NoActiveGameError,
    NotFoundError,
    PersistenceError,
    ScoreKeeperError,
    WrongGameTypeError,
)
from scoring.logic.history import GameHistoryStore
from scoring.logic.ledger import parse_score_input, set_score, standings, totals
from scoring.logic.models import (
    GAME_ADAPTER,
    GAME_LIST_ADAPTER,
    PLAYER_LIST_ADAPTER,
    AppPreferences,
    DominoGame,
    RummyGame,
    TimerState,
)
from scoring.logic.players import PlayerRegistry
from scoring.logic.rummy import RummyRoundEngine
from scoring.logic.settings import MAX_PLAYERS, MIN_PLAYERS, RummySettings, validate_max_double
from scoring.logic.stats import StatsAggregator
from scoring.logic.timer import TurnCountdown
from scoring.session import backup
from scoring.session.events import GameEvent
from scoring.session.records import (
    ALL_KEYS,
    CURRENT_GAME_KEY,
    CURRENT_ROUND_KEY,
    HISTORY_KEY,
    ONBOARDING_KEY,
    PLAYERS_KEY,
    RECORDED_RESULTS_KEY,
    SETTINGS_KEY,
)
from scoring.session.settings import DEFAULT_KEY_PREFIX
from shared.logging import bind_game

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from scoring.logic.domino import Commentary
    from scoring.logic.models import Player, RummyRound, Standing
    from scoring.logic.stats import GameResult, PlayerSummary
    from scoring.session.events import GameObserver
    from shared.storage import KeyValueStore

logger = structlog.get_logger()

# boolean preferences toggle_setting accepts, by persisted and attribute name
_TOGGLES = {
    "audioEnabled": "audio_enabled",
    "voiceEnabled": "voice_enabled",
    "audio_enabled": "audio_enabled",
    "voice_enabled": "voice_enabled",
}

_STORE_ERRORS = (OSError, sqlite3.Error)
# observer failures are logged and skipped
_OBSERVER_ERRORS = (ScoreKeeperError, RuntimeError, ValueError, OSError)


class ScoreKeeper:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        default_rummy_settings: RummySettings | None = None,
        default_domino_mode: int = 12,
        countdown_factory: Callable[[TimerState, Callable[[], None]], TurnCountdown] | None = None,
    ) -> None:
        self._store = store
        self.key_prefix = key_prefix
        self.default_rummy_settings = default_rummy_settings or RummySettings()
        self.default_domino_mode = default_domino_mode
        self._countdown_factory = countdown_factory or TurnCountdown

        self.players = PlayerRegistry()
        self.history = GameHistoryStore()
        self.stats = StatsAggregator(self.history)
        self.preferences = AppPreferences()
        self.onboarding_completed = False
        self._recorded_results: list[str] = []

        self._game: DominoGame | RummyGame | None = None
        self._domino: DominoRoundEngine | None = None
        self._rummy: RummyRoundEngine | None = None
        self._observers: list[GameObserver] = []

    # --- persistence ---

    def key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    def load(self) -> None:
        """Replace in-memory state with what the store holds.

        Raises PersistenceError if the store cannot be read or a record is
        corrupt; nothing is replaced in that case.
        """
        try:
            raw = {name: self._store.get(self.key(name)) for name in ALL_KEYS}
        except _STORE_ERRORS as exc:
            raise PersistenceError("failed to read from store") from exc

        try:
            players = PLAYER_LIST_ADAPTER.validate_json(raw[PLAYERS_KEY]) if raw[PLAYERS_KEY] else []
            history = GAME_LIST_ADAPTER.validate_json(raw[HISTORY_KEY]) if raw[HISTORY_KEY] else []
            game = GAME_ADAPTER.validate_json(raw[CURRENT_GAME_KEY]) if raw[CURRENT_GAME_KEY] else None
            preferences = (
                AppPreferences.model_validate_json(raw[SETTINGS_KEY]) if raw[SETTINGS_KEY] else AppPreferences()
            )
            recorded = json.loads(raw[RECORDED_RESULTS_KEY]) if raw[RECORDED_RESULTS_KEY] else []
        except (ValidationError, ValueError) as exc:
            raise PersistenceError("stored records are corrupt") from exc

        self._stop_countdown()
        self.players = PlayerRegistry(players)
        self.history = GameHistoryStore(history)
        self.stats = StatsAggregator(self.history)
        self.preferences = preferences
        self.onboarding_completed = bool(raw[ONBOARDING_KEY])
        self._recorded_results = [str(gid) for gid in recorded] if isinstance(recorded, list) else []

        if game is not None and game.is_finished:
            logger.warning("finished game found in active slot, dropping it", game_id=game.id)
            game = None
        self._activate(game, current_round=parse_score_input(raw[CURRENT_ROUND_KEY]))
        logger.info(
            "state loaded",
            players=len(self.players),
            history=len(self.history),
            active_game=game.id if game else None,
        )

    def save(self) -> None:
        """Write every record as one batch. Raises PersistenceError on store failure.

        The store applies the batch all-or-nothing, so after a failure it
        still holds the previous save in full.
        """
        records: dict[str, str | None] = {
            PLAYERS_KEY: PLAYER_LIST_ADAPTER.dump_json(self.players.all(), by_alias=True, exclude_none=True).decode(),
            HISTORY_KEY: GAME_LIST_ADAPTER.dump_json(self.history.entries(), by_alias=True, exclude_none=True).decode(),
            CURRENT_GAME_KEY: None,
            CURRENT_ROUND_KEY: None,
            SETTINGS_KEY: self.preferences.model_dump_json(by_alias=True),
            RECORDED_RESULTS_KEY: json.dumps(self._recorded_results),
        }
        if self._game is not None:
            records[CURRENT_GAME_KEY] = self._game.model_dump_json(by_alias=True, exclude_none=True)
            records[CURRENT_ROUND_KEY] = str(self.current_round)
        if self.onboarding_completed:
            records[ONBOARDING_KEY] = "true"

        sets = {self.key(name): value for name, value in records.items() if value is not None}
        deletes = [self.key(name) for name, value in records.items() if value is None]
        try:
            self._store.write_many(sets, deletes)
        except _STORE_ERRORS as exc:
            logger.exception("save failed")
            raise PersistenceError("failed to write to store") from exc

    def export_data(self) -> str:
        return backup.export_data(self._store, self.key_prefix)

    def import_data(self, document: str | bytes) -> int:
        """Restore a backup and reload from it. Raises ImportFormatError before writing anything."""
        restored = backup.import_data(self._store, document, self.key_prefix)
        self.load()
        if self._game is not None:
            self._notify(GameEventType.GAME_RESUMED, self._game)
        return restored

    def factory_reset(self) -> int:
        """Wipe every namespaced record and start over with empty state."""
        removed = backup.factory_reset(self._store, self.key_prefix)
        if self._game is not None:
            self._notify(GameEventType.GAME_ABANDONED, None)
        self.load()
        return removed

    # --- observers ---

    def subscribe(self, observer: GameObserver) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(
        self,
        event_type: GameEventType,
        game: DominoGame | RummyGame | None,
        player: Player | None = None,
    ) -> None:
        event = GameEvent(type=event_type, game=game.model_copy(deep=True) if game else None, player=player)
        for observer in list(self._observers):
            try:
                observer(event)
            except _OBSERVER_ERRORS as exc:  # noqa: PERF203
                logger.warning("observer failed", event_type=event_type, error=str(exc))

    # --- players ---

    def create_player(self, name: str, photo: str | None = None) -> Player:
        player = self.players.create(name, photo)
        self.save()
        return player

    def update_player(self, player_id: str, name: str, photo: str | None = None) -> Player:
        player = self.players.update(player_id, name, photo)
        self.save()
        return player

    def delete_player(self, player_id: str) -> bool:
        removed = self.players.delete(player_id)
        if removed:
            self.save()
        return removed

    # --- active game ---

    @property
    def current_game(self) -> DominoGame | RummyGame | None:
        return self._game

    @property
    def current_round(self) -> int:
        return self._domino.current_round_index if self._domino is not None else 0

    @property
    def domino_engine(self) -> DominoRoundEngine:
        self._require_domino()
        if self._domino is None:
            raise NoActiveGameError
        return self._domino

    @property
    def rummy_engine(self) -> RummyRoundEngine:
        self._require_rummy()
        if self._rummy is None:
            raise NoActiveGameError
        return self._rummy

    def standings(self) -> list[Standing]:
        return standings(self._require_game())

    def totals(self) -> dict[str, int]:
        return totals(self._require_game())

    def pause_game(self) -> DominoGame | RummyGame:
        """Leave the game for the menu. It stays active, with its countdown stopped."""
        game = self._require_game()
        self._stop_countdown()
        self.save()
        self._notify(GameEventType.GAME_UPDATED, game)
        logger.info("game paused", game_id=game.id)
        return game

    def confirm_exit_game(self) -> bool:
        """Abandon the active game without archiving it. Returns False if none was active."""
        if self._game is None:
            return False
        game_id = self._game.id
        self._activate(None)
        self.save()
        self._notify(GameEventType.GAME_ABANDONED, None)
        logger.info("game abandoned", game_id=game_id)
        return True

    def resume_game_from_history(self, entry_id: str, *, replace_active: bool = False) -> DominoGame | RummyGame:
        """Reopen an archived game as the active one.

        Raises ActiveGameExistsError if a game is in progress and
        ``replace_active`` is not set; the in-progress game is discarded
        otherwise. Domino games restart at the first round.
        """
        if not self.history.contains(entry_id):
            raise NotFoundError("history entry", entry_id)
        if self._game is not None and not replace_active:
            raise ActiveGameExistsError(self._game.id)
        if self._game is not None:
            logger.warning("discarding active game for resume", game_id=self._game.id, resumed_id=entry_id)
        game = self.history.resume(entry_id)
        self._activate(game, current_round=0)
        self.save()
        self._notify(GameEventType.GAME_RESUMED, game)
        return game

    def delete_game(self, entry_id: str) -> bool:
        removed = self.history.delete(entry_id)
        if removed:
            self.save()
        return removed

    # --- domino ---

    def start_game(self, player_ids: Sequence[str], mode: int | None = None) -> DominoGame:
        """Start a domino game for 2-10 registered players. Replaces any active game."""
        players = self._select_players(player_ids)
        max_double = validate_max_double(self.default_domino_mode if mode is None else mode)
        game = DominoGame(players=players, mode=max_double, rounds=build_rounds(players, max_double))
        self._replace_active(game)
        self.save()
        self._notify(GameEventType.GAME_STARTED, game)
        logger.info("domino game started", game_id=game.id, mode=max_double, players=len(players))
        return game

    def update_score(self, player_id: str, raw: object) -> int:
        """Store one score cell of the current round. Never rejects the value itself."""
        game = self._require_domino()
        if player_id not in game.player_ids:
            raise NotFoundError("player", player_id)
        score = set_score(game.rounds[self.current_round], player_id, raw)
        self.save()
        self._notify(GameEventType.GAME_UPDATED, game)
        return score

    def next_round(self) -> list[Commentary]:
        """Move to the next round and return the commentary for the one just left.

        On the final round nothing moves and no commentary is produced.
        """
        game = self._require_domino()
        engine = self.domino_engine
        if engine.is_final_round():
            return []
        commentary = engine.round_commentary(game)
        engine.advance()
        self.save()
        self._notify(GameEventType.GAME_UPDATED, game)
        return commentary

    def previous_round(self) -> bool:
        game = self._require_domino()
        moved = self.domino_engine.retreat()
        if moved:
            self.save()
            self._notify(GameEventType.GAME_UPDATED, game)
        return moved

    def finish_game(self) -> DominoGame | RummyGame:
        """Archive the active domino game and count it in player stats."""
        self._require_domino()
        return self._finish_active()

    # --- rummy ---

    def start_rummy_game(
        self,
        player_ids: Sequence[str],
        settings: RummySettings | None = None,
        *,
        start_timer: bool = True,
    ) -> RummyGame:
        """Start a rummy game in the given seating order. Replaces any active game.

        With ``start_timer`` the first turn's countdown starts right away.
        Without a running event loop the game still starts, with the
        countdown stopped.
        """
        players = self._select_players(player_ids)
        settings = settings or self.default_rummy_settings
        seconds = settings.turn_seconds
        game = RummyGame(
            players=players,
            scoring_mode=settings.scoring_mode,
            joker_value=settings.joker_value,
            timer=TimerState(total_time=seconds, remaining=seconds),
        )
        self._replace_active(game)
        self.save()
        if start_timer:
            self.rummy_engine.start_timer()
        self._notify(GameEventType.GAME_STARTED, game)
        logger.info(
            "rummy game started",
            game_id=game.id,
            scoring_mode=settings.scoring_mode,
            turn_seconds=seconds,
            players=len(players),
        )
        return game

    def save_rummy_round(
        self,
        raw_scores: Mapping[str, object],
        joker_flags: Mapping[str, Sequence[bool]] | None = None,
        *,
        confirmed: bool = False,
    ) -> RummyRound:
        """Commit a closed hand. Raises EmptyRoundError for an all-zero round unless confirmed."""
        game = self._require_rummy()
        round_ = self.rummy_engine.commit_round(raw_scores, joker_flags, confirmed=confirmed)
        self.save()
        self._notify(GameEventType.GAME_UPDATED, game)
        return round_

    def next_turn(self) -> Player | None:
        game = self._require_rummy()
        player = self.rummy_engine.advance_turn()
        self.save()
        self._notify(GameEventType.GAME_UPDATED, game)
        return player

    def start_timer(self) -> bool:
        started = self.rummy_engine.start_timer()
        self._notify(GameEventType.GAME_UPDATED, self._game)
        return started

    def stop_timer(self) -> None:
        self.rummy_engine.stop_timer()
        self._notify(GameEventType.GAME_UPDATED, self._game)

    def toggle_timer(self) -> bool:
        running = self.rummy_engine.toggle_timer()
        self._notify(GameEventType.GAME_UPDATED, self._game)
        return running

    def finish_rummy_game(self) -> DominoGame | RummyGame:
        """Archive the active rummy game. Raises NoRoundsError if no round was committed."""
        self._require_rummy()
        return self._finish_active()

    # --- preferences ---

    def toggle_setting(self, key: str) -> bool | None:
        """Flip a boolean preference. Unknown keys are ignored and return None."""
        attr = _TOGGLES.get(key)
        if attr is None:
            logger.debug("unknown setting ignored", key=key)
            return None
        value = not getattr(self.preferences, attr)
        self.preferences = self.preferences.model_copy(update={attr: value})
        self.save()
        return value

    def set_theme(self, theme: Theme | str) -> Theme:
        try:
            chosen = Theme(theme)
        except ValueError as exc:
            raise InvalidSettingsError(f"unknown theme {theme!r}") from exc
        self.preferences = self.preferences.model_copy(update={"theme": chosen})
        self.save()
        return chosen

    def complete_onboarding(self) -> None:
        self.onboarding_completed = True
        self.save()

    # --- stats ---

    def player_summary(self, player_id: str) -> PlayerSummary:
        return self.stats.summary(player_id)

    def player_summary_text(self, player_id: str) -> str:
        return self.stats.summary_text(player_id)

    def recent_results(self, player_id: str, limit: int = 5) -> list[GameResult]:
        return self.stats.recent_results(player_id, limit)

    def game_duration(self, game: DominoGame | RummyGame) -> str:
        return self.stats.game_duration(game)

    def is_result_recorded(self, game_id: str) -> bool:
        return game_id in self._recorded_results

    # --- internals ---

    def _require_game(self) -> DominoGame | RummyGame:
        if self._game is None:
            raise NoActiveGameError
        return self._game

    def _require_domino(self) -> DominoGame:
        game = self._require_game()
        if not isinstance(game, DominoGame):
            raise WrongGameTypeError("domino", game.type)
        return game

    def _require_rummy(self) -> RummyGame:
        game = self._require_game()
        if not isinstance(game, RummyGame):
            raise WrongGameTypeError("rummy", game.type)
        return game

    def _select_players(self, player_ids: Iterable[str]) -> list[Player]:
        unique = list(dict.fromkeys(player_ids))
        if not MIN_PLAYERS <= len(unique) <= MAX_PLAYERS:
            raise InvalidPlayerCountError(len(unique), MIN_PLAYERS, MAX_PLAYERS)
        return [self.players.require(pid) for pid in unique]

    def _replace_active(self, game: DominoGame | RummyGame) -> None:
        if self._game is not None:
            logger.warning("active game replaced", game_id=self._game.id, new_game_id=game.id)
        self._activate(game)

    def _activate(self, game: DominoGame | RummyGame | None, current_round: int = 0) -> None:
        """Install ``game`` as the active game and build its engine."""
        self._stop_countdown()
        self._game = game
        self._domino = None
        self._rummy = None
        if isinstance(game, DominoGame):
            self._domino = DominoRoundEngine.for_game(game, current_round)
        elif isinstance(game, RummyGame):
            # a countdown never survives a reload or a resume
            game.timer.running = False
            countdown = self._countdown_factory(game.timer, self._on_time_up)
            self._rummy = RummyRoundEngine(game, countdown=countdown)
        bind_game(game.id if game else None)

    def _stop_countdown(self) -> None:
        if self._rummy is not None:
            self._rummy.stop_timer()

    def _finish_active(self) -> DominoGame | RummyGame:
        game = self._require_game()
        entry = self.history.finalize(game)
        self._activate(None)
        self._record_result(entry)
        self._notify(GameEventType.GAME_FINISHED, entry)
        self.save()
        return entry

    def _record_result(self, entry: DominoGame | RummyGame) -> None:
        """Count a finished game in player stats, at most once per game id."""
        if entry.id in self._recorded_results:
            logger.info("result already recorded", game_id=entry.id)
            return
        self.players.record_game_result(entry.player_ids, entry.winner.id if entry.winner else None)
        self._recorded_results.append(entry.id)

    def _on_time_up(self) -> None:
        game = self._game
        if not isinstance(game, RummyGame) or self._rummy is None:
            return
        player = self._rummy.active_player
        logger.info("turn timed out", game_id=game.id, player_id=player.id if player else None)
        self._notify(GameEventType.TIME_UP, game, player)
        self.save()
