"""Typed domain exceptions for score keeping.

Every failure the core can report derives from ScoreKeeperError so the
caller (UI layer, CLI, spectator server) can catch-and-convert at a single
boundary. None of these are fatal: each one describes a recoverable
condition and the operation that raised it leaves state unchanged.
"""


class ScoreKeeperError(Exception):
    """Base exception for all score keeping failures."""


class ValidationError(ScoreKeeperError):
    """User input was rejected; the user corrects it and retries."""


class EmptyNameError(ValidationError):
    """Player name is empty after trimming."""

    def __init__(self) -> None:
        super().__init__("player name must not be empty")


class DuplicateNameError(ValidationError):
    """Another player already uses this name (case-insensitive)."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"a player named {name!r} already exists")


class InvalidPlayerCountError(ValidationError):
    """Game started with too few or too many players."""

    def __init__(self, count: int, minimum: int, maximum: int) -> None:
        self.count = count
        super().__init__(f"select between {minimum} and {maximum} players, got {count}")


class InvalidSettingsError(ValidationError):
    """Game settings are out of the supported range."""


class GameStateError(ScoreKeeperError):
    """Operation is not valid for the current game state."""


class NoActiveGameError(GameStateError):
    def __init__(self) -> None:
        super().__init__("no active game")


class WrongGameTypeError(GameStateError):
    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"operation requires a {expected} game, active game is {actual}")


class ActiveGameExistsError(GameStateError):
    """Resuming or starting would discard the game currently in progress."""

    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"game {game_id} is still active")


class EmptyRoundError(GameStateError):
    """Every score of the round is zero; the caller must confirm before committing."""

    def __init__(self) -> None:
        super().__init__("all scores are zero, confirmation required")


class NoRoundsError(GameStateError):
    """Game cannot be finalized without any recorded round."""

    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"game {game_id} has no recorded rounds")


class NotFoundError(ScoreKeeperError):
    """Referenced player, game or history entry does not exist.

    Attributes:
        kind: What was looked up ("player", "history entry", ...).
        key: The missing identifier.

    """

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key!r} not found")


class PersistenceError(ScoreKeeperError):
    """The store rejected a write. In-memory state is retained."""


class ImportFormatError(ScoreKeeperError):
    """Backup document is corrupt or not a backup of this application."""


InvalidFormatError = ImportFormatError
