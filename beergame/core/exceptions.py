"""
Game error taxonomy.

Every failure a command can produce is one of four kinds. The session raises
these while validating a command and converts them to a failed
``CommandResult`` before returning, so none of them reaches a caller.
"""
from enum import Enum


class ErrorCode(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    INVALID_ARGUMENT = "invalid_argument"


class BeerGameError(Exception):
    """Base class for all game errors."""

    code: ErrorCode = ErrorCode.INVALID_STATE

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ============ NotFound ============

class GameNotFound(BeerGameError):
    """The game id is not (or no longer) registered."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class ParticipantNotFound(BeerGameError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, participant_id):
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} not found")


# ============ Unauthorized ============

class NotGameAdmin(BeerGameError):
    """Caller does not hold the admin credential of the game."""

    code = ErrorCode.UNAUTHORIZED

    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Only the admin of game {game_id} may do this")


# ============ InvalidState ============

class InvalidGameState(BeerGameError):
    """Command is not legal in the current lifecycle state."""

    code = ErrorCode.INVALID_STATE


# ============ InvalidArgument ============

class InvalidArgument(BeerGameError):
    code = ErrorCode.INVALID_ARGUMENT
