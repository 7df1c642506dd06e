"""
String enum definitions for room lifecycle and rejection codes.
"""

from enum import StrEnum


class RoomPhase(StrEnum):
    """Lifecycle stage of a room. Only moves forward."""

    OPEN = "open"
    STARTED = "started"
    ENDED = "ended"


class ErrorKind(StrEnum):
    """Broad failure category, used by callers to pick a status code."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


class GameErrorCode(StrEnum):
    """Reasons an operation on a room can be rejected."""

    # validation
    INVALID_GUESS_FORMAT = "invalid_guess_format"
    DUPLICATE_DIGITS = "duplicate_digits"
    EMPTY_NAME = "empty_name"
    INVALID_REQUEST = "invalid_request"

    # conflict
    ALREADY_STARTED = "already_started"
    ROOM_FULL = "room_full"
    ALREADY_IN_ROOM = "already_in_room"
    NOT_ENOUGH_PLAYERS = "not_enough_players"
    GAME_NOT_STARTED = "game_not_started"
    GAME_ENDED = "game_ended"
    ALREADY_FINISHED = "already_finished"

    # not found
    ROOM_NOT_FOUND = "room_not_found"
    PLAYER_NOT_FOUND = "player_not_found"

    @property
    def kind(self) -> ErrorKind:
        return _ERROR_KINDS[self]


_ERROR_KINDS: dict[GameErrorCode, ErrorKind] = {
    GameErrorCode.INVALID_GUESS_FORMAT: ErrorKind.VALIDATION,
    GameErrorCode.DUPLICATE_DIGITS: ErrorKind.VALIDATION,
    GameErrorCode.EMPTY_NAME: ErrorKind.VALIDATION,
    GameErrorCode.INVALID_REQUEST: ErrorKind.VALIDATION,
    GameErrorCode.ALREADY_STARTED: ErrorKind.CONFLICT,
    GameErrorCode.ROOM_FULL: ErrorKind.CONFLICT,
    GameErrorCode.ALREADY_IN_ROOM: ErrorKind.CONFLICT,
    GameErrorCode.NOT_ENOUGH_PLAYERS: ErrorKind.CONFLICT,
    GameErrorCode.GAME_NOT_STARTED: ErrorKind.CONFLICT,
    GameErrorCode.GAME_ENDED: ErrorKind.CONFLICT,
    GameErrorCode.ALREADY_FINISHED: ErrorKind.CONFLICT,
    GameErrorCode.ROOM_NOT_FOUND: ErrorKind.NOT_FOUND,
    GameErrorCode.PLAYER_NOT_FOUND: ErrorKind.NOT_FOUND,
}
