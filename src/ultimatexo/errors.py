"""Error taxonomy shared by the board engine, the coordinator and the transport.

Every error is recoverable by the caller: it is reported back to the
connection that caused it and never broadcast.
"""

from __future__ import annotations

from typing import Optional


class GameError(Exception):
    """Base class for every caller-facing rejection."""

    code = "error"
    default_message = "Request rejected"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


# ---------- Session level ----------


class InvalidRoom(GameError):
    code = "invalid_room"
    default_message = "Invalid room code"


class RoomFull(GameError):
    code = "room_full"
    default_message = "Room full"


class RoomNotFound(GameError):
    code = "room_not_found"
    default_message = "Room not found"


class NotAParticipant(GameError):
    code = "not_a_participant"
    default_message = "You are not in this room"


class RoleMismatch(GameError):
    code = "role_mismatch"
    default_message = "Player role mismatch"


class AlreadyJoined(GameError):
    code = "already_joined"
    default_message = "Connection already holds a seat"


class WaitingForOpponent(GameError):
    code = "waiting_for_opponent"
    default_message = "Waiting for an opponent to join"


class InvalidRequest(GameError):
    code = "invalid_request"
    default_message = "Malformed request"


class InternalError(GameError):
    code = "internal_error"
    default_message = "Server error"


# ---------- Rule level ----------


class RuleViolation(GameError):
    """A move rejected by the board engine before any mutation happened."""


class GameOver(RuleViolation):
    code = "game_over"
    default_message = "Game over"


class InvalidMove(RuleViolation):
    code = "invalid_move"
    default_message = "Board and cell indices must be between 0 and 8"


class NotYourTurn(RuleViolation):
    code = "not_your_turn"
    default_message = "Not your turn"


class BoardUnavailable(RuleViolation):
    code = "board_unavailable"
    default_message = "Board already won"


class CellOccupied(RuleViolation):
    code = "cell_occupied"
    default_message = "Cell already occupied"


class BoardNotAllowed(RuleViolation):
    code = "board_not_allowed"
    default_message = "Board not allowed"
