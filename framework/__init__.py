"""Framework exports shared by the game core and the server."""

from .errors import (
    AlreadyJoined,
    AwaitingClue,
    ClueAlreadyGiven,
    CodenamesError,
    Conflict,
    Forbidden,
    InvalidIndex,
    InvalidInput,
    InvariantViolation,
    NotActive,
    NotFound,
    NotReady,
    NotYourTurn,
    RoleTaken,
    SessionFull,
    TileAlreadyRevealed,
)
from .events import EventType, SessionEvent
from .serialize import json_dumps, to_serializable

__all__ = [
    "AlreadyJoined",
    "AwaitingClue",
    "ClueAlreadyGiven",
    "CodenamesError",
    "Conflict",
    "EventType",
    "Forbidden",
    "InvalidIndex",
    "InvalidInput",
    "InvariantViolation",
    "NotActive",
    "NotFound",
    "NotReady",
    "NotYourTurn",
    "RoleTaken",
    "SessionFull",
    "SessionEvent",
    "TileAlreadyRevealed",
    "json_dumps",
    "to_serializable",
]
