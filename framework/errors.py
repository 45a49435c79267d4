"""Structured exceptions shared by the game core and the HTTP layer."""

from __future__ import annotations

from typing import Any


class CodenamesError(Exception):
    """Base class for recoverable command failures."""

    code = "Error"
    status_code = 400

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable error message."""
        return {"type": "error", "code": self.code, "message": str(self)}


class InvalidInput(CodenamesError):
    """Raised when request data is malformed."""

    code = "InvalidInput"
    status_code = 400


class InvalidIndex(InvalidInput):
    """Raised when a tile index falls outside the board."""

    code = "InvalidIndex"

    def __init__(self, index: Any, size: int):
        self.index = index
        super().__init__(f"Tile index {index!r} is outside [0, {size - 1}].")


class NotFound(CodenamesError):
    """Raised for an unknown session or player."""

    code = "NotFound"
    status_code = 404


class Conflict(CodenamesError):
    """Raised when a command conflicts with the current session state."""

    code = "Conflict"
    status_code = 409


class TileAlreadyRevealed(Conflict):
    code = "TileAlreadyRevealed"

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Tile {index} has already been revealed.")


class SessionFull(Conflict):
    code = "SessionFull"


class NotReady(Conflict):
    code = "NotReady"


class AlreadyJoined(Conflict):
    code = "AlreadyJoined"


class ClueAlreadyGiven(Conflict):
    code = "ClueAlreadyGiven"


class AwaitingClue(Conflict):
    """Raised when guesses are limited and the spymaster has not given a clue yet."""

    code = "AwaitingClue"


class RoleTaken(Conflict):
    """Raised when a team already has a spymaster."""

    code = "RoleTaken"
    status_code = 403


class Forbidden(CodenamesError):
    """Raised when a player acts outside their role or turn."""

    code = "Forbidden"
    status_code = 403


class NotYourTurn(Forbidden):
    code = "NotYourTurn"


class NotActive(CodenamesError):
    """Raised when a command is issued outside the state that allows it."""

    code = "NotActive"
    status_code = 409


class InvariantViolation(CodenamesError):
    """Raised when authoritative state is found inconsistent. Aborts the session."""

    code = "InvariantViolation"
    status_code = 500
