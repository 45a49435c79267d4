"""Committed session events."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from time import time
from typing import Any, Mapping

from .serialize import to_serializable


class EventType(str, Enum):
    """Kinds of state transitions a game session commits."""

    PLAYER_JOINED = "player_joined"
    GAME_STARTED = "game_started"
    CLUE_GIVEN = "clue_given"
    TILE_REVEALED = "tile_revealed"
    TURN_ENDED = "turn_ended"
    PLAYER_FORFEITED = "player_forfeited"
    SESSION_CLOSED = "session_closed"


@dataclass(frozen=True)
class SessionEvent:
    """Single committed transition, numbered by the session version it produced."""

    event_type: EventType
    game_id: str
    seq: int
    timestamp_ms: int
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Return JSON-serializable event data."""
        return {
            "event_type": self.event_type.value,
            "game_id": self.game_id,
            "seq": self.seq,
            "timestamp_ms": self.timestamp_ms,
            "payload": to_serializable(self.payload),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionEvent":
        """Build an event from a dictionary payload."""
        return cls(
            event_type=EventType(str(data["event_type"])),
            game_id=str(data["game_id"]),
            seq=int(data["seq"]),
            timestamp_ms=int(data["timestamp_ms"]),
            payload=dict(data.get("payload", {})),
        )

    @classmethod
    def create(cls, event_type: EventType, game_id: str, seq: int, payload: dict[str, Any]) -> "SessionEvent":
        """Construct an event with the current wall-clock timestamp."""
        return cls(
            event_type=event_type,
            game_id=game_id,
            seq=seq,
            timestamp_ms=int(time() * 1000),
            payload=payload,
        )
