"""Enums and value objects for Codenames sessions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from framework.errors import InvalidInput

BOARD_SIZE = 25
STARTING_TEAM_TILES = 9
SECOND_TEAM_TILES = 8
ASSASSIN_TILES = 1
NEUTRAL_TILES = BOARD_SIZE - STARTING_TEAM_TILES - SECOND_TEAM_TILES - ASSASSIN_TILES

HIDDEN = "hidden"


class Team(str, Enum):
    """Tile assignments. Only RED and BLUE are playing teams."""

    RED = "red"
    BLUE = "blue"
    NEUTRAL = "neutral"
    ASSASSIN = "assassin"


PLAYING_TEAMS: tuple[Team, Team] = (Team.RED, Team.BLUE)


class Role(str, Enum):
    """Team roles."""

    SPYMASTER = "spymaster"
    OPERATIVE = "operative"


class SessionStatus(str, Enum):
    """Session lifecycle. Transitions only move forward."""

    LOBBY = "lobby"
    ACTIVE = "active"
    FINISHED = "finished"


def other_team(team: Team) -> Team:
    """Return the opposing playing team."""
    if team is Team.RED:
        return Team.BLUE
    if team is Team.BLUE:
        return Team.RED
    raise ValueError(f"{team.value!r} is not a playing team.")


def _is_unassigned(raw: Any) -> bool:
    return raw is None or raw == "" or (isinstance(raw, str) and raw.strip().lower() == "unassigned")


def parse_playing_team(raw: Any) -> Team:
    """Parse a client-supplied team into RED/BLUE, raising InvalidInput otherwise."""
    if _is_unassigned(raw):
        raise InvalidInput("A team is required.")
    if isinstance(raw, Team):
        team = raw
    else:
        try:
            team = Team(str(raw).strip().lower())
        except ValueError as exc:
            raise InvalidInput(f"Invalid team: {raw!r}") from exc
    if team not in PLAYING_TEAMS:
        raise InvalidInput(f"Players can only join {Team.RED.value!r} or {Team.BLUE.value!r}, not {team.value!r}.")
    return team


def parse_seat_team(raw: Any) -> Team | None:
    """Like `parse_playing_team`, but an empty or "unassigned" team means a spectator seat."""
    if _is_unassigned(raw):
        return None
    return parse_playing_team(raw)


def parse_role(raw: Any) -> Role:
    if isinstance(raw, Role):
        return raw
    try:
        return Role(str(raw).strip().lower())
    except ValueError as exc:
        raise InvalidInput(f"Invalid role: {raw!r}") from exc


@dataclass
class Tile:
    """One board word. `word` and `team` never change; `revealed` flips once."""

    word: str
    team: Team
    revealed: bool = False

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("word", "team") and name in self.__dict__:
            raise AttributeError(f"Tile.{name} is immutable.")
        if name == "revealed" and self.__dict__.get("revealed") and not value:
            raise AttributeError("A revealed tile cannot be hidden again.")
        super().__setattr__(name, value)


Board = tuple[Tile, ...]


@dataclass(frozen=True)
class Player:
    """A seated participant of one session."""

    id: str
    display_name: str
    role: Role
    team: Team | None = None

    @property
    def is_spymaster(self) -> bool:
        return self.role is Role.SPYMASTER

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "role": self.role.value,
            "team": self.team.value if self.team is not None else None,
        }


@dataclass(frozen=True)
class RevealEvent:
    """Immutable record of one reveal, appended to the session history."""

    session_id: str
    tile_index: int
    revealed_by: str
    resulting_team: Team

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "tileIndex": self.tile_index,
            "revealedBy": self.revealed_by,
            "resultingTeam": self.resulting_team.value,
        }


@dataclass(frozen=True)
class Clue:
    """The active team's current clue. A count of 0 places no limit on guesses."""

    word: str
    count: int
    team: Team
    given_by: str

    def to_dict(self) -> dict[str, Any]:
        return {"word": self.word, "count": self.count, "team": self.team.value, "givenBy": self.given_by}


@dataclass(frozen=True)
class RevealResult:
    """Outcome of a successful reveal command."""

    event: RevealEvent
    status: SessionStatus
    active_team: Team
    winner: Team | None
    turn_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event.to_dict(),
            "status": self.status.value,
            "activeTeam": self.active_team.value,
            "winner": self.winner.value if self.winner is not None else None,
            "turnCount": self.turn_count,
        }
