"""Pydantic request schemas for the game API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreateGameRequest(_Request):
    """Request body for creating a game. Every field is optional.

    Boards created over HTTP always use a fresh server-side seed; a `seed`
    field in the body is ignored.
    """

    game_id: str | None = Field(default=None, alias="gameId")
    starting_team: str | None = Field(default=None, alias="startingTeam")
    words: list[str] | None = None


class JoinRequest(_Request):
    """Request body for taking a seat in a game."""

    player_id: str = Field(alias="playerId", min_length=1)
    display_name: str = Field(default="", alias="displayName")
    team: str | None = None
    role: str


class RevealRequest(_Request):
    """Request body for revealing one tile."""

    player_id: str = Field(alias="playerId", min_length=1)
    tile_index: int = Field(alias="tileIndex")


class ClueRequest(_Request):
    """Request body for the active spymaster's clue."""

    player_id: str = Field(alias="playerId", min_length=1)
    word: str
    count: int = Field(ge=0)


class PlayerRequest(_Request):
    """Request body for commands that only name the acting player."""

    player_id: str = Field(alias="playerId", min_length=1)
