"""Board generation: assigns hidden teams to 25 words."""

from __future__ import annotations

import random
import secrets
from collections import Counter
from typing import Any, Sequence

from framework.errors import InvalidInput, InvariantViolation

from .codenames_state import (
    ASSASSIN_TILES,
    BOARD_SIZE,
    NEUTRAL_TILES,
    SECOND_TEAM_TILES,
    STARTING_TEAM_TILES,
    Board,
    Team,
    Tile,
    other_team,
    parse_playing_team,
)
from .codenames_words import DEFAULT_WORDS


def new_seed() -> int:
    """Return an unpredictable positive seed for production boards."""
    return secrets.randbits(63) or 1


def _distinct(words: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    distinct: list[str] = []
    for raw in words:
        word = str(raw).strip()
        if not word:
            raise InvalidInput("Board words must be non-empty.")
        if word in seen:
            continue
        seen.add(word)
        distinct.append(word)
    return distinct


def pick_words(pool: Sequence[str] = DEFAULT_WORDS, *, seed: int | None = None, count: int = BOARD_SIZE) -> list[str]:
    """Sample `count` distinct words from `pool`."""
    distinct = _distinct(pool)
    if len(distinct) < count:
        raise InvalidInput(f"Word pool must contain at least {count} distinct words; found {len(distinct)}.")
    rng = random.Random(seed if seed is not None else new_seed())
    return rng.sample(distinct, count)


def expected_counts(starting_team: Team) -> dict[Team, int]:
    """Tile counts a valid board must have for the given starting team."""
    return {
        starting_team: STARTING_TEAM_TILES,
        other_team(starting_team): SECOND_TEAM_TILES,
        Team.ASSASSIN: ASSASSIN_TILES,
        Team.NEUTRAL: NEUTRAL_TILES,
    }


def generate(words: Sequence[str], starting_team: Any, *, seed: int | None = None) -> Board:
    """Build a board from exactly 25 distinct words.

    Board positions are shuffled with a seeded Fisher-Yates permutation. The
    words at the first 9 permuted positions go to the starting team, the next 8
    to the other team, one to the assassin and the remaining 7 are neutral.
    Tiles keep the order the words were given in, so a tile's position says
    nothing about its team.
    """
    team = parse_playing_team(starting_team)
    distinct = _distinct(words)
    if len(distinct) != BOARD_SIZE:
        raise InvalidInput(f"A board needs exactly {BOARD_SIZE} distinct words; received {len(distinct)}.")

    rng = random.Random(seed if seed is not None else new_seed())
    permutation = list(range(BOARD_SIZE))
    rng.shuffle(permutation)

    assignments = (
        [team] * STARTING_TEAM_TILES
        + [other_team(team)] * SECOND_TEAM_TILES
        + [Team.ASSASSIN] * ASSASSIN_TILES
        + [Team.NEUTRAL] * NEUTRAL_TILES
    )
    teams: list[Team] = [Team.NEUTRAL] * BOARD_SIZE
    for position, assigned in zip(permutation, assignments, strict=True):
        teams[position] = assigned
    return tuple(Tile(word=word, team=assigned) for word, assigned in zip(distinct, teams, strict=True))


def validate_board(board: Sequence[Tile], starting_team: Team) -> None:
    """Raise InvariantViolation unless the board matches the generator's contract."""
    if len(board) != BOARD_SIZE:
        raise InvariantViolation(f"Board must contain {BOARD_SIZE} tiles, found {len(board)}.")
    if len({tile.word for tile in board}) != BOARD_SIZE:
        raise InvariantViolation("Board words must be distinct.")
    got = Counter(tile.team for tile in board)
    for team, want in expected_counts(starting_team).items():
        if got[team] != want:
            raise InvariantViolation(f"Got {got[team]} tiles of type {team.value!r}, want {want}.")
