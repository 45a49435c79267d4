"""Codenames package exports."""

from .codenames_board import generate, new_seed, pick_words, validate_board
from .codenames_session import GameSession
from .codenames_state import (
    BOARD_SIZE,
    HIDDEN,
    Clue,
    Player,
    RevealEvent,
    RevealResult,
    Role,
    SessionStatus,
    Team,
    Tile,
)
from .codenames_view import ProjectedTile, project, spymaster_key
from .codenames_words import DEFAULT_WORDS

__all__ = [
    "BOARD_SIZE",
    "Clue",
    "DEFAULT_WORDS",
    "GameSession",
    "HIDDEN",
    "Player",
    "ProjectedTile",
    "RevealEvent",
    "RevealResult",
    "Role",
    "SessionStatus",
    "Team",
    "Tile",
    "generate",
    "new_seed",
    "pick_words",
    "project",
    "spymaster_key",
    "validate_board",
]
