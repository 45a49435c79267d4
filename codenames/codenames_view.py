"""Per-viewer projection of a board.

An unrevealed tile's team is only ever copied into a projection when the
viewer is a spymaster. Every outbound board (HTTP reads and WebSocket pushes)
goes through `project`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from framework.errors import Forbidden

from .codenames_state import HIDDEN, Player, Tile


@dataclass(frozen=True)
class ProjectedTile:
    """A tile as one viewer is allowed to see it."""

    index: int
    word: str
    team: str
    revealed: bool

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "word": self.word, "team": self.team, "revealed": self.revealed}


def can_see_key(viewer: Player | None) -> bool:
    """Return whether `viewer` may see unrevealed assignments."""
    return viewer is not None and viewer.is_spymaster


def project(board: Sequence[Tile], viewer: Player | None) -> tuple[ProjectedTile, ...]:
    """Return the board as `viewer` sees it. Unknown viewers see what operatives see."""
    full_view = can_see_key(viewer)
    projected: list[ProjectedTile] = []
    for index, tile in enumerate(board):
        if tile.revealed:
            projected.append(ProjectedTile(index=index, word=tile.word, team=tile.team.value, revealed=True))
        elif full_view:
            projected.append(ProjectedTile(index=index, word=tile.word, team=tile.team.value, revealed=False))
        else:
            projected.append(ProjectedTile(index=index, word=tile.word, team=HIDDEN, revealed=False))
    return tuple(projected)


def spymaster_key(board: Sequence[Tile], viewer: Player | None) -> list[dict[str, Any]]:
    """Return the full key card. Only spymasters may call this."""
    if not can_see_key(viewer):
        raise Forbidden("Only spymasters can view the key.")
    return [
        {"index": index, "word": tile.word, "team": tile.team.value, "revealed": tile.revealed}
        for index, tile in enumerate(board)
    ]


def render(board: Sequence[Tile], viewer: Player | None = None) -> str:
    """Render a projected board as a 5x5 text grid for logs and debugging."""
    tiles = project(board, viewer)
    tokens: list[str] = []
    for tile in tiles:
        if tile.revealed:
            token = f"{tile.word}:{tile.team.upper()}"
        elif tile.team != HIDDEN:
            token = f"{tile.word}:{tile.team}"
        else:
            token = tile.word
        tokens.append(f"{tile.index:02d}:{token}")
    cols = 5
    rows = [" | ".join(tokens[row : row + cols]) for row in range(0, len(tokens), cols)]
    return "\n".join(rows)
