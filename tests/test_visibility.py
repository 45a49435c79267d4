"""Per-viewer projection tests: operatives never see unrevealed assignments."""

from __future__ import annotations

import pytest

from codenames.codenames_board import generate
from codenames.codenames_session import GameSession
from codenames.codenames_state import BOARD_SIZE, HIDDEN, Player, Role, Team
from codenames.codenames_view import project, render, spymaster_key
from framework.errors import Forbidden
from framework.serialize import json_dumps

WORDS = [f"word{i:02d}" for i in range(BOARD_SIZE)]

OPERATIVE = Player(id="op", display_name="Op", role=Role.OPERATIVE, team=Team.RED)
SPYMASTER = Player(id="spy", display_name="Spy", role=Role.SPYMASTER, team=Team.RED)


def test_operative_sees_only_revealed_teams() -> None:
    board = generate(WORDS, Team.RED, seed=11)
    board[3].revealed = True

    projected = project(board, OPERATIVE)

    assert [tile.word for tile in projected] == WORDS
    assert projected[3].team == board[3].team.value
    assert projected[3].revealed is True
    assert all(tile.team == HIDDEN for index, tile in enumerate(projected) if index != 3)


def test_unknown_viewer_is_treated_as_operative() -> None:
    board = generate(WORDS, Team.BLUE, seed=11)
    assert all(tile.team == HIDDEN for tile in project(board, None))


def test_spymaster_sees_full_key() -> None:
    board = generate(WORDS, Team.RED, seed=11)

    projected = project(board, SPYMASTER)
    key = spymaster_key(board, SPYMASTER)

    assert [tile.team for tile in projected] == [tile.team.value for tile in board]
    assert [entry["team"] for entry in key] == [tile.team.value for tile in board]


def test_key_is_forbidden_for_non_spymasters() -> None:
    board = generate(WORDS, Team.RED, seed=11)
    with pytest.raises(Forbidden):
        spymaster_key(board, OPERATIVE)
    with pytest.raises(Forbidden):
        spymaster_key(board, None)


def test_operative_state_message_leaks_no_assignments() -> None:
    session = GameSession.create("vis", words=WORDS, starting_team="red", seed=4)
    session.join("spy", "Spy", "red", "spymaster")
    session.join("op", "Op", "red", "operative")

    operative_text = json_dumps(session.state_message("op"))
    spymaster_text = json_dumps(session.state_message("spy"))

    assert '"assassin"' not in operative_text
    assert '"neutral"' not in operative_text
    assert '"assassin"' in spymaster_text


def test_render_is_a_five_by_five_grid() -> None:
    board = generate(WORDS, Team.RED, seed=2)
    board[0].revealed = True

    text = render(board, OPERATIVE)
    rows = text.splitlines()

    assert len(rows) == 5
    assert all(row.count("|") == 4 for row in rows)
    assert f"word00:{board[0].team.value.upper()}" in rows[0]
