"""Board generator tests: tile counts, determinism and input validation."""

from __future__ import annotations

from collections import Counter

import pytest

from codenames.codenames_board import generate, new_seed, pick_words, validate_board
from codenames.codenames_state import BOARD_SIZE, Team, Tile, parse_playing_team, parse_seat_team
from codenames.codenames_words import DEFAULT_WORDS
from framework.errors import InvalidInput, InvariantViolation

WORDS = [f"word{i:02d}" for i in range(BOARD_SIZE)]


@pytest.mark.parametrize("starting", [Team.RED, Team.BLUE])
def test_generated_board_has_standard_counts(starting: Team) -> None:
    board = generate(WORDS, starting, seed=42)
    counts = Counter(tile.team for tile in board)

    other = Team.BLUE if starting is Team.RED else Team.RED
    assert len(board) == BOARD_SIZE
    assert counts[starting] == 9
    assert counts[other] == 8
    assert counts[Team.ASSASSIN] == 1
    assert counts[Team.NEUTRAL] == 7
    assert all(not tile.revealed for tile in board)
    validate_board(board, starting)


def test_board_keeps_word_order_and_is_seed_deterministic() -> None:
    first = generate(WORDS, "red", seed=7)
    second = generate(WORDS, "red", seed=7)

    assert [tile.word for tile in first] == WORDS
    assert [tile.team for tile in first] == [tile.team for tile in second]


def test_position_does_not_reveal_team() -> None:
    first_tile_teams = {generate(WORDS, Team.RED, seed=seed)[0].team for seed in range(60)}
    layouts = {tuple(tile.team for tile in generate(WORDS, Team.RED, seed=seed)) for seed in range(20)}

    assert len(first_tile_teams) > 1
    assert len(layouts) > 1


def test_duplicate_words_collapse_before_counting() -> None:
    board = generate(WORDS + ["word00", " word01 "], Team.BLUE, seed=3)
    assert [tile.word for tile in board] == WORDS

    with pytest.raises(InvalidInput):
        generate(WORDS[:24] + ["word00"], Team.BLUE, seed=3)


def test_wrong_word_count_is_rejected() -> None:
    with pytest.raises(InvalidInput):
        generate(WORDS[:24], Team.RED, seed=1)
    with pytest.raises(InvalidInput):
        generate(WORDS + ["extra"], Team.RED, seed=1)
    with pytest.raises(InvalidInput):
        generate(WORDS[:24] + ["   "], Team.RED, seed=1)


@pytest.mark.parametrize("team", ["neutral", "assassin", "green", None])
def test_starting_team_must_be_a_playing_team(team) -> None:
    with pytest.raises(InvalidInput):
        generate(WORDS, team, seed=1)


def test_pick_words_samples_distinct_words_from_pool() -> None:
    picked = pick_words(seed=99)

    assert len(picked) == BOARD_SIZE
    assert len(set(picked)) == BOARD_SIZE
    assert set(picked) <= set(DEFAULT_WORDS)
    assert picked == pick_words(seed=99)

    with pytest.raises(InvalidInput):
        pick_words(["alpha", "beta", "alpha"], seed=1)


def test_validate_board_rejects_wrong_distribution() -> None:
    board = generate(WORDS, Team.RED, seed=5)
    with pytest.raises(InvariantViolation):
        validate_board(board, Team.BLUE)

    all_neutral = tuple(Tile(word=word, team=Team.NEUTRAL) for word in WORDS)
    with pytest.raises(InvariantViolation):
        validate_board(all_neutral, Team.RED)
    with pytest.raises(InvariantViolation):
        validate_board(board[:24], Team.RED)


def test_tiles_are_write_once() -> None:
    tile = Tile(word="alpha", team=Team.RED)
    tile.revealed = True

    with pytest.raises(AttributeError):
        tile.team = Team.BLUE
    with pytest.raises(AttributeError):
        tile.word = "beta"
    with pytest.raises(AttributeError):
        tile.revealed = False


def test_new_seed_is_positive() -> None:
    assert all(new_seed() > 0 for _ in range(10))


def test_team_parsers_split_playing_and_spectator_seats() -> None:
    assert parse_playing_team(" Blue ") is Team.BLUE
    assert parse_seat_team(None) is None
    assert parse_seat_team("unassigned") is None
    assert parse_seat_team("red") is Team.RED
    for raw in (None, "", "unassigned"):
        with pytest.raises(InvalidInput):
            parse_playing_team(raw)
    with pytest.raises(InvalidInput):
        parse_seat_team("neutral")
