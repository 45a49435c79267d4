"""Registry tests: create/get convergence, player reservations, eviction and disconnects."""

from __future__ import annotations

import threading

import pytest

from codenames.codenames_state import BOARD_SIZE, SessionStatus, Team
from framework.errors import AlreadyJoined, InvalidInput, InvariantViolation, NotFound
from server.broadcaster import Broadcaster
from server.config import ServerConfig
from server.registry import SessionRegistry

WORDS = [f"word{i:02d}" for i in range(BOARD_SIZE)]


class _FakeConnection:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.close_code: int | None = None

    async def send_text(self, data: str) -> None:
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.close_code = code


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _registry(**config) -> SessionRegistry:
    return SessionRegistry(config=ServerConfig(**config))


def _seat_and_start(registry: SessionRegistry, game_id: str) -> None:
    registry.get_or_create(game_id, starting_team="red", words=WORDS, seed=8)
    registry.join(game_id, "red-spy", "Red Spy", "red", "spymaster")
    registry.join(game_id, "red-op", "Red Op", "red", "operative")
    registry.join(game_id, "blue-spy", "Blue Spy", "blue", "spymaster")
    registry.join(game_id, "blue-op", "Blue Op", "blue", "operative")
    registry.start_game(game_id)


def test_get_or_create_converges_under_contention() -> None:
    registry = _registry()
    barrier = threading.Barrier(8)
    sessions = []
    sessions_lock = threading.Lock()

    def _worker() -> None:
        barrier.wait()
        session = registry.get_or_create("shared")
        with sessions_lock:
            sessions.append(session)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(sessions) == 8
    assert all(session is sessions[0] for session in sessions)
    assert len(registry) == 1


def test_create_generates_unique_ids() -> None:
    registry = _registry()
    first = registry.create()
    second = registry.create(starting_team="blue")

    assert first.id != second.id
    assert second.starting_team is Team.BLUE
    assert set(registry.game_ids()) == {first.id, second.id}


def test_get_unknown_and_blank_ids() -> None:
    registry = _registry()
    with pytest.raises(NotFound):
        registry.get("missing")
    with pytest.raises(InvalidInput):
        registry.get_or_create("  ")


def test_player_can_only_be_in_one_live_game() -> None:
    registry = _registry()
    registry.get_or_create("g1", words=WORDS, seed=1)
    registry.get_or_create("g2", words=WORDS, seed=2)
    registry.join("g1", "alice", "Alice", "red", "operative")

    with pytest.raises(AlreadyJoined):
        registry.join("g2", "alice", "Alice", "blue", "operative")

    assert registry.remove("g1") is True
    assert registry.join("g2", "alice", "Alice", "blue", "operative").team is Team.BLUE


def test_failed_join_releases_reservation() -> None:
    registry = _registry()
    registry.get_or_create("g1", words=WORDS, seed=1)
    registry.get_or_create("g2", words=WORDS, seed=2)

    with pytest.raises(InvalidInput):
        registry.join("g1", "bob", "Bob", "red", "captain")
    assert registry.join("g2", "bob", "Bob", "red", "spymaster").team is Team.RED


def test_remove_closes_session_and_subscribers() -> None:
    registry = _registry()
    session = registry.get_or_create("g1", words=WORDS, seed=1)
    session.join("red-op", "Red Op", "red", "operative")
    subscriber = registry.broadcaster.subscribe(session, "red-op", _FakeConnection())

    assert registry.remove("g1") is True
    assert registry.remove("g1") is False
    assert session.closed
    assert subscriber.closed
    assert registry.broadcaster.subscriber_count("g1") == 0


def test_sweep_evicts_sessions_idle_past_timeout() -> None:
    clock = _Clock()
    registry = SessionRegistry(
        config=ServerConfig(idle_timeout_sec=10),
        broadcaster=Broadcaster(clock=clock),
    )
    idle = registry.get_or_create("idle", words=WORDS, seed=1)
    watched = registry.get_or_create("watched", words=WORDS, seed=2)
    watched.join("red-op", "Red Op", "red", "operative")
    registry.broadcaster.subscribe(watched, "red-op", _FakeConnection())

    clock.now += 5
    assert registry.sweep() == []

    clock.now += 6
    assert registry.sweep() == ["idle"]
    assert idle.closed
    assert registry.game_ids() == ["watched"]


def test_sweep_counts_from_last_unsubscribe() -> None:
    clock = _Clock()
    registry = SessionRegistry(config=ServerConfig(idle_timeout_sec=10), broadcaster=Broadcaster(clock=clock))
    session = registry.get_or_create("g1", words=WORDS, seed=1)
    session.join("red-op", "Red Op", "red", "operative")
    subscriber = registry.broadcaster.subscribe(session, "red-op", _FakeConnection())

    clock.now += 60
    assert registry.sweep() == []
    registry.broadcaster.unsubscribe(subscriber)

    clock.now += 9
    assert registry.sweep(clock.now) == []
    clock.now += 2
    assert registry.sweep(clock.now) == ["g1"]


def test_disconnect_ignored_by_default() -> None:
    registry = _registry()
    _seat_and_start(registry, "g1")

    assert registry.handle_disconnect("g1", "red-op") is None
    assert registry.get("g1").status is SessionStatus.ACTIVE


def test_disconnect_forfeit_policy() -> None:
    registry = _registry(disconnect_policy="forfeit")
    _seat_and_start(registry, "g1")
    session = registry.get("g1")
    registry.broadcaster.subscribe(session, "blue-op", _FakeConnection())

    assert registry.handle_disconnect("g1", "blue-op") is None
    assert registry.handle_disconnect("g1", "red-op") is Team.BLUE
    assert session.status is SessionStatus.FINISHED
    assert session.finish_reason == "forfeit"
    assert registry.handle_disconnect("g1", "red-spy") is None
    assert registry.handle_disconnect("missing", "red-op") is None


def test_invariant_violation_removes_session() -> None:
    registry = _registry()
    _seat_and_start(registry, "g1")
    session = registry.get("g1")
    session._board = session._board[:20]

    with pytest.raises(InvariantViolation):
        registry.reveal("g1", "red-op", 24)
    with pytest.raises(NotFound):
        registry.get("g1")


def test_registry_commands_reach_session() -> None:
    registry = _registry()
    _seat_and_start(registry, "g1")
    session = registry.get("g1")
    neutral = next(index for index, tile in enumerate(session.board) if tile.team is Team.NEUTRAL)

    result = registry.reveal("g1", "red-op", neutral)

    assert result.active_team is Team.BLUE
    assert registry.end_turn("g1", "blue-op") is Team.RED
    assert session.turn_count == 2


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CODENAMES_IDLE_TIMEOUT_SEC", "30")
    monkeypatch.setenv("CODENAMES_SEND_QUEUE_SIZE", "16")
    monkeypatch.setenv("CODENAMES_OVERFLOW_POLICY", "DROP_OLDEST")
    monkeypatch.setenv("CODENAMES_DISCONNECT_POLICY", "forfeit")
    monkeypatch.setenv("CODENAMES_AUTO_START", "true")
    monkeypatch.setenv("CODENAMES_LIMIT_GUESSES", "1")
    monkeypatch.setenv("CODENAMES_ALLOWED_ORIGINS", "http://a.test, http://b.test")

    config = ServerConfig.from_env()

    assert config.idle_timeout_sec == 30.0
    assert config.send_queue_size == 16
    assert config.overflow_policy == "drop_oldest"
    assert config.disconnect_policy == "forfeit"
    assert config.auto_start is True
    assert config.limit_guesses is True
    assert config.allowed_origins == ("http://a.test", "http://b.test")


def test_config_rejects_unknown_policies() -> None:
    with pytest.raises(ValueError):
        ServerConfig(overflow_policy="block")
    with pytest.raises(ValueError):
        ServerConfig(disconnect_policy="pause")
    with pytest.raises(ValueError):
        ServerConfig(send_queue_size=0)


def test_limit_guesses_config_reaches_new_sessions() -> None:
    registry = _registry(limit_guesses=True)
    _seat_and_start(registry, "limited")
    session = registry.get("limited")
    red = [index for index, tile in enumerate(session.board) if tile.team is Team.RED]

    clue = registry.give_clue("limited", "red-spy", "orbit", 1)
    registry.reveal("limited", "red-op", red[0])

    assert clue.count == 1
    assert session.limit_guesses is True
    assert session.active_team is Team.BLUE
