"""In-memory session registry keyed by game id."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Sequence, TypeVar
from uuid import uuid4

from codenames.codenames_session import GameSession
from codenames.codenames_state import Clue, Player, RevealResult, SessionStatus, Team
from framework.errors import AlreadyJoined, InvalidInput, InvariantViolation, NotActive, NotFound

from .broadcaster import Broadcaster
from .config import DISCONNECT_FORFEIT, ServerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionRegistry:
    """Process-wide map from game id to GameSession.

    Only the id -> session mapping (and the player -> game reservation that
    keeps a player in one game at a time) is guarded by the registry lock;
    commands run under each session's own lock.
    """

    def __init__(self, *, config: ServerConfig | None = None, broadcaster: Broadcaster | None = None) -> None:
        self.config = config or ServerConfig()
        self.broadcaster = broadcaster or Broadcaster(
            queue_size=self.config.send_queue_size,
            overflow_policy=self.config.overflow_policy,
        )
        self._lock = threading.Lock()
        self._sessions: dict[str, GameSession] = {}
        self._player_games: dict[str, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def game_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def create(
        self,
        *,
        starting_team: Any = None,
        words: Sequence[str] | None = None,
        seed: int | None = None,
    ) -> GameSession:
        """Create a session under a freshly generated id."""
        return self.get_or_create(f"game-{uuid4().hex[:10]}", starting_team=starting_team, words=words, seed=seed)

    def get_or_create(
        self,
        game_id: str,
        *,
        starting_team: Any = None,
        words: Sequence[str] | None = None,
        seed: int | None = None,
    ) -> GameSession:
        """Return the session for `game_id`, creating it on first use."""
        game_id = str(game_id or "").strip()
        if not game_id:
            raise InvalidInput("gameId must be non-empty.")
        with self._lock:
            existing = self._sessions.get(game_id)
            if existing is not None:
                return existing
            session = GameSession.create(
                game_id,
                words=words,
                starting_team=starting_team,
                seed=seed,
                max_operatives_per_team=self.config.max_operatives_per_team,
                auto_start=self.config.auto_start,
                limit_guesses=self.config.limit_guesses,
            )
            self.broadcaster.attach(session)
            self._sessions[game_id] = session
        logger.info("game %s created (starting team %s)", game_id, session.starting_team.value)
        return session

    def get(self, game_id: str) -> GameSession:
        with self._lock:
            session = self._sessions.get(game_id)
        if session is None:
            raise NotFound(f"Unknown gameId: {game_id}")
        return session

    def remove(self, game_id: str) -> bool:
        """Close a session and drop its subscribers. Returns False for unknown ids."""
        with self._lock:
            session = self._sessions.pop(game_id, None)
            if session is None:
                return False
            for player_id in [pid for pid, gid in self._player_games.items() if gid == game_id]:
                del self._player_games[player_id]
        session.close()
        self.broadcaster.close_channel(game_id)
        logger.info("game %s removed", game_id)
        return True

    # --------------------------------------------------------------- commands

    def join(self, game_id: str, player_id: str, display_name: str, team: Any, role: Any) -> Player:
        """Seat a player, keeping each player id in at most one live game."""
        session = self.get(game_id)
        player_id = str(player_id or "").strip()
        with self._lock:
            current = self._player_games.get(player_id)
            if current is not None and current != game_id and current in self._sessions:
                raise AlreadyJoined(f"Player {player_id!r} is already playing in game {current!r}.")
            reserved = current != game_id
            self._player_games[player_id] = game_id
        try:
            return self._dispatch(session, session.join, player_id, display_name, team, role)
        except Exception:
            if reserved:
                with self._lock:
                    if self._player_games.get(player_id) == game_id:
                        del self._player_games[player_id]
            raise

    def start_game(self, game_id: str) -> GameSession:
        session = self.get(game_id)
        self._dispatch(session, session.start_game)
        return session

    def give_clue(self, game_id: str, player_id: str, word: Any, count: Any) -> Clue:
        session = self.get(game_id)
        return self._dispatch(session, session.give_clue, player_id, word, count)

    def reveal(self, game_id: str, player_id: str, tile_index: Any) -> RevealResult:
        session = self.get(game_id)
        return self._dispatch(session, session.reveal, player_id, tile_index)

    def end_turn(self, game_id: str, player_id: str) -> Team:
        session = self.get(game_id)
        return self._dispatch(session, session.end_turn, player_id)

    def handle_disconnect(self, game_id: str, player_id: str) -> Team | None:
        """Apply the disconnect policy once a player's last connection is gone.

        Returns the winning team when the disconnect caused a forfeit.
        """
        if self.config.disconnect_policy != DISCONNECT_FORFEIT:
            return None
        if self.broadcaster.connection_count(game_id, player_id) > 0:
            return None
        try:
            session = self.get(game_id)
        except NotFound:
            return None
        player = session.find_player(player_id)
        if player is None or player.team is None or session.status is not SessionStatus.ACTIVE:
            return None
        try:
            winner = self._dispatch(session, session.forfeit, player_id)
        except NotActive:
            logger.debug("game %s: finished before %s's disconnect forfeit applied", game_id, player_id)
            return None
        logger.info("game %s: %s disconnected, %s forfeits", game_id, player_id, player.team.value)
        return winner

    def sweep(self, now: float | None = None) -> list[str]:
        """Remove sessions with no subscribers for longer than the idle timeout."""
        now = now if now is not None else self.broadcaster.clock()
        evicted: list[str] = []
        for game_id in self.game_ids():
            idle = self.broadcaster.idle_for(game_id, now)
            if idle is None or idle < self.config.idle_timeout_sec:
                continue
            if self.remove(game_id):
                logger.info("game %s evicted after %.0fs without subscribers", game_id, idle)
                evicted.append(game_id)
        return evicted

    def _dispatch(self, session: GameSession, command: Callable[..., T], *args: Any) -> T:
        try:
            return command(*args)
        except InvariantViolation:
            self.remove(session.id)
            raise
