"""Authoritative game session: board, roster, turn state and reveal history."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, NoReturn, Sequence

from framework.errors import (
    AlreadyJoined,
    AwaitingClue,
    ClueAlreadyGiven,
    Forbidden,
    InvalidIndex,
    InvalidInput,
    InvariantViolation,
    NotActive,
    NotFound,
    NotReady,
    NotYourTurn,
    RoleTaken,
    SessionFull,
    TileAlreadyRevealed,
)
from framework.events import EventType, SessionEvent

from .codenames_board import generate, new_seed, pick_words, validate_board
from .codenames_state import (
    BOARD_SIZE,
    PLAYING_TEAMS,
    Board,
    Clue,
    Player,
    RevealEvent,
    RevealResult,
    Role,
    SessionStatus,
    Team,
    Tile,
    other_team,
    parse_playing_team,
    parse_role,
    parse_seat_team,
)
from .codenames_view import project, render, spymaster_key

logger = logging.getLogger(__name__)

DEFAULT_MAX_OPERATIVES_PER_TEAM = 10

CommitListener = Callable[["GameSession", SessionEvent], None]


class GameSession:
    """One game, addressed by id.

    Every command runs under the session's own lock, validates before it
    mutates, and commits exactly one event per state transition. Listeners are
    called with the lock held so they observe commits in order.
    """

    def __init__(
        self,
        game_id: str,
        board: Sequence[Tile],
        starting_team: Team,
        *,
        max_operatives_per_team: int = DEFAULT_MAX_OPERATIVES_PER_TEAM,
        auto_start: bool = False,
        limit_guesses: bool = False,
    ) -> None:
        if starting_team not in PLAYING_TEAMS:
            raise InvalidInput(f"Starting team must be red or blue, not {starting_team.value!r}.")
        validate_board(board, starting_team)
        self.id = game_id
        self.starting_team = starting_team
        self.active_team = starting_team
        self.turn_count = 0
        self.status = SessionStatus.LOBBY
        self.winner: Team | None = None
        self.finish_reason: str | None = None
        self.version = 0
        self.max_operatives_per_team = max_operatives_per_team
        self.auto_start = auto_start
        self.limit_guesses = limit_guesses
        self.clue: Clue | None = None
        self.guesses_left: int | None = None
        self.lock = threading.RLock()
        self._board: Board = tuple(board)
        self._players: dict[str, Player] = {}
        self._history: list[RevealEvent] = []
        self._events: list[SessionEvent] = []
        self._listeners: list[CommitListener] = []
        self._closed = False
        self._aborted: str | None = None

    @classmethod
    def create(
        cls,
        game_id: str,
        *,
        words: Sequence[str] | None = None,
        starting_team: Any = None,
        seed: int | None = None,
        **options: Any,
    ) -> "GameSession":
        """Generate a fresh board and wrap it in a lobby session."""
        seed = seed if seed is not None else new_seed()
        if starting_team is None:
            team = PLAYING_TEAMS[seed % 2]
        else:
            team = parse_playing_team(starting_team)
        board_words = list(words) if words is not None else pick_words(seed=seed)
        board = generate(board_words, team, seed=seed)
        return cls(game_id, board, team, **options)

    # ------------------------------------------------------------------ reads

    @property
    def board(self) -> Board:
        return self._board

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._aborted is not None

    def add_listener(self, listener: CommitListener) -> None:
        with self.lock:
            self._listeners.append(listener)

    def player(self, player_id: str) -> Player:
        """Return a seated player or raise NotFound."""
        with self.lock:
            found = self._players.get(player_id)
        if found is None:
            raise NotFound(f"Player {player_id!r} has not joined game {self.id!r}.")
        return found

    def find_player(self, player_id: str | None) -> Player | None:
        if player_id is None:
            return None
        with self.lock:
            return self._players.get(player_id)

    def roster(self) -> tuple[Player, ...]:
        with self.lock:
            return tuple(self._players.values())

    def history(self) -> list[RevealEvent]:
        with self.lock:
            return list(self._history)

    def events(self) -> list[SessionEvent]:
        with self.lock:
            return list(self._events)

    def remaining(self, team: Team) -> int:
        """Count unrevealed tiles assigned to `team`."""
        with self.lock:
            return sum(1 for tile in self._board if tile.team is team and not tile.revealed)

    def is_ready(self) -> bool:
        """Both teams have a spymaster and at least one operative."""
        with self.lock:
            return not self._missing_seats()

    def session_fields(self) -> dict[str, Any]:
        with self.lock:
            return {
                "id": self.id,
                "status": self.status.value,
                "activeTeam": self.active_team.value,
                "winner": self.winner.value if self.winner is not None else None,
                "turnCount": self.turn_count,
                "finishReason": self.finish_reason,
                "startingTeam": self.starting_team.value,
                "clue": self.clue.to_dict() if self.clue is not None else None,
                "guessesLeft": self.guesses_left,
                "remaining": {team.value: self.remaining(team) for team in PLAYING_TEAMS},
                "players": [player.to_dict() for player in self._players.values()],
            }

    def state_message(self, viewer_id: str | None, event: SessionEvent | None = None) -> dict[str, Any]:
        """Build the outbound state message as `viewer_id` may see it."""
        with self.lock:
            viewer = self._players.get(viewer_id) if viewer_id is not None else None
            if event is None and self._events:
                event = self._events[-1]
            return {
                "type": "state",
                "seq": self.version,
                "session": self.session_fields(),
                "viewer": viewer.to_dict() if viewer is not None else None,
                "board": [tile.to_dict() for tile in project(self._board, viewer)],
                "event": event.to_dict() if event is not None else None,
            }

    def key_for(self, viewer_id: str) -> list[dict[str, Any]]:
        with self.lock:
            return spymaster_key(self._board, self._players.get(viewer_id))

    # --------------------------------------------------------------- commands

    def join(self, player_id: str, display_name: str, team: Any, role: Any) -> Player:
        """Seat a player. Re-joining with an identical seat is a no-op."""
        parsed_role = parse_role(role)
        if parsed_role is Role.OPERATIVE:
            parsed_team = parse_seat_team(team)
        else:
            parsed_team = parse_playing_team(team)
        player_id = str(player_id or "").strip()
        if not player_id:
            raise InvalidInput("playerId must be non-empty.")
        name = str(display_name or "").strip() or player_id

        with self.lock:
            self._ensure_usable()
            if self.status is SessionStatus.FINISHED:
                raise NotActive(f"Game {self.id!r} is finished; it can no longer be joined.")

            existing = self._players.get(player_id)
            if existing is not None:
                if existing.team is parsed_team and existing.role is parsed_role:
                    return existing
                raise AlreadyJoined(
                    f"Player {player_id!r} already joined as {self._seat_label(existing.team, existing.role)}."
                )

            if parsed_role is Role.SPYMASTER and self._spymaster_for(parsed_team) is not None:
                raise RoleTaken(f"Team {parsed_team.value!r} already has a spymaster.")
            if parsed_role is Role.OPERATIVE and parsed_team is not None:
                if self._operative_count(parsed_team) >= self.max_operatives_per_team:
                    raise SessionFull(f"Team {parsed_team.value!r} already has the maximum number of operatives.")

            player = Player(id=player_id, display_name=name, role=parsed_role, team=parsed_team)
            self._players[player_id] = player
            self._commit(EventType.PLAYER_JOINED, {"player": player.to_dict()})
            logger.debug("game %s: %s joined as %s", self.id, player_id, self._seat_label(parsed_team, parsed_role))

            if self.auto_start and self.status is SessionStatus.LOBBY and not self._missing_seats():
                self._start()
            return player

    def start_game(self) -> None:
        """Move the session from lobby to active."""
        with self.lock:
            self._ensure_usable()
            if self.status is not SessionStatus.LOBBY:
                raise NotActive(f"Game {self.id!r} is {self.status.value}; only lobby games can be started.")
            missing = self._missing_seats()
            if missing:
                raise NotReady("Can't start game yet: missing " + ", ".join(missing) + ".")
            self._start()

    def give_clue(self, player_id: str, word: Any, count: Any) -> Clue:
        """Record the active spymaster's clue for this turn.

        With `limit_guesses` set, operatives must wait for the clue and may make
        `count` guesses (unlimited for 0); otherwise the clue is informational.
        """
        with self.lock:
            self._ensure_usable()
            if self.status is not SessionStatus.ACTIVE:
                raise NotActive(f"Game {self.id!r} is {self.status.value}; clues need an active game.")
            player = self.player(player_id)
            if not player.is_spymaster:
                raise Forbidden("Only spymasters can give clues.")
            if player.team is not self.active_team:
                raise NotYourTurn(f"It is {self.active_team.value}'s turn.")
            if self.clue is not None:
                raise ClueAlreadyGiven(f"Team {self.active_team.value!r} already has a clue this turn.")
            clue_word = str(word or "").strip()
            if not clue_word:
                raise InvalidInput("Clue cannot be empty.")
            if isinstance(count, bool) or not isinstance(count, int) or count < 0 or count > BOARD_SIZE:
                raise InvalidInput(f"Clue count must be an integer in [0, {BOARD_SIZE}]; received {count!r}.")

            self.clue = Clue(word=clue_word, count=count, team=self.active_team, given_by=player.id)
            if self.limit_guesses:
                self.guesses_left = count if count > 0 else None
            self._commit(EventType.CLUE_GIVEN, {"clue": self.clue.to_dict()})
            logger.debug("game %s: %s gave clue %r for %d", self.id, player.id, clue_word, count)
            return self.clue

    def reveal(self, player_id: str, tile_index: Any) -> RevealResult:
        """Reveal one tile for the player's team and apply the turn policy."""
        with self.lock:
            self._ensure_usable()
            if self.status is not SessionStatus.ACTIVE:
                raise NotActive(f"Game {self.id!r} is {self.status.value}; reveals need an active game.")
            player = self.player(player_id)
            if player.team is not self.active_team:
                raise NotYourTurn(f"It is {self.active_team.value}'s turn.")
            index = self._validate_index(tile_index)

            try:
                tile = self._board[index]
            except IndexError:
                self._abort(f"tile index {index} passed validation but is outside the board")
            if tile.revealed:
                raise TileAlreadyRevealed(index)
            if self.limit_guesses and self.clue is None:
                raise AwaitingClue(f"Team {self.active_team.value!r} is waiting for its spymaster's clue.")

            revealing_team = self.active_team
            if self.guesses_left is not None:
                self.guesses_left -= 1
            tile.revealed = True
            event = RevealEvent(
                session_id=self.id,
                tile_index=index,
                revealed_by=player.id,
                resulting_team=tile.team,
            )
            self._history.append(event)
            logger.debug("game %s: %s revealed %d (%s)", self.id, player.id, index, tile.team.value)

            if tile.team is Team.ASSASSIN:
                self._finish(other_team(revealing_team), "assassin")
            elif tile.team in PLAYING_TEAMS and self.remaining(tile.team) == 0:
                self._finish(tile.team, "all_tiles_revealed")
            elif tile.team is not revealing_team or self.guesses_left == 0:
                self._switch_turn()

            self._commit(
                EventType.TILE_REVEALED,
                {
                    "reveal": event.to_dict(),
                    "word": tile.word,
                    "status": self.status.value,
                    "activeTeam": self.active_team.value,
                    "winner": self.winner.value if self.winner is not None else None,
                },
            )
            return RevealResult(
                event=event,
                status=self.status,
                active_team=self.active_team,
                winner=self.winner,
                turn_count=self.turn_count,
            )

    def end_turn(self, player_id: str) -> Team:
        """Voluntarily pass the turn. Returns the new active team."""
        with self.lock:
            self._ensure_usable()
            if self.status is not SessionStatus.ACTIVE:
                raise NotActive(f"Game {self.id!r} is {self.status.value}; turns only end in an active game.")
            player = self.player(player_id)
            if player.team is not self.active_team:
                raise NotYourTurn(f"It is {self.active_team.value}'s turn.")
            ended = self.active_team
            self._switch_turn()
            logger.debug("game %s: %s ended %s's turn", self.id, player.id, ended.value)
            self._commit(
                EventType.TURN_ENDED,
                {"endedBy": player.id, "endedTeam": ended.value, "activeTeam": self.active_team.value},
            )
            return self.active_team

    def forfeit(self, player_id: str) -> Team:
        """The player's team concedes. Returns the winning team."""
        with self.lock:
            self._ensure_usable()
            if self.status is not SessionStatus.ACTIVE:
                raise NotActive(f"Game {self.id!r} is {self.status.value}; only active games can be forfeited.")
            player = self.player(player_id)
            if player.team is None:
                raise Forbidden("Spectators cannot forfeit.")
            winner = other_team(player.team)
            self._finish(winner, "forfeit")
            self._commit(
                EventType.PLAYER_FORFEITED,
                {"playerId": player.id, "team": player.team.value, "winner": winner.value},
            )
            return winner

    def close(self) -> None:
        """Close the session. Later commands raise NotFound."""
        with self.lock:
            if self._closed:
                return
            self._commit(EventType.SESSION_CLOSED, {"status": self.status.value})
            self._closed = True
            logger.info("game %s closed", self.id)

    # -------------------------------------------------------------- internals

    def _ensure_usable(self) -> None:
        if self._aborted is not None:
            raise InvariantViolation(f"Game {self.id!r} was aborted: {self._aborted}")
        if self._closed:
            raise NotFound(f"Game {self.id!r} has been closed.")

    def _abort(self, reason: str) -> NoReturn:
        self._aborted = reason
        logger.error("game %s aborted: %s", self.id, reason)
        raise InvariantViolation(f"Game {self.id!r} aborted: {reason}")

    def _validate_index(self, raw: Any) -> int:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise InvalidIndex(raw, BOARD_SIZE)
        if raw < 0 or raw >= BOARD_SIZE:
            raise InvalidIndex(raw, BOARD_SIZE)
        return raw

    def _spymaster_for(self, team: Team | None) -> Player | None:
        for player in self._players.values():
            if player.team is team and player.role is Role.SPYMASTER:
                return player
        return None

    def _operative_count(self, team: Team) -> int:
        return sum(1 for player in self._players.values() if player.team is team and player.role is Role.OPERATIVE)

    def _missing_seats(self) -> list[str]:
        missing: list[str] = []
        for team in PLAYING_TEAMS:
            if self._spymaster_for(team) is None:
                missing.append(f"{team.value} spymaster")
            if self._operative_count(team) == 0:
                missing.append(f"{team.value} operative")
        return missing

    def _seat_label(self, team: Team | None, role: Role) -> str:
        return f"{team.value if team is not None else 'unassigned'} {role.value}"

    def _start(self) -> None:
        self.status = SessionStatus.ACTIVE
        self._commit(EventType.GAME_STARTED, {"startingTeam": self.starting_team.value})
        logger.info("game %s started with %d players", self.id, len(self._players))

    def _switch_turn(self) -> None:
        self.active_team = other_team(self.active_team)
        self.turn_count += 1
        self.clue = None
        self.guesses_left = None

    def _finish(self, winner: Team, reason: str) -> None:
        self.status = SessionStatus.FINISHED
        self.winner = winner
        self.finish_reason = reason
        logger.info("game %s finished: %s wins (%s)", self.id, winner.value, reason)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("game %s final board:\n%s", self.id, render(self._board, self._spymaster_for(winner)))

    def _commit(self, event_type: EventType, payload: dict[str, Any]) -> SessionEvent:
        self.version += 1
        event = SessionEvent.create(event_type, self.id, self.version, payload)
        self._events.append(event)
        for listener in list(self._listeners):
            try:
                listener(self, event)
            except Exception:
                logger.exception("game %s: commit listener failed for seq %d", self.id, event.seq)
        return event
