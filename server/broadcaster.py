"""Realtime fan-out of projected session state to WebSocket subscribers.

Each subscriber owns a bounded outbound queue drained by its own writer task,
so `publish` only enqueues and never waits on a socket. Messages are full
state snapshots numbered by the session version, which makes a resubscribe
(or a dropped intermediate snapshot) safe: the latest message always carries
the complete state, including a terminal status.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol
from uuid import uuid4

from codenames.codenames_session import GameSession
from framework.errors import NotFound
from framework.events import SessionEvent
from framework.serialize import json_dumps

from .config import OVERFLOW_DISCONNECT, OVERFLOW_DROP_OLDEST, OVERFLOW_POLICIES

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_TRY_AGAIN_LATER = 1013

_CLOSE = object()


class Connection(Protocol):
    """The part of a WebSocket the broadcaster writes to."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = CLOSE_NORMAL) -> None: ...


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscriber:
    """One live connection subscribed to one session."""

    def __init__(
        self,
        *,
        game_id: str,
        player_id: str,
        connection: Connection,
        queue_size: int,
        overflow_policy: str,
        on_drop: Callable[["Subscriber"], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.id = f"{game_id}-{uuid4().hex[:8]}"
        self.game_id = game_id
        self.player_id = player_id
        self.connection = connection
        self.overflow_policy = overflow_policy
        self.closed = False
        self.close_code = CLOSE_NORMAL
        self.dropped = 0
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self._loop = loop or _running_loop()
        # Set on the writer's loop once the close marker is queued; `closed` is set by the caller.
        self._sealed = False
        self._on_drop = on_drop

    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, message: str) -> None:
        """Queue a message without blocking. Safe to call from any thread."""
        if self.closed:
            return
        self._call_on_loop(self._enqueue, message)

    def close(self, code: int = CLOSE_NORMAL, *, flush: bool = True) -> None:
        """Stop accepting messages. With `flush` the writer sends what is queued before closing."""
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self._call_on_loop(self._enqueue_close, flush)

    async def run(self) -> None:
        """Writer loop: drain the queue onto the socket until closed."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        try:
            while True:
                message = await self._queue.get()
                if message is _CLOSE:
                    break
                await self.connection.send_text(message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("subscriber %s (player %s): send failed: %s", self.id, self.player_id, exc)
            self._on_drop(self)
            return

        try:
            await self.connection.close(code=self.close_code)
        except Exception as exc:
            logger.debug("subscriber %s: close after drain failed: %s", self.id, exc)

    def _call_on_loop(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop is _running_loop():
            callback(*args)
            return
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # The writer's event loop is gone; nothing can be delivered any more.
            self.closed = True

    def _enqueue(self, message: str) -> None:
        if self._sealed:
            return
        if self._queue.full():
            if self.overflow_policy == OVERFLOW_DROP_OLDEST:
                self._queue.get_nowait()
                self.dropped += 1
                logger.warning("subscriber %s: send queue full, dropped oldest snapshot", self.id)
            else:
                logger.warning("subscriber %s: send queue full, disconnecting", self.id)
                self.close(CLOSE_TRY_AGAIN_LATER, flush=False)
                self._on_drop(self)
                return
        self._queue.put_nowait(message)

    def _enqueue_close(self, flush: bool) -> None:
        if self._sealed:
            return
        self._sealed = True
        while not self._queue.empty() and (not flush or self._queue.full()):
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSE)


class Broadcaster:
    """Per-session subscriber sets and ordered delivery of state snapshots."""

    def __init__(
        self,
        *,
        queue_size: int = 256,
        overflow_policy: str = OVERFLOW_DISCONNECT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if overflow_policy not in OVERFLOW_POLICIES:
            raise ValueError(f"Unknown overflow policy {overflow_policy!r}.")
        self.queue_size = queue_size
        self.overflow_policy = overflow_policy
        self.clock = clock
        self._lock = threading.RLock()
        self._channels: dict[str, dict[str, Subscriber]] = {}
        self._idle_since: dict[str, float] = {}

    def attach(self, session: GameSession) -> None:
        """Start tracking a session and publish each of its commits."""
        with self._lock:
            self._channels.setdefault(session.id, {})
            self._idle_since.setdefault(session.id, self.clock())
        session.add_listener(self.publish)

    def subscribe(
        self,
        session: GameSession,
        player_id: str,
        connection: Connection,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> Subscriber:
        """Register a connection and queue the current state as its first message.

        Pass the writer's `loop` when calling from a worker thread.
        """
        subscriber = Subscriber(
            game_id=session.id,
            player_id=player_id,
            connection=connection,
            queue_size=self.queue_size,
            overflow_policy=self.overflow_policy,
            on_drop=self.unsubscribe,
            loop=loop,
        )
        # Snapshot and registration happen under the session lock so no commit
        # can fall between the initial state and the first pushed update.
        with session.lock:
            if session.closed:
                raise NotFound(f"Game {session.id!r} has been closed.")
            subscriber.offer(json_dumps(session.state_message(player_id)))
            with self._lock:
                self._channels.setdefault(session.id, {})[subscriber.id] = subscriber
                self._idle_since.pop(session.id, None)
        logger.debug("game %s: %s subscribed as %s", session.id, player_id, subscriber.id)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> bool:
        """Drop a subscriber. Returns False if it was already gone."""
        with self._lock:
            channel = self._channels.get(subscriber.game_id)
            removed = channel is not None and channel.pop(subscriber.id, None) is not None
            if removed and not channel:
                self._idle_since[subscriber.game_id] = self.clock()
        subscriber.close(subscriber.close_code)
        if removed:
            logger.debug("game %s: subscriber %s removed", subscriber.game_id, subscriber.id)
        return removed

    def publish(self, session: GameSession, event: SessionEvent) -> int:
        """Queue the post-commit state for every subscriber, projected per viewer."""
        with self._lock:
            subscribers = list(self._channels.get(session.id, {}).values())
        if not subscribers:
            return 0

        rendered: dict[str, str] = {}
        queued = 0
        for subscriber in subscribers:
            try:
                message = rendered.get(subscriber.player_id)
                if message is None:
                    message = json_dumps(session.state_message(subscriber.player_id, event))
                    rendered[subscriber.player_id] = message
                subscriber.offer(message)
                queued += 1
            except Exception:
                logger.exception("game %s: failed to queue seq %d for %s", session.id, event.seq, subscriber.id)
                self.unsubscribe(subscriber)
        return queued

    def close_channel(self, game_id: str, code: int = CLOSE_GOING_AWAY) -> int:
        """Close every subscriber of a session and forget the session."""
        with self._lock:
            subscribers = list(self._channels.pop(game_id, {}).values())
            self._idle_since.pop(game_id, None)
        for subscriber in subscribers:
            subscriber.close(code)
        return len(subscribers)

    def subscriber_count(self, game_id: str) -> int:
        with self._lock:
            return len(self._channels.get(game_id, {}))

    def connection_count(self, game_id: str, player_id: str) -> int:
        with self._lock:
            return sum(1 for sub in self._channels.get(game_id, {}).values() if sub.player_id == player_id)

    def idle_for(self, game_id: str, now: float | None = None) -> float | None:
        """Seconds the session has had no subscribers, 0.0 while any are connected."""
        with self._lock:
            if self._channels.get(game_id):
                return 0.0
            since = self._idle_since.get(game_id)
        if since is None:
            return None
        return (now if now is not None else self.clock()) - since

    def stats(self) -> dict[str, Any]:
        with self._lock:
            per_game = {game_id: len(channel) for game_id, channel in self._channels.items()}
        return {"games": per_game, "subscribers_total": sum(per_game.values())}
