"""Networked mode: keep a local mirror of the shared session in sync.

Two signal paths feed the mirror. The push path is a subscription on the
room code; the poll path re-fetches the whole record every
``poll_interval`` seconds whether or not push is healthy. The acting
client applies its own roll optimistically as a pending overlay, then
writes the full snapshot back with no concurrency token.

Incoming snapshots are ordered by ``last_move``: one older than the
confirmed mirror is dropped, and one at least as new as the pending
overlay replaces it wholesale.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol

from snakes_ladders.board import MoveResult
from snakes_ladders.session import Player, RoomStatus, Session, utcnow
from snakes_ladders.turns import RollResult, apply_roll, can_roll, roll_die

logger = logging.getLogger(__name__)

POLL_INTERVAL = 2.0  # seconds; always on, push delivery is not trusted
SETTLE_DELAY = 0.8  # dice animation time before another roll is allowed


# ── Collaborator contract ────────────────────────────────────────────

class GatewayError(Exception):
    """Transient failure talking to the session store."""


class SubscriptionStatus(str, Enum):
    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    CLOSED = "CLOSED"


@dataclass
class WriteResult:
    ok: bool = True
    message: str = ""


UpdateCallback = Callable[[Session], None]
StatusCallback = Callable[[SubscriptionStatus, str | None], None]


class SessionGateway(Protocol):
    """What the engine needs from the store holding the authoritative copy."""

    async def fetch_session(self, code: str) -> Session | None: ...

    def subscribe_session(
        self,
        code: str,
        on_update: UpdateCallback,
        on_status: StatusCallback | None = None,
    ) -> Callable[[], None]: ...

    async def write_session(self, code: str, snapshot: Session) -> WriteResult: ...


# ── Engine ───────────────────────────────────────────────────────────

class SyncEngine:
    """One client's view of one networked session."""

    def __init__(
        self,
        gateway: SessionGateway,
        code: str,
        player_id: str,
        poll_interval: float = POLL_INTERVAL,
        settle_delay: float = SETTLE_DELAY,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.gateway = gateway
        self.code = code
        self.player_id = player_id
        self.poll_interval = poll_interval
        self.settle_delay = settle_delay
        self.rng = rng or random.Random()
        self.clock = clock

        self.is_loading = True
        self.is_rolling = False
        self.error: str | None = None
        self.push_healthy = False
        self.last_move_info: MoveResult | None = None

        self._confirmed: Session | None = None
        self._pending: Session | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._poll_task: asyncio.Task | None = None
        self._settle_handle: asyncio.TimerHandle | None = None
        self._listeners: list[Callable[[SyncEngine], None]] = []
        self._resubscribe = False
        self._started = False
        self._closed = False

    # ── derived views ────────────────────────────────────────────────

    @property
    def session(self) -> Session | None:
        return self._pending if self._pending is not None else self._confirmed

    @property
    def confirmed(self) -> Session | None:
        return self._confirmed

    @property
    def pending(self) -> Session | None:
        return self._pending

    @property
    def my_player(self) -> Player | None:
        return self.session.player(self.player_id) if self.session else None

    @property
    def opponent(self) -> Player | None:
        return self.session.opponent_of(self.player_id) if self.session else None

    @property
    def is_my_turn(self) -> bool:
        s = self.session
        return s is not None and s.current_turn == self.player_id and s.status == RoomStatus.PLAYING

    @property
    def dice_value(self) -> int:
        return self.session.dice_value if self.session else 0

    @property
    def closed(self) -> bool:
        return self._closed

    def add_listener(self, listener: Callable[[SyncEngine], None]) -> None:
        self._listeners.append(listener)

    def dismiss_error(self) -> None:
        self.error = None
        self._notify()

    # ── lifecycle ────────────────────────────────────────────────────

    async def start(self) -> SyncEngine:
        if self._started or self._closed:
            return self
        self._started = True
        self._subscribe()
        await self.refresh()
        self._poll_task = asyncio.create_task(self._poll_loop(), name=f"poll-{self.code}")
        return self

    async def close(self) -> None:
        """Release the subscription and the poll timer. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        logger.info("closing sync for room %s", self.code)
        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None
        self._drop_subscription()
        self._listeners.clear()

    async def __aenter__(self) -> SyncEngine:
        return await self.start()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ── push path ────────────────────────────────────────────────────

    def _subscribe(self) -> None:
        try:
            self._unsubscribe = self.gateway.subscribe_session(
                self.code, self._on_push, self._on_status,
            )
        except (GatewayError, OSError) as exc:
            logger.warning("subscribe failed for room %s: %s", self.code, exc)
            self._unsubscribe = None
            self.push_healthy = False
            self._set_error("Realtime connection unavailable. Using automatic refresh...")

    def _drop_subscription(self) -> None:
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()

    def _on_push(self, snapshot: Session) -> None:
        if self._closed:
            return
        logger.debug("push update for room %s at %s", self.code, snapshot.last_move.isoformat())
        self.push_healthy = True
        self.error = None
        self._reconcile(snapshot, "push")

    def _on_status(self, status: SubscriptionStatus, message: str | None = None) -> None:
        logger.debug("subscription status for room %s: %s %s", self.code, status.value, message or "")
        if status == SubscriptionStatus.SUBSCRIBED:
            self.error = None
            self._notify()
        elif status == SubscriptionStatus.CHANNEL_ERROR:
            logger.warning("channel error for room %s, relying on polling", self.code)
            self.push_healthy = False
            self._resubscribe = True
            self._set_error("Realtime connection interrupted. Using automatic refresh...")

    # ── poll path ────────────────────────────────────────────────────

    async def _poll_loop(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.poll_interval)
            try:
                if self._resubscribe or self._unsubscribe is None:
                    self._resubscribe = False
                    self._drop_subscription()
                    self._subscribe()
                await self.refresh()
            except Exception as exc:
                logger.exception("poll tick failed for room %s", self.code)
                self._set_error(f"Sync error: {exc}")

    async def refresh(self) -> bool:
        """Fetch the full record once and fold it into the mirror."""
        try:
            snapshot = await self.gateway.fetch_session(self.code)
        except (GatewayError, OSError) as exc:
            logger.warning("fetch failed for room %s: %s", self.code, exc)
            self._set_error(f"Connection error: {exc}")
            return False
        except (KeyError, ValueError, TypeError) as exc:
            logger.exception("unreadable record for room %s", self.code)
            self._set_error(f"Could not read room {self.code}: {exc}")
            return False
        finally:
            self.is_loading = False

        if snapshot is None:
            self._set_error(f"Room {self.code} not found.")
            return False
        self.error = None
        return self._reconcile(snapshot, "poll")

    # ── reconciliation ───────────────────────────────────────────────

    def _reconcile(self, snapshot: Session, source: str) -> bool:
        if snapshot.code != self.code:
            logger.error("%s snapshot for room %s delivered to room %s", source, snapshot.code, self.code)
            return False

        confirmed = self._confirmed
        if confirmed is not None and snapshot.last_move < confirmed.last_move:
            logger.debug("ignoring stale %s snapshot for room %s", source, self.code)
            self._notify()
            return False

        self._confirmed = snapshot.copy()
        if self._pending is not None and snapshot.last_move >= self._pending.last_move:
            self._pending = None
        self._notify()
        return True

    # ── write path ───────────────────────────────────────────────────

    async def roll_dice(self) -> RollResult:
        """Roll, apply locally at once, then overwrite the shared record."""
        session = self.session
        if self._closed or not can_roll(session, self.player_id, self.is_rolling):
            logger.debug(
                "roll blocked: room=%s turn=%s me=%s rolling=%s",
                self.code,
                session.current_turn if session else None,
                self.player_id,
                self.is_rolling,
            )
            return RollResult(ok=False, rejected=True, message="Not your turn.")

        self.is_rolling = True
        self.last_move_info = None
        try:
            dice_value = roll_die(self.rng)
            result = apply_roll(session, self.player_id, dice_value, now=self.clock())
            if not result.ok:
                return result

            snapshot = result.session
            self._pending = snapshot
            self.last_move_info = result.move
            self._notify()
            logger.info("room %s: %s", self.code, result.message)

            try:
                written = await self.gateway.write_session(self.code, snapshot.copy())
            except (GatewayError, OSError) as exc:
                written = WriteResult(ok=False, message=str(exc))

            if not written.ok:
                logger.warning("write failed for room %s: %s", self.code, written.message)
                if self._pending is snapshot:
                    self._pending = None
                self.last_move_info = None
                self._set_error(f"Update failed: {written.message}")
                return RollResult(ok=False, message=written.message, dice_value=dice_value)
            return result
        finally:
            self._schedule_settle()

    def _schedule_settle(self) -> None:
        if self._closed:
            self.is_rolling = False
            return
        loop = asyncio.get_running_loop()
        self._settle_handle = loop.call_later(self.settle_delay, self._settle)

    def _settle(self) -> None:
        self._settle_handle = None
        self.is_rolling = False
        self._notify()

    # ── helpers ──────────────────────────────────────────────────────

    def _set_error(self, message: str) -> None:
        self.error = message
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


async def wait_for(engine: SyncEngine, predicate: Callable[[SyncEngine], bool], poll: float = 0.05) -> None:
    """Sleep until *predicate(engine)* holds; used by the CLI."""
    while not predicate(engine):
        await asyncio.sleep(poll)

