"""Session stores backing networked mode.

``SessionStore`` keeps rooms in a SQLite file so that two processes on the
same machine can share a game. ``SqliteGateway`` and ``MemoryGateway``
expose a store through the ``SessionGateway`` contract the sync engine
consumes: one-shot fetch, full-overwrite write, and a push subscription.
Push notifications only reach subscribers in the writing process; other
processes pick changes up through polling.
"""

from __future__ import annotations

import abc
import asyncio
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Callable

from snakes_ladders.session import AVATARS, Player, Session, new_player_id
from snakes_ladders.sync import (
    GatewayError,
    StatusCallback,
    SubscriptionStatus,
    UpdateCallback,
    WriteResult,
)
from snakes_ladders.turns import JoinResult, join_session, new_waiting_session

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 5


class SessionStore:
    """Thin wrapper around a SQLite database holding one row per room."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS rooms (
                id            TEXT PRIMARY KEY,
                room_code     TEXT NOT NULL UNIQUE,
                players       TEXT NOT NULL DEFAULT '[]',
                current_turn  TEXT,
                dice_value    INTEGER NOT NULL DEFAULT 0,
                winner        TEXT,
                status        TEXT NOT NULL DEFAULT 'waiting',
                last_move     TEXT NOT NULL,
                created_at    TEXT NOT NULL
            );
        """)
        self._conn.commit()

    def get(self, code: str) -> Session | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, room_code, players, current_turn, dice_value, winner, "
                "status, last_move, created_at FROM rooms WHERE room_code = ?",
                (code,),
            ).fetchone()
        if row is None:
            return None
        return Session.from_dict({
            "id": row[0],
            "code": row[1],
            "players": json.loads(row[2]),
            "current_turn": row[3],
            "dice_value": row[4],
            "winner": row[5],
            "status": row[6],
            "last_move": row[7],
            "created_at": row[8],
        })

    def insert(self, session: Session) -> None:
        """Add a new room. Raises ``sqlite3.IntegrityError`` on a code clash."""
        data = session.to_dict()
        with self._lock:
            self._conn.execute(
                "INSERT INTO rooms (id, room_code, players, current_turn, dice_value, "
                "winner, status, last_move, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (data["id"], data["code"], json.dumps(data["players"]), data["current_turn"],
                 data["dice_value"], data["winner"], data["status"], data["last_move"],
                 data["created_at"]),
            )
            self._conn.commit()

    def put(self, session: Session) -> bool:
        """Overwrite the whole room row. Returns False if the room is gone."""
        data = session.to_dict()
        with self._lock:
            cur = self._conn.execute(
                "UPDATE rooms SET players = ?, current_turn = ?, dice_value = ?, winner = ?, "
                "status = ?, last_move = ? WHERE room_code = ?",
                (json.dumps(data["players"]), data["current_turn"], data["dice_value"],
                 data["winner"], data["status"], data["last_move"], data["code"]),
            )
            self._conn.commit()
        return cur.rowcount > 0

    def list_codes(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute("SELECT room_code FROM rooms ORDER BY created_at").fetchall()
        return [r[0] for r in rows]

    def close(self) -> None:
        self._conn.close()


# ── Gateways ─────────────────────────────────────────────────────────

class _PushGateway(abc.ABC):
    """Subscriber registry and lobby workflows shared by both gateways."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[tuple[UpdateCallback, StatusCallback | None]]] = {}

    # storage hooks
    @abc.abstractmethod
    async def _get(self, code: str) -> Session | None: ...

    @abc.abstractmethod
    async def _put(self, session: Session) -> bool:
        """Overwrite an existing room. False if there is none."""

    @abc.abstractmethod
    async def _insert(self, session: Session) -> bool:
        """Add a new room. False on a room-code clash."""

    # ── SessionGateway ───────────────────────────────────────────────

    async def fetch_session(self, code: str) -> Session | None:
        return await self._get(code)

    def subscribe_session(
        self,
        code: str,
        on_update: UpdateCallback,
        on_status: StatusCallback | None = None,
    ) -> Callable[[], None]:
        entry = (on_update, on_status)
        self._subscribers.setdefault(code, []).append(entry)
        if on_status is not None:
            on_status(SubscriptionStatus.SUBSCRIBED, None)

        def unsubscribe() -> None:
            subs = self._subscribers.get(code, [])
            if entry in subs:
                subs.remove(entry)
                if on_status is not None:
                    on_status(SubscriptionStatus.CLOSED, None)

        return unsubscribe

    async def write_session(self, code: str, snapshot: Session) -> WriteResult:
        if snapshot.code != code:
            return WriteResult(ok=False, message=f"Snapshot is for room {snapshot.code}, not {code}.")
        if not await self._put(snapshot):
            return WriteResult(ok=False, message=f"Room {code} not found.")
        self.publish(code, snapshot)
        return WriteResult(ok=True)

    def publish(self, code: str, snapshot: Session) -> None:
        for on_update, _ in list(self._subscribers.get(code, [])):
            on_update(snapshot.copy())

    def subscriber_count(self, code: str) -> int:
        return len(self._subscribers.get(code, []))

    # ── lobby ────────────────────────────────────────────────────────

    async def create_room(self, name: str, avatar: str = AVATARS[0]) -> tuple[Session, str]:
        """Open a room in ``waiting`` with its host as the only player."""
        host = Player(id=new_player_id(), name=name.strip() or "Player 1", avatar=avatar)
        for _ in range(MAX_CODE_ATTEMPTS):
            session = new_waiting_session(host)
            if await self._insert(session):
                logger.info("room %s created by %s", session.code, host.name)
                return session, host.id
        raise GatewayError("Could not allocate a free room code.")

    async def join_room(self, code: str, name: str, avatar: str = AVATARS[1]) -> JoinResult:
        code = code.strip().upper()
        session = await self._get(code)
        if session is None:
            return JoinResult(ok=False, message="Room not found. Check the code.")
        player = Player(id=new_player_id(), name=name.strip() or "Player 2", avatar=avatar)
        result = join_session(session, player)
        if not result.ok:
            return result
        written = await self.write_session(code, result.session)
        if not written.ok:
            return JoinResult(ok=False, message=written.message)
        logger.info("%s joined room %s", player.name, code)
        return result


class SqliteGateway(_PushGateway):
    """``SessionStore`` exposed asynchronously; queries run in worker threads."""

    def __init__(self, store: SessionStore):
        super().__init__()
        self.store = store

    async def _get(self, code: str) -> Session | None:
        try:
            return await asyncio.to_thread(self.store.get, code)
        except sqlite3.Error as exc:
            raise GatewayError(str(exc)) from exc

    async def _put(self, session: Session) -> bool:
        try:
            return await asyncio.to_thread(self.store.put, session)
        except sqlite3.Error as exc:
            raise GatewayError(str(exc)) from exc

    async def _insert(self, session: Session) -> bool:
        try:
            await asyncio.to_thread(self.store.insert, session)
        except sqlite3.IntegrityError:
            return False
        except sqlite3.Error as exc:
            raise GatewayError(str(exc)) from exc
        return True


class MemoryGateway(_PushGateway):
    """In-process store with switchable faults, for tests and simulations."""

    def __init__(self) -> None:
        super().__init__()
        self.rooms: dict[str, Session] = {}
        self.writes: list[Session] = []
        self.fail_fetch = False
        self.fail_write = False
        self.fail_subscribe = False
        self.drop_push = False  # writes land but nobody is notified

    async def _get(self, code: str) -> Session | None:
        if self.fail_fetch:
            raise GatewayError("fetch failed")
        session = self.rooms.get(code)
        return session.copy() if session is not None else None

    async def _put(self, session: Session) -> bool:
        if self.fail_write:
            raise GatewayError("write failed")
        if session.code not in self.rooms:
            return False
        self.rooms[session.code] = session.copy()
        self.writes.append(session.copy())
        return True

    async def _insert(self, session: Session) -> bool:
        if session.code in self.rooms:
            return False
        self.rooms[session.code] = session.copy()
        return True

    def subscribe_session(
        self,
        code: str,
        on_update: UpdateCallback,
        on_status: StatusCallback | None = None,
    ) -> Callable[[], None]:
        if self.fail_subscribe:
            raise GatewayError("subscribe failed")
        return super().subscribe_session(code, on_update, on_status)

    def publish(self, code: str, snapshot: Session) -> None:
        if self.drop_push:
            return
        super().publish(code, snapshot)

    def emit_channel_error(self, code: str, message: str = "channel error") -> None:
        for _, on_status in list(self._subscribers.get(code, [])):
            if on_status is not None:
                on_status(SubscriptionStatus.CHANNEL_ERROR, message)
