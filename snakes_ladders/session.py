"""Shared session ("room") record for one game."""

from __future__ import annotations

import copy
import secrets
import string
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum

MAX_PLAYERS = 2
CODE_LENGTH = 6
PLAYER_ID_LENGTH = 10

AVATARS = ["🎮", "🎯", "🚀", "⭐", "🔥", "💎", "🌟", "🎪"]
LOCAL_AVATARS = ["🔴", "🔵"]

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_ID_ALPHABET = string.ascii_letters + string.digits + "_-"


class RoomStatus(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_player_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(PLAYER_ID_LENGTH))


def new_room_code() -> str:
    """Human-shareable join token, e.g. ``"K3QZ7A"``."""
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(CODE_LENGTH))


@dataclass
class Player:
    id: str
    name: str
    avatar: str = AVATARS[0]
    position: int = 0  # 0 = not yet on the board


@dataclass
class Session:
    """One game's full state.

    Snapshots are replaced wholesale, never patched field by field: the
    turn machine returns new instances and mirrors swap the whole object.
    """

    id: str
    code: str
    players: list[Player] = field(default_factory=list)
    current_turn: str | None = None
    dice_value: int = 0
    winner: str | None = None
    status: RoomStatus = RoomStatus.WAITING
    last_move: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)

    # ── lookups ──────────────────────────────────────────────────────

    def player(self, player_id: str | None) -> Player | None:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def index_of(self, player_id: str | None) -> int:
        for i, p in enumerate(self.players):
            if p.id == player_id:
                return i
        return -1

    def opponent_of(self, player_id: str | None) -> Player | None:
        for p in self.players:
            if p.id != player_id:
                return p
        return None

    @property
    def current_player(self) -> Player | None:
        return self.player(self.current_turn)

    @property
    def winner_player(self) -> Player | None:
        return self.player(self.winner)

    @property
    def is_full(self) -> bool:
        return len(self.players) >= MAX_PLAYERS

    @property
    def positions(self) -> list[int]:
        return [p.position for p in self.players]

    # ── snapshots ────────────────────────────────────────────────────

    def copy(self) -> Session:
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["last_move"] = self.last_move.isoformat()
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Session:
        return cls(
            id=data["id"],
            code=data["code"],
            players=[Player(**p) for p in data.get("players", [])],
            current_turn=data.get("current_turn"),
            dice_value=data.get("dice_value", 0),
            winner=data.get("winner"),
            status=RoomStatus(data.get("status", RoomStatus.WAITING.value)),
            last_move=_parse_ts(data.get("last_move")),
            created_at=_parse_ts(data.get("created_at")),
        )


def _parse_ts(value: str | datetime | None) -> datetime:
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts
