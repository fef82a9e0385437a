"""Turn state machine: who may act, and what a roll does to the session.

Every function here is pure with respect to its *session* argument: it
returns a new snapshot (or nothing) and never mutates the one passed in.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from snakes_ladders.board import START_CELL, MoveResult, compute_move
from snakes_ladders.session import (
    LOCAL_AVATARS,
    Player,
    RoomStatus,
    Session,
    new_room_code,
    utcnow,
)

logger = logging.getLogger(__name__)

LOCAL_CODE = "LOCAL"
LOCAL_PLAYER_IDS = ("player-1", "player-2")


def roll_die(rng: random.Random | None = None) -> int:
    """Uniform roll in 1–6."""
    return (rng or random).randint(1, 6)


# ── Results ──────────────────────────────────────────────────────────

@dataclass
class RollResult:
    ok: bool = True
    message: str = ""
    session: Session | None = None  # next snapshot when ok
    move: MoveResult | None = None
    dice_value: int | None = None
    won: bool = False
    rejected: bool = False  # legality no-op
    aborted: bool = False  # integrity violation, logged


@dataclass
class JoinResult:
    ok: bool = True
    message: str = ""
    session: Session | None = None
    player_id: str | None = None


# ── Guards ───────────────────────────────────────────────────────────

def can_roll(session: Session | None, actor_id: str | None, busy: bool = False) -> bool:
    """Roll legality: actor holds the turn, game is playing, nothing in flight."""
    if session is None or busy:
        return False
    if session.status != RoomStatus.PLAYING:
        return False
    return actor_id is not None and session.current_turn == actor_id


def next_turn(session: Session, actor_id: str) -> str | None:
    other = session.opponent_of(actor_id)
    return other.id if other is not None else None


def next_timestamp(session: Session, now: datetime | None = None) -> datetime:
    """A `last_move` strictly after the session's current one, even under clock skew."""
    now = now or utcnow()
    floor = session.last_move + timedelta(microseconds=1)
    return now if now >= floor else floor


# ── Transitions ──────────────────────────────────────────────────────

def apply_roll(
    session: Session | None,
    actor_id: str | None,
    dice_value: int,
    now: datetime | None = None,
    busy: bool = False,
) -> RollResult:
    """Resolve *actor_id* rolling *dice_value* into the next full snapshot.

    playing → playing on an ordinary roll (turn flips to the other player),
    playing → finished when the move ends exactly on 100.
    """
    if not can_roll(session, actor_id, busy):
        logger.debug(
            "roll rejected: actor=%s turn=%s status=%s busy=%s",
            actor_id,
            session.current_turn if session else None,
            session.status.value if session else None,
            busy,
        )
        return RollResult(ok=False, rejected=True, message="Not your turn.")

    idx = session.index_of(actor_id)
    if idx == -1:
        logger.error("player %s not found in session %s", actor_id, session.code)
        return RollResult(ok=False, aborted=True, message="Player not found in session.")

    actor = session.players[idx]
    move = compute_move(actor.position, dice_value)
    won = move.is_win

    players = [replace(p) for p in session.players]
    players[idx] = replace(actor, position=move.final_position)

    nxt = replace(
        session,
        players=players,
        current_turn=None if won else next_turn(session, actor_id),
        dice_value=dice_value,
        last_move=next_timestamp(session, now),
        winner=actor_id if won else None,
        status=RoomStatus.FINISHED if won else RoomStatus.PLAYING,
    )

    if move.is_void:
        message = f"Rolled {dice_value}: overshoots 100, stays on {actor.position}."
    elif move.hit_snake:
        message = f"Rolled {dice_value}: snake at {move.intermediate_position}, down to {move.final_position}."
    elif move.hit_ladder:
        message = f"Rolled {dice_value}: ladder at {move.intermediate_position}, up to {move.final_position}."
    else:
        message = f"Rolled {dice_value}: moved to {move.final_position}."
    if won:
        message += " Winner!"

    return RollResult(
        ok=True,
        message=message,
        session=nxt,
        move=move,
        dice_value=dice_value,
        won=won,
    )


def join_session(session: Session, player: Player, now: datetime | None = None) -> JoinResult:
    """waiting → playing once a second player joins; the first player starts."""
    if session.status != RoomStatus.WAITING:
        return JoinResult(ok=False, message="This room is already playing or finished.")
    if session.is_full:
        return JoinResult(ok=False, message="This room is full.")
    if session.player(player.id) is not None:
        return JoinResult(ok=False, message="Player already in this room.")

    players = [replace(p) for p in session.players] + [replace(player)]
    if len(players) < 2:
        nxt = replace(session, players=players)
    else:
        nxt = replace(
            session,
            players=players,
            current_turn=players[0].id,
            status=RoomStatus.PLAYING,
            last_move=next_timestamp(session, now),
        )
    return JoinResult(ok=True, message="Joined.", session=nxt, player_id=player.id)


def reset_session(session: Session, now: datetime | None = None) -> Session:
    """Local mode only: everyone back to the start, first player to move."""
    players = [replace(p, position=START_CELL) for p in session.players]
    return replace(
        session,
        players=players,
        current_turn=players[0].id if players else None,
        dice_value=0,
        winner=None,
        status=RoomStatus.PLAYING,
        last_move=next_timestamp(session, now),
    )


def new_waiting_session(host: Player, code: str | None = None) -> Session:
    return Session(
        id=str(uuid.uuid4()),
        code=code or new_room_code(),
        players=[replace(host)],
        current_turn=None,
        status=RoomStatus.WAITING,
    )


def new_local_session(name1: str = "", name2: str = "") -> Session:
    """Two players on one device; already playing, player 1 to move."""
    p1 = Player(id=LOCAL_PLAYER_IDS[0], name=name1.strip() or "Player 1", avatar=LOCAL_AVATARS[0])
    p2 = Player(id=LOCAL_PLAYER_IDS[1], name=name2.strip() or "Player 2", avatar=LOCAL_AVATARS[1])
    return Session(
        id="local-game",
        code=LOCAL_CODE,
        players=[p1, p2],
        current_turn=p1.id,
        status=RoomStatus.PLAYING,
    )
