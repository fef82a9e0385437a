"""Tests for snakes_ladders.turns (the turn state machine)."""

import logging
import random
from datetime import datetime, timedelta, timezone

from snakes_ladders.session import Player, RoomStatus, Session
from snakes_ladders.turns import (
    apply_roll,
    can_roll,
    join_session,
    new_local_session,
    new_waiting_session,
    next_timestamp,
    reset_session,
    roll_die,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _playing(p1: int = 0, p2: int = 0, turn: str | None = "a") -> Session:
    return Session(
        id="room-1",
        code="ABC123",
        players=[
            Player(id="a", name="Alice", position=p1),
            Player(id="b", name="Bob", position=p2),
        ],
        current_turn=turn,
        status=RoomStatus.PLAYING,
        last_move=T0,
        created_at=T0,
    )


# ── legality ─────────────────────────────────────────────────────────

def test_wrong_player_roll_is_a_noop():
    s = _playing()
    before = s.to_dict()
    result = apply_roll(s, "b", 3)
    assert not result.ok
    assert result.rejected
    assert result.session is None
    assert s.to_dict() == before


def test_roll_rejected_unless_playing():
    for status in (RoomStatus.WAITING, RoomStatus.FINISHED):
        s = _playing()
        s.status = status
        before = s.to_dict()
        assert not can_roll(s, "a")
        assert apply_roll(s, "a", 3).rejected
        assert s.to_dict() == before


def test_roll_rejected_while_busy():
    s = _playing()
    assert can_roll(s, "a")
    assert not can_roll(s, "a", busy=True)
    assert apply_roll(s, "a", 3, busy=True).rejected


def test_missing_actor_is_aborted_and_logged(caplog):
    s = _playing(turn="ghost")
    with caplog.at_level(logging.ERROR, logger="snakes_ladders.turns"):
        result = apply_roll(s, "ghost", 3)
    assert result.aborted
    assert not result.ok
    assert result.session is None
    assert "ghost" in caplog.text


# ── transitions ──────────────────────────────────────────────────────

def test_ordinary_roll_moves_and_flips_turn():
    s = _playing(p1=30, p2=7)
    result = apply_roll(s, "a", 3, now=T0 + timedelta(seconds=5))
    assert result.ok
    nxt = result.session
    assert nxt.positions == [33, 7]
    assert nxt.current_turn == "b"
    assert nxt.dice_value == 3
    assert nxt.status == RoomStatus.PLAYING
    assert nxt.winner is None
    assert nxt.last_move == T0 + timedelta(seconds=5)
    # input untouched
    assert s.positions == [30, 7]
    assert s.current_turn == "a"


def test_snake_roll_reports_move():
    result = apply_roll(_playing(p1=10), "a", 6)
    assert result.session.positions[0] == 6
    assert result.move.hit_snake
    assert result.move.intermediate_position == 16
    assert "snake" in result.message


def test_winning_roll_finishes_game():
    result = apply_roll(_playing(p1=94, p2=50), "a", 6)
    nxt = result.session
    assert result.won
    assert nxt.status == RoomStatus.FINISHED
    assert nxt.winner == "a"
    assert nxt.current_turn is None
    assert nxt.positions == [100, 50]


def test_ladder_onto_100_wins():
    result = apply_roll(_playing(p2=77, turn="b"), "b", 3)
    assert result.won
    assert result.session.winner == "b"


def test_overshoot_keeps_position_but_passes_turn():
    result = apply_roll(_playing(p1=97), "a", 5)
    nxt = result.session
    assert result.ok
    assert result.move.is_void
    assert nxt.positions[0] == 97
    assert nxt.dice_value == 5
    assert nxt.current_turn == "b"


def test_no_roll_after_finish():
    finished = apply_roll(_playing(p1=94), "a", 6).session
    assert apply_roll(finished, "b", 2).rejected
    assert apply_roll(finished, "a", 2).rejected


def test_last_move_never_goes_backwards():
    s = _playing()
    skewed = T0 - timedelta(minutes=5)
    ts = next_timestamp(s, skewed)
    assert ts > s.last_move
    assert apply_roll(s, "a", 2, now=skewed).session.last_move > T0


# ── join / reset ─────────────────────────────────────────────────────

def test_second_player_join_starts_game():
    host = Player(id="h", name="Host")
    room = new_waiting_session(host, code="ROOM42")
    assert room.status == RoomStatus.WAITING
    assert room.current_turn is None

    result = join_session(room, Player(id="g", name="Guest"))
    assert result.ok
    assert result.player_id == "g"
    assert result.session.status == RoomStatus.PLAYING
    assert result.session.current_turn == "h"
    assert [p.id for p in result.session.players] == ["h", "g"]
    assert room.players == [host]


def test_join_rejects_started_or_full_rooms():
    playing = _playing()
    assert not join_session(playing, Player(id="c", name="Carol")).ok

    full_waiting = _playing()
    full_waiting.status = RoomStatus.WAITING
    result = join_session(full_waiting, Player(id="c", name="Carol"))
    assert not result.ok
    assert "full" in result.message


def test_reset_returns_everyone_to_start():
    finished = apply_roll(_playing(p1=94, p2=60), "a", 6).session
    fresh = reset_session(finished)
    assert fresh.positions == [0, 0]
    assert fresh.status == RoomStatus.PLAYING
    assert fresh.current_turn == "a"
    assert fresh.winner is None
    assert fresh.dice_value == 0


def test_local_session_defaults():
    s = new_local_session("", "Bea")
    assert [p.name for p in s.players] == ["Player 1", "Bea"]
    assert s.current_turn == "player-1"
    assert s.status == RoomStatus.PLAYING


# ── dice ─────────────────────────────────────────────────────────────

def test_dice_faces_are_roughly_uniform():
    rng = random.Random(1234)
    counts = {face: 0 for face in range(1, 7)}
    for _ in range(6000):
        counts[roll_die(rng)] += 1
    assert set(counts) == {1, 2, 3, 4, 5, 6}
    for count in counts.values():
        assert 850 < count < 1150


# ── whole games ──────────────────────────────────────────────────────

def test_games_terminate_with_one_winner_on_100():
    for seed in range(50):
        rng = random.Random(seed)
        s = new_local_session("A", "B")
        for _ in range(5000):
            if s.status == RoomStatus.FINISHED:
                break
            actor = s.current_turn
            result = apply_roll(s, actor, roll_die(rng))
            assert result.ok
            if not result.won:
                assert result.session.current_turn == s.opponent_of(actor).id
            s = result.session
        assert s.status == RoomStatus.FINISHED
        assert s.winner_player.position == 100
        assert s.opponent_of(s.winner).position < 100
        assert all(0 <= p <= 100 for p in s.positions)
