"""Tests for the SQLite room store and its gateway."""

import asyncio
import sqlite3

import pytest

from snakes_ladders.session import Player, RoomStatus
from snakes_ladders.store import SessionStore, SqliteGateway, _PushGateway
from snakes_ladders.sync import GatewayError, SyncEngine, wait_for
from snakes_ladders.turns import new_waiting_session


@pytest.fixture
def store(tmp_path):
    s = SessionStore(tmp_path / "rooms.db")
    yield s
    s.close()


def _run(coro):
    return asyncio.run(asyncio.wait_for(coro, timeout=5))


# ── SessionStore ─────────────────────────────────────────────────────

def test_insert_and_get_round_trip(store):
    session = new_waiting_session(Player(id="host", name="Ana"), code="ABC123")
    store.insert(session)
    loaded = store.get("ABC123")
    assert loaded.id == session.id
    assert loaded.players[0].name == "Ana"
    assert loaded.status == RoomStatus.WAITING
    assert loaded.last_move == session.last_move
    assert store.list_codes() == ["ABC123"]


def test_get_missing_returns_none(store):
    assert store.get("NOPE00") is None


def test_insert_rejects_duplicate_code(store):
    store.insert(new_waiting_session(Player(id="a", name="A"), code="DUPDUP"))
    with pytest.raises(sqlite3.IntegrityError):
        store.insert(new_waiting_session(Player(id="b", name="B"), code="DUPDUP"))


def test_put_overwrites_whole_record(store):
    session = new_waiting_session(Player(id="host", name="Ana"), code="ROOM01")
    store.insert(session)
    session.players[0].position = 42
    session.dice_value = 5
    assert store.put(session)
    loaded = store.get("ROOM01")
    assert loaded.players[0].position == 42
    assert loaded.dice_value == 5


def test_put_missing_room_returns_false(store):
    session = new_waiting_session(Player(id="host", name="Ana"), code="GHOST1")
    assert not store.put(session)


# ── SqliteGateway ────────────────────────────────────────────────────

def test_create_and_join_room(store):
    async def scenario():
        gw = SqliteGateway(store)
        session, host_id = await gw.create_room("  Ana  ")
        assert session.players[0].name == "Ana"
        assert session.players[0].id == host_id

        joined = await gw.join_room(f" {session.code.lower()} ", "")
        assert joined.ok
        loaded = await gw.fetch_session(session.code)
        assert loaded.status == RoomStatus.PLAYING
        assert loaded.current_turn == host_id
        assert [p.name for p in loaded.players] == ["Ana", "Player 2"]

    _run(scenario())


def test_write_to_unknown_room_fails(store):
    async def scenario():
        gw = SqliteGateway(store)
        ghost = new_waiting_session(Player(id="h", name="H"), code="GHOST1")
        result = await gw.write_session("GHOST1", ghost)
        assert not result.ok
        mismatch = await gw.write_session("OTHER1", ghost)
        assert not mismatch.ok

    _run(scenario())


def test_database_errors_become_gateway_errors(store):
    async def scenario():
        gw = SqliteGateway(store)
        store.close()
        with pytest.raises(GatewayError):
            await gw.fetch_session("ABC123")

    _run(scenario())


def test_two_processes_sync_through_shared_file(tmp_path):
    """Separate stores on one file: no push between them, polling carries moves."""

    class Dice:
        def randint(self, a, b):
            return 4

    async def scenario():
        store_a = SessionStore(tmp_path / "rooms.db")
        store_b = SessionStore(tmp_path / "rooms.db")
        gw_a, gw_b = SqliteGateway(store_a), SqliteGateway(store_b)
        try:
            session, host_id = await gw_a.create_room("Ana")
            joined = await gw_b.join_room(session.code, "Ben")

            async with SyncEngine(gw_a, session.code, host_id, rng=Dice(),
                                  poll_interval=0.02, settle_delay=0.01) as a, \
                    SyncEngine(gw_b, session.code, joined.player_id,
                               poll_interval=0.02, settle_delay=0.01) as b:
                assert (await a.roll_dice()).ok
                await wait_for(b, lambda e: e.session.players[0].position == 4, poll=0.01)
                assert b.is_my_turn
        finally:
            store_a.close()
            store_b.close()

    _run(scenario())


def test_gateway_storage_hooks_are_abstract():
    class HalfGateway(_PushGateway):
        async def _get(self, code):
            return None

    with pytest.raises(TypeError):
        _PushGateway()
    with pytest.raises(TypeError):
        HalfGateway()
