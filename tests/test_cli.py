"""Tests for the command-line entry point."""

import json
import sys
from dataclasses import replace

import pytest

import snakes_ladders.__main__ as cli
from snakes_ladders.turns import new_local_session


@pytest.fixture
def results(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "RESULTS_DIR", tmp_path)
    monkeypatch.setattr(cli, "DB_PATH", tmp_path / "simulations.db")
    return tmp_path


def _main(monkeypatch, *argv: str) -> None:
    monkeypatch.setattr(sys, "argv", ["snakes_ladders", *argv])
    cli.main()


# ── board rendering ──────────────────────────────────────────────────

def test_render_board_marks_shortcuts_and_pawns():
    session = new_local_session("Ana", "Ben")
    players = [replace(session.players[0], position=100), session.players[1]]
    text = cli.render_board(replace(session, players=players))
    lines = text.splitlines()

    assert len(lines) == 11
    assert "🔴" in lines[0]
    assert "100" not in lines[0]
    assert lines[0].split()[1] == "99"
    assert "98v" in lines[0]
    assert "1^" in lines[9]
    assert lines[10] == "  start: 🔵"


def test_render_board_no_start_line_when_everyone_moved():
    session = new_local_session()
    players = [replace(p, position=5) for p in session.players]
    text = cli.render_board(replace(session, players=players))
    assert "🔴🔵" in text
    assert "start:" not in text


# ── simulate / stats / chart / export ────────────────────────────────

def test_simulate_then_stats(results, monkeypatch, capsys):
    _main(monkeypatch, "simulate", "--games", "5", "--seed", "10")
    out = capsys.readouterr().out
    assert out.count("win →") == 5

    _main(monkeypatch, "stats")
    out = capsys.readouterr().out
    assert "Simulation summary" in out
    assert "games" in out
    assert "       5" in out


def test_stats_without_db_exits(results, monkeypatch, capsys):
    with pytest.raises(SystemExit) as exc:
        _main(monkeypatch, "stats")
    assert exc.value.code == 1
    assert "No database found" in capsys.readouterr().err


def test_chart_and_export(results, monkeypatch, capsys):
    _main(monkeypatch, "simulate", "--games", "3", "--seed", "1")
    capsys.readouterr()

    png = results / "lengths.png"
    _main(monkeypatch, "chart", "-o", str(png))
    assert png.exists()

    out_dir = results / "export"
    _main(monkeypatch, "export", "-o", str(out_dir))
    assert "Wrote 4 files" in capsys.readouterr().out
    assert len(json.loads((out_dir / "games.json").read_text())) == 3


def test_no_command_prints_help(monkeypatch, capsys):
    _main(monkeypatch)
    assert "usage:" in capsys.readouterr().out


# ── play / join ──────────────────────────────────────────────────────

def test_local_play_until_someone_wins(monkeypatch, capsys):
    def fake_input(prompt=""):
        return "n" if prompt.startswith("Play again") else ""

    monkeypatch.setattr("builtins.input", fake_input)
    _main(monkeypatch, "play", "--player1", "Ana", "--player2", "Ben", "--speed", "0", "--seed", "3")
    out = capsys.readouterr().out
    assert "wins!" in out
    assert "Rolled" in out


def test_local_play_quit(monkeypatch, capsys):
    monkeypatch.setattr("builtins.input", lambda prompt="": "q")
    _main(monkeypatch, "play", "--speed", "0")
    assert "Player 1" in capsys.readouterr().out


def test_join_unknown_room_fails(tmp_path, monkeypatch, capsys):
    with pytest.raises(SystemExit) as exc:
        _main(monkeypatch, "join", "NOPE00", "--name", "Ben", "--db", str(tmp_path / "rooms.db"))
    assert exc.value.code == 1
    assert "Room not found" in capsys.readouterr().err
