"""SQLite persistence for simulated game results."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from snakes_ladders.game import GameResult, LogEntry


@dataclass
class Summary:
    games: int
    wins_first: int
    wins_second: int
    unfinished: int
    avg_turns: float
    min_turns: int
    max_turns: int
    snake_hits: int
    ladder_hits: int


class ResultsDB:
    """Thin wrapper around a SQLite database for game outcomes."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS games (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                player_a    TEXT NOT NULL,
                player_b    TEXT NOT NULL,
                winner      TEXT,
                reason      TEXT NOT NULL,
                turns       INTEGER NOT NULL,
                snake_hits  INTEGER NOT NULL DEFAULT 0,
                ladder_hits INTEGER NOT NULL DEFAULT 0,
                seed        INTEGER,
                created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            CREATE TABLE IF NOT EXISTS turns (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                game_id         INTEGER NOT NULL REFERENCES games(id),
                turn_number     INTEGER NOT NULL,
                player_idx      INTEGER NOT NULL,
                start_position  INTEGER NOT NULL,
                end_position    INTEGER NOT NULL,
                landing         INTEGER NOT NULL,
                dice_value      INTEGER NOT NULL,
                outcome         TEXT NOT NULL,
                UNIQUE(game_id, turn_number)
            );
        """)
        self._conn.commit()

    def record_game(
        self,
        player_a: str,
        player_b: str,
        winner: str | None,
        reason: str,
        turns: int,
        snake_hits: int = 0,
        ladder_hits: int = 0,
        seed: int | None = None,
    ) -> int:
        """Record a completed game. Returns the game row id."""
        cur = self._conn.execute(
            "INSERT INTO games (player_a, player_b, winner, reason, turns, "
            "snake_hits, ladder_hits, seed) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (player_a, player_b, winner, reason, turns, snake_hits, ladder_hits, seed),
        )
        self._conn.commit()
        return cur.lastrowid  # type: ignore[return-value]

    def record_turn(
        self,
        game_id: int,
        turn_number: int,
        player_idx: int,
        start_position: int,
        end_position: int,
        landing: int,
        dice_value: int,
        outcome: str,
        commit: bool = True,
    ) -> int:
        """Record a single roll."""
        cur = self._conn.execute(
            "INSERT INTO turns (game_id, turn_number, player_idx, start_position, "
            "end_position, landing, dice_value, outcome) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (game_id, turn_number, player_idx, start_position, end_position,
             landing, dice_value, outcome),
        )
        if commit:
            self._conn.commit()
        return cur.lastrowid  # type: ignore[return-value]

    def game_lengths(self) -> list[int]:
        """Turn counts of every game that ended in a win."""
        rows = self._conn.execute(
            "SELECT turns FROM games WHERE reason = 'win' ORDER BY id"
        ).fetchall()
        return [r[0] for r in rows]

    def summary(self) -> Summary | None:
        row = self._conn.execute(
            "SELECT COUNT(*), "
            "SUM(winner = player_a), SUM(winner = player_b), SUM(winner IS NULL), "
            "AVG(turns), MIN(turns), MAX(turns), SUM(snake_hits), SUM(ladder_hits) "
            "FROM games"
        ).fetchone()
        if not row or not row[0]:
            return None
        return Summary(
            games=row[0],
            wins_first=row[1] or 0,
            wins_second=row[2] or 0,
            unfinished=row[3] or 0,
            avg_turns=float(row[4]),
            min_turns=row[5],
            max_turns=row[6],
            snake_hits=row[7] or 0,
            ladder_hits=row[8] or 0,
        )

    def commit(self) -> None:
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


# ── Game log persistence ─────────────────────────────────────────────

def persist_game(
    db: ResultsDB,
    names: tuple[str, str],
    result: GameResult,
    entries: list[LogEntry],
    seed: int | None = None,
) -> int:
    """Write one game and its roll log. Returns the game id."""
    if result.winner is None:
        winner_name = None
    else:
        winner_name = names[result.winner]

    game_id = db.record_game(
        player_a=names[0],
        player_b=names[1],
        winner=winner_name,
        reason=result.reason,
        turns=result.turns,
        snake_hits=result.snake_hits,
        ladder_hits=result.ladder_hits,
        seed=seed,
    )
    for entry in entries:
        db.record_turn(
            game_id=game_id,
            turn_number=entry.turn_number,
            player_idx=entry.player,
            start_position=entry.board_before[entry.player],
            end_position=entry.board_after[entry.player],
            landing=entry.intermediate_position,
            dice_value=entry.dice_value,
            outcome=entry.outcome,
            commit=False,
        )
    db.commit()
    return game_id
