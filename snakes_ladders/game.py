"""Game runner: plays full two-player games with no animation or network."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Protocol

from snakes_ladders.session import Session
from snakes_ladders.turns import apply_roll, new_local_session, roll_die

logger = logging.getLogger(__name__)


# ── Structured types ────────────────────────────────────────────────

@dataclass
class LogEntry:
    """Record of a single roll during a game."""

    turn_number: int
    player: int
    player_id: str
    dice_value: int
    board_before: list[int]
    board_after: list[int]
    intermediate_position: int
    hit_snake: bool = False
    hit_ladder: bool = False
    is_void: bool = False
    is_winning_move: bool = False

    @property
    def outcome(self) -> str:
        if self.is_winning_move:
            return "win"
        if self.hit_snake:
            return "snake"
        if self.hit_ladder:
            return "ladder"
        if self.is_void:
            return "overshoot"
        return "normal"


@dataclass
class GameResult:
    winner: int | None  # 0 or 1, or None when max_turns ran out
    reason: str  # "win" | "max_turns" | "aborted"
    turns: int = 0
    snake_hits: int = 0
    ladder_hits: int = 0
    session: Session | None = None


# ── Observer ────────────────────────────────────────────────────────

class GameObserver(Protocol):
    """Receives structured events as a game is played."""

    def on_action(self, entry: LogEntry) -> None: ...


@dataclass
class ListObserver:
    """Default observer: collects entries into a list."""

    entries: list[LogEntry] = field(default_factory=list)

    def on_action(self, entry: LogEntry) -> None:
        self.entries.append(entry)


# ── Runner ───────────────────────────────────────────────────────────

class GameRunner:
    """Play one full game between two players, rolls drawn from *rng*."""

    def __init__(
        self,
        names: tuple[str, str] = ("Player 1", "Player 2"),
        rng: random.Random | None = None,
        max_turns: int = 1000,
        observer: GameObserver | None = None,
    ):
        assert len(names) == 2
        self.names = names
        self.rng = rng or random.Random()
        self.max_turns = max_turns
        self.observer = observer or ListObserver()
        self.session = new_local_session(*names)

    def play(self) -> GameResult:
        turn_number = 0
        snakes = ladders = 0

        while turn_number < self.max_turns:
            session = self.session
            actor_id = session.current_turn
            player_idx = session.index_of(actor_id)
            dice_value = roll_die(self.rng)

            result = apply_roll(session, actor_id, dice_value)
            if not result.ok:
                logger.error("game aborted after %d rolls: %s", turn_number, result.message)
                return GameResult(
                    winner=None, reason="aborted", turns=turn_number,
                    snake_hits=snakes, ladder_hits=ladders, session=self.session,
                )
            turn_number += 1
            self.session = result.session
            move = result.move
            snakes += move.hit_snake
            ladders += move.hit_ladder

            self.observer.on_action(LogEntry(
                turn_number=turn_number,
                player=player_idx,
                player_id=actor_id,
                dice_value=dice_value,
                board_before=session.positions,
                board_after=self.session.positions,
                intermediate_position=move.intermediate_position,
                hit_snake=move.hit_snake,
                hit_ladder=move.hit_ladder,
                is_void=move.is_void,
                is_winning_move=result.won,
            ))

            if result.won:
                return GameResult(
                    winner=player_idx, reason="win", turns=turn_number,
                    snake_hits=snakes, ladder_hits=ladders, session=self.session,
                )

        return GameResult(
            winner=None, reason="max_turns", turns=turn_number,
            snake_hits=snakes, ladder_hits=ladders, session=self.session,
        )
