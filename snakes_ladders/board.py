"""Board topology and movement rules for Snakes & Ladders."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

BOARD_SIZE = 10
FINAL_CELL = BOARD_SIZE * BOARD_SIZE
START_CELL = 0  # not yet on the board

# fmt: off
SNAKES: Mapping[int, int] = MappingProxyType({
    16:  6,  47: 26,  49: 11,  56: 53,  62: 19,
    64: 60,  87: 24,  93: 73,  95: 75,  98: 78,
})

LADDERS: Mapping[int, int] = MappingProxyType({
     1: 38,   4: 14,   9: 31,  21: 42,  28: 84,
    36: 44,  51: 67,  71: 91,  80: 100,
})
# fmt: on

SNAKE_CELLS = frozenset(SNAKES)
LADDER_CELLS = frozenset(LADDERS)


def is_snake(cell: int) -> bool:
    return cell in SNAKES


def is_ladder(cell: int) -> bool:
    return cell in LADDERS


def shortcut_dest(cell: int) -> int | None:
    """Destination of the snake or ladder starting on *cell*, if any."""
    if cell in SNAKES:
        return SNAKES[cell]
    return LADDERS.get(cell)


# ── Grid projection ──────────────────────────────────────────────────

@dataclass(frozen=True)
class GridPosition:
    """Row/column of a cell. Row 0 is the bottom row (cells 1–10)."""

    row: int
    col: int


def cell_to_grid_position(cell: int) -> GridPosition:
    """Project a cell number (1–100) onto the boustrophedon grid.

    Even rows run left→right, odd rows right→left.
    """
    zero_indexed = cell - 1
    row = zero_indexed // BOARD_SIZE
    col_in_row = zero_indexed % BOARD_SIZE
    col = col_in_row if row % 2 == 0 else BOARD_SIZE - 1 - col_in_row
    return GridPosition(row=row, col=col)


def grid_position_to_cell(row: int, col: int) -> int:
    """Inverse of :func:`cell_to_grid_position`."""
    col_in_row = col if row % 2 == 0 else BOARD_SIZE - 1 - col
    return row * BOARD_SIZE + col_in_row + 1


def build_board_layout() -> list[list[int]]:
    """Cell numbers arranged for top-to-bottom, left-to-right rendering.

    Output row 0 is board row 9 (cells 91–100); output row 9 is cells 1–10.
    """
    return [
        [grid_position_to_cell(board_row, col) for col in range(BOARD_SIZE)]
        for board_row in reversed(range(BOARD_SIZE))
    ]


# ── Move resolution ──────────────────────────────────────────────────

@dataclass(frozen=True)
class MoveResult:
    """What happened after a roll."""

    final_position: int
    intermediate_position: int
    hit_snake: bool = False
    hit_ladder: bool = False
    overshoot: bool = False  # roll went past 100, pawn stays put

    @property
    def is_win(self) -> bool:
        return self.final_position == FINAL_CELL

    @property
    def is_void(self) -> bool:
        return self.overshoot


def compute_move(current_position: int, dice_value: int) -> MoveResult:
    """Compute the outcome of rolling *dice_value* from *current_position*.

    Exact landing on 100 is required: an overshoot voids the move. At most
    one snake or ladder is applied. Does NOT mutate anything; callers
    decide how to commit the result.
    """
    if not 1 <= dice_value <= 6:
        raise ValueError(f"dice value must be 1–6, got {dice_value}")
    if not START_CELL <= current_position <= FINAL_CELL:
        raise ValueError(f"position must be 0–100, got {current_position}")

    landing = current_position + dice_value

    # Overshoot → stay put
    if landing > FINAL_CELL:
        return MoveResult(
            final_position=current_position,
            intermediate_position=current_position,
            overshoot=True,
        )

    if landing in SNAKES:
        return MoveResult(
            final_position=SNAKES[landing],
            intermediate_position=landing,
            hit_snake=True,
        )
    if landing in LADDERS:
        return MoveResult(
            final_position=LADDERS[landing],
            intermediate_position=landing,
            hit_ladder=True,
        )
    return MoveResult(final_position=landing, intermediate_position=landing)


def compute_path(start: int, move: MoveResult) -> list[int]:
    """Cells visited one at a time on the way to the landing cell.

    Empty for a void move; never includes the snake/ladder destination.
    """
    if move.is_void:
        return []
    return list(range(start + 1, move.intermediate_position + 1))
