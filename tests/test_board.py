"""Tests for snakes_ladders.board (topology and move resolution)."""

import pytest

from snakes_ladders.board import (
    FINAL_CELL,
    LADDERS,
    SNAKES,
    GridPosition,
    MoveResult,
    build_board_layout,
    cell_to_grid_position,
    compute_move,
    compute_path,
    grid_position_to_cell,
    is_ladder,
    is_snake,
    shortcut_dest,
)


# ── tables ───────────────────────────────────────────────────────────

def test_has_9_ladders_and_10_snakes():
    assert len(LADDERS) == 9
    assert len(SNAKES) == 10


def test_snakes_go_down_and_ladders_go_up():
    for origin, dest in SNAKES.items():
        assert dest < origin
    for origin, dest in LADDERS.items():
        assert dest > origin


def test_origins_are_disjoint_and_on_board():
    assert not set(SNAKES) & set(LADDERS)
    for table in (SNAKES, LADDERS):
        for origin, dest in table.items():
            assert 1 <= origin <= 100
            assert 1 <= dest <= 100


def test_tables_are_read_only():
    with pytest.raises(TypeError):
        SNAKES[50] = 1  # type: ignore[index]


def test_lookups():
    assert is_snake(16) is True
    assert is_snake(1) is False
    assert is_ladder(28) is True
    assert is_ladder(98) is False
    assert shortcut_dest(98) == 78
    assert shortcut_dest(80) == 100
    assert shortcut_dest(50) is None


# ── grid ─────────────────────────────────────────────────────────────

def test_bottom_rows_are_boustrophedon():
    assert cell_to_grid_position(1) == GridPosition(row=0, col=0)
    assert cell_to_grid_position(10) == GridPosition(row=0, col=9)
    assert cell_to_grid_position(11) == GridPosition(row=1, col=9)
    assert cell_to_grid_position(20) == GridPosition(row=1, col=0)
    assert cell_to_grid_position(100) == GridPosition(row=9, col=0)


def test_layout_shape_and_corners():
    layout = build_board_layout()
    assert len(layout) == 10
    assert all(len(row) == 10 for row in layout)
    assert layout[0] == list(range(100, 90, -1))
    assert layout[8] == list(range(20, 10, -1))
    assert layout[9] == list(range(1, 11))


def test_layout_covers_every_cell_once():
    cells = [cell for row in build_board_layout() for cell in row]
    assert sorted(cells) == list(range(1, 101))


def test_layout_and_grid_position_are_inverse():
    for visual_row, row in enumerate(build_board_layout()):
        for col, cell in enumerate(row):
            pos = cell_to_grid_position(cell)
            assert pos == GridPosition(row=9 - visual_row, col=col)
            assert grid_position_to_cell(pos.row, pos.col) == cell


# ── compute_move ─────────────────────────────────────────────────────

def test_exact_landing_on_100_wins():
    move = compute_move(94, 6)
    assert move == MoveResult(final_position=100, intermediate_position=100)
    assert move.is_win
    assert not move.is_void


def test_landing_on_snake():
    move = compute_move(10, 6)
    assert move.final_position == 6
    assert move.intermediate_position == 16
    assert move.hit_snake is True
    assert move.hit_ladder is False


def test_first_roll_of_one_climbs_ladder():
    move = compute_move(0, 1)
    assert move.final_position == 38
    assert move.intermediate_position == 1
    assert move.hit_ladder is True
    assert move.hit_snake is False


def test_ladder_to_100_is_a_win():
    move = compute_move(77, 3)
    assert move.intermediate_position == 80
    assert move.final_position == FINAL_CELL
    assert move.is_win


def test_plain_move():
    move = compute_move(40, 2)
    assert move == MoveResult(final_position=42, intermediate_position=42)


def test_overshoot_voids_the_move():
    for start in range(95, 101):
        for dice in range(1, 7):
            if start + dice <= 100:
                continue
            move = compute_move(start, dice)
            assert move.final_position == start
            assert move.intermediate_position == start
            assert not move.hit_snake and not move.hit_ladder
            assert move.is_void


@pytest.mark.parametrize("dice", [0, 7, -1])
def test_bad_dice_value_raises(dice):
    with pytest.raises(ValueError):
        compute_move(10, dice)


def test_bad_position_raises():
    with pytest.raises(ValueError):
        compute_move(101, 1)


# ── compute_path ─────────────────────────────────────────────────────

def test_path_from_start():
    assert compute_path(0, compute_move(0, 3)) == [1, 2, 3]


def test_path_stops_at_snake_head():
    assert compute_path(10, compute_move(10, 6)) == [11, 12, 13, 14, 15, 16]


def test_void_move_has_no_path():
    assert compute_path(97, compute_move(97, 5)) == []
