import datetime as dt

import pytest

from board import (
    BOARD,
    BOARD_COLS,
    BOARD_ROWS,
    Board,
    BoardCell,
    describe_date,
    parse_date,
    target_mask_for_date,
    visible_cells_for_date,
)
from models import InputError, popcount
from pieces import PUZZLE_PIECES, total_pieces_area


def test_calendar_board_geometry():
    assert len(BOARD.cells) == BOARD_COLS * BOARD_ROWS == 56
    blocked = sorted((BOARD.cells[i].row, BOARD.cells[i].col) for i in BOARD.blocked_indexes)
    assert blocked == [(0, 6), (1, 6), (7, 0), (7, 1), (7, 2), (7, 3)]
    assert BOARD.coverable_count == 50
    assert popcount(BOARD.mask) == 50
    for idx, cell in enumerate(BOARD.cells):
        assert idx == cell.row * BOARD_COLS + cell.col
        assert BOARD.index_by_coord[(cell.row, cell.col)] == idx
        assert BOARD.index_by_id[cell.id] == idx


def test_board_labels():
    assert BOARD.label_for_id("r0c0") == "Jan"
    assert BOARD.label_for_id("r1c5") == "Dec"
    assert BOARD.label_for_id("r2c0") == "1"
    assert BOARD.label_for_id("r5c6") == "28"
    assert BOARD.label_for_id("r6c2") == "31"
    assert BOARD.label_for_id("r6c3") == "Sun"
    assert BOARD.label_for_id("r7c6") == "Sat"
    assert BOARD.label_for_id("nope") == "nope"


def test_visible_cells_for_sunday():
    # 2026-10-18 is a Sunday
    visible = visible_cells_for_date(dt.date(2026, 10, 18))
    assert visible == ("r1c3", "r4c3", "r6c3")


def test_visible_cells_for_saturday_end_of_month():
    visible = visible_cells_for_date(dt.date(2026, 5, 30))
    assert visible.month_id == "r0c4"
    assert visible.day_id == "r6c1"
    assert visible.weekday_id == "r7c6"


def test_target_mask_leaves_room_for_inventory():
    mask = target_mask_for_date(dt.date(2026, 2, 1))
    assert popcount(mask) == 47 == total_pieces_area(PUZZLE_PIECES)
    assert mask & ~BOARD.mask == 0


def test_mask_from_ids_rejects_unknown_cells():
    assert BOARD.mask_from_ids(["r0c0", "r0c1"]) == 0b11
    with pytest.raises(InputError, match="Unknown cell id zz"):
        BOARD.mask_from_ids(["zz"])


def test_parse_date_accepts_common_shapes():
    d = dt.date(2026, 10, 18)
    assert parse_date(d) == d
    assert parse_date(dt.datetime(2026, 10, 18, 8, 30)) == d
    assert parse_date("2026-10-18") == d
    assert parse_date("2026-10-18T09:00:00") == d
    noon_ms = dt.datetime(2026, 10, 18, 12, 0).timestamp() * 1000
    assert parse_date(noon_ms) == d
    assert parse_date(int(noon_ms)) == d


@pytest.mark.parametrize("raw", ["", "18/10/2026", "tomorrow", None, True, [2026, 10, 18]])
def test_parse_date_rejects_garbage(raw):
    with pytest.raises(InputError, match="Unparseable date"):
        parse_date(raw)


def test_unlabelled_board_cannot_map_dates():
    with pytest.raises(InputError, match="out of supported range"):
        visible_cells_for_date(dt.date(2026, 1, 1), Board.rectangular(3, 3))


def test_rectangular_board_blocked_cells():
    board = Board.rectangular(3, 2, blocked=[(1, 0)])
    assert board.blocked_indexes == {3}
    assert board.mask == 0b110111
    assert board.coverable_count == 5


def test_describe_date_lists_visible_labels():
    d = dt.date(2026, 10, 18)
    line = describe_date(d, visible_cells_for_date(d))
    assert line.endswith("| Visible: Oct, 18, Sun")


def test_board_cell_json():
    cell = BoardCell("r0c0", 0, 0, "month", "Jan")
    assert cell.to_json() == {
        "id": "r0c0", "row": 0, "col": 0, "role": "month", "label": "Jan", "blocked": False,
    }
