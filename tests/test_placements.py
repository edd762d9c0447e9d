from board import BOARD, Board
from models import PieceDef, popcount
from pieces import PUZZLE_PIECES
from solver.placements import build_index_for_board, build_placement_index


def test_monomino_on_open_board_places_everywhere():
    board = Board.rectangular(2, 2)
    index = build_index_for_board([PieceDef("M", ((0, 0),))], board)
    assert index.piece_ids == ["M"]
    assert index.count() == 4
    for idx in range(4):
        [placement] = index.placements_by_cell[idx]
        assert placement.cell_indexes == (idx,)
        assert placement.mask == 1 << idx


def test_blocked_cells_reject_whole_placement():
    # 3x3 with the centre blocked: a straight tromino only fits along the rim
    board = Board.rectangular(3, 3, blocked=[(1, 1)])
    index = build_index_for_board([PieceDef("I", ((0, 0), (0, 1), (0, 2)))], board)
    cells = sorted(p.cell_indexes for p in index.all_placements())
    assert cells == [(0, 1, 2), (0, 3, 6), (2, 5, 8), (6, 7, 8)]
    assert index.placements_by_cell[4] == []


def test_explicit_builder_signature_matches_board_helper():
    board = Board.rectangular(3, 2)
    piece = PieceDef("L", ((0, 0), (1, 0), (1, 1)))
    direct = build_placement_index(
        [piece],
        board_cols=3,
        board_rows=2,
        blocked_indexes=set(),
        cell_index_by_coord=board.index_by_coord,
    )
    via_board = build_index_for_board([piece], board)
    assert [p.cell_indexes for p in direct.all_placements()] == [
        p.cell_indexes for p in via_board.all_placements()
    ]


def test_calendar_placements_are_legal_and_complete():
    index = build_index_for_board(PUZZLE_PIECES, BOARD)
    sizes = {p.id: p.size for p in PUZZLE_PIECES}
    placements = index.all_placements()
    assert placements
    for p in placements:
        assert len(p.cell_indexes) == sizes[p.piece_id]
        assert len(set(p.cell_indexes)) == len(p.cell_indexes)
        for idx in p.cell_indexes:
            assert 0 <= idx < len(BOARD.cells)
            assert idx not in BOARD.blocked_indexes
            assert p in index.placements_by_cell[idx]
        assert popcount(p.mask) == len(p.cell_indexes)
        assert p.mask & ~BOARD.mask == 0
    assert index.piece_ids == [p.id for p in PUZZLE_PIECES]


def test_blocked_cells_have_no_placements():
    index = build_index_for_board(PUZZLE_PIECES, BOARD)
    for idx in BOARD.blocked_indexes:
        assert index.placements_by_cell[idx] == []


def test_placements_record_orientation_and_offset():
    board = Board.rectangular(4, 1)
    index = build_index_for_board([PieceDef("D", ((0, 0), (0, 1)))], board)
    offsets = [p.offset for p in index.all_placements()]
    assert offsets == [(0, 0), (0, 1), (0, 2)]
    assert {p.orientation_key for p in index.all_placements()} == {"0,0;0,1"}
