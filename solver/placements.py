# solver/placements.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Set

from models import Cell, PieceDef, Placement, mask_from_indexes
from solver.orientations import generate_orientations


@dataclass
class PlacementIndex:
    placements_by_cell: Dict[int, List[Placement]]
    piece_ids: List[str]

    def all_placements(self) -> List[Placement]:
        """Every placement once, in build order."""
        seen: Set[int] = set()
        out: List[Placement] = []
        for idx in sorted(self.placements_by_cell):
            for p in self.placements_by_cell[idx]:
                if id(p) not in seen:
                    seen.add(id(p))
                    out.append(p)
        return out

    def count(self) -> int:
        return len(self.all_placements())


def build_placement_index(
    pieces: Iterable[PieceDef],
    board_cols: int,
    board_rows: int,
    blocked_indexes: Set[int],
    cell_index_by_coord: Mapping[Cell, int],
) -> PlacementIndex:
    """
    Slide every orientation of every piece over the board and index each legal
    placement under every cell it covers.

    A placement is legal only when all of its cells land on board cells that
    are not blocked; partially fitting placements are dropped whole.
    """
    pieces = list(pieces)
    placements_by_cell: Dict[int, List[Placement]] = {
        i: [] for i in range(board_cols * board_rows)
    }

    for piece in pieces:
        for orientation in generate_orientations(piece.cells):
            max_row_offset = board_rows - orientation.height
            max_col_offset = board_cols - orientation.width
            for row_offset in range(max_row_offset + 1):
                for col_offset in range(max_col_offset + 1):
                    cell_indexes: List[int] = []
                    for r, c in orientation.cells:
                        idx = cell_index_by_coord.get((r + row_offset, c + col_offset))
                        if idx is None or idx in blocked_indexes:
                            break
                        cell_indexes.append(idx)
                    else:
                        placement = Placement(
                            piece_id=piece.id,
                            cell_indexes=tuple(cell_indexes),
                            mask=mask_from_indexes(cell_indexes),
                            orientation_key=orientation.key,
                            offset=(row_offset, col_offset),
                        )
                        for idx in cell_indexes:
                            placements_by_cell.setdefault(idx, []).append(placement)

    return PlacementIndex(placements_by_cell, [p.id for p in pieces])


def build_index_for_board(pieces: Iterable[PieceDef], board) -> PlacementIndex:
    return build_placement_index(
        pieces,
        board_cols=board.cols,
        board_rows=board.rows,
        blocked_indexes=board.blocked_indexes,
        cell_index_by_coord=board.index_by_coord,
    )


__all__ = ["PlacementIndex", "build_placement_index", "build_index_for_board"]
