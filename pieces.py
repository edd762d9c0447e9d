# pieces.py: puzzle inventory and tolerant piece payload parser
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from models import Cell, PieceDef


def _p(pid: str, color: str, cells: Iterable[Cell]) -> PieceDef:
    return PieceDef(pid, tuple(cells), color)


# The physical set: seven pentominoes and three tetrominoes (47 cells).
PUZZLE_PIECES: List[PieceDef] = [
    _p("A", "#2e7d32", [(0, 0), (0, 1), (0, 2), (1, 0), (1, 2)]),
    _p("B", "#1565c0", [(0, 0), (0, 1), (0, 2), (1, 1), (2, 1)]),
    _p("C", "#c62828", [(0, 0), (1, 0), (1, 1), (1, 2), (2, 2)]),
    _p("D", "#4a148c", [(0, 0), (1, 0), (1, 1), (2, 0), (2, 1)]),
    _p("E", "#ef6c00", [(0, 0), (1, 0), (2, 0), (2, 1), (2, 2)]),
    _p("F", "#00838f", [(0, 0), (1, 0), (2, 0), (2, 1), (3, 1)]),
    _p("G", "#ad1457", [(0, 0), (1, 0), (2, 0), (3, 0), (3, 1)]),
    _p("H", "#283593", [(0, 0), (0, 1), (1, 1), (1, 2)]),
    _p("I", "#5d4037", [(0, 0), (1, 0), (2, 0), (2, 1)]),
    _p("J", "#d81b60", [(0, 0), (1, 0), (2, 0), (3, 0)]),
]


def total_pieces_area(pieces: Iterable[PieceDef]) -> int:
    return sum(p.size for p in pieces)


def _to_int(x: Any) -> Optional[int]:
    if isinstance(x, bool):
        return None
    if isinstance(x, int):
        return x
    if isinstance(x, float) and x.is_integer():
        return int(x)
    if isinstance(x, str):
        try:
            return int(x.strip())
        except ValueError:
            return None
    return None


def _parse_cell(raw: Any) -> Optional[Cell]:
    if isinstance(raw, dict):
        r, c = _to_int(raw.get("row")), _to_int(raw.get("col"))
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        r, c = _to_int(raw[0]), _to_int(raw[1])
    else:
        return None
    if r is None or c is None:
        return None
    return (r, c)


def parse_pieces(payload: Any) -> Tuple[List[PieceDef], Optional[str]]:
    """
    Return (pieces, error_message_or_None).

    Accepts a list of ``{"id", "cells", "color"?}`` where each cell is either a
    ``{"row", "col"}`` mapping or a ``[row, col]`` pair.  ``None`` selects the
    default puzzle inventory.
    """
    if payload is None:
        return list(PUZZLE_PIECES), None
    if not isinstance(payload, (list, tuple)):
        return [], "pieces must be a list"
    if not payload:
        return [], "pieces list is empty"

    out: List[PieceDef] = []
    seen: set = set()
    for n, raw in enumerate(payload):
        if isinstance(raw, PieceDef):
            piece = raw
        else:
            if not isinstance(raw, dict):
                return [], f"piece #{n} is not an object"
            pid = str(raw.get("id") or "").strip()
            if not pid:
                return [], f"piece #{n} has no id"
            cells_raw = raw.get("cells")
            if not isinstance(cells_raw, (list, tuple)) or not cells_raw:
                return [], f"piece {pid} has no cells"
            cells: List[Cell] = []
            for cell_raw in cells_raw:
                cell = _parse_cell(cell_raw)
                if cell is None:
                    return [], f"piece {pid} has a malformed cell: {cell_raw!r}"
                cells.append(cell)
            if len(set(cells)) != len(cells):
                return [], f"piece {pid} repeats a cell"
            piece = PieceDef(pid, tuple(cells), raw.get("color"))
        if piece.id in seen:
            return [], f"duplicate piece id {piece.id}"
        seen.add(piece.id)
        out.append(piece)
    return out, None


def pieces_to_json(pieces: Iterable[PieceDef]) -> List[Dict[str, Any]]:
    return [p.to_json() for p in pieces]
