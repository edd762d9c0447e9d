from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

Cell = Tuple[int, int]  # (row, col)


def normalize_cells(cells: Iterable[Cell]) -> Tuple[Cell, ...]:
    """Shift ``cells`` so the bounding box touches (0, 0) and sort row-major."""
    pts = [(int(r), int(c)) for r, c in cells]
    if not pts:
        return ()
    min_row = min(r for r, _ in pts)
    min_col = min(c for _, c in pts)
    return tuple(sorted((r - min_row, c - min_col) for r, c in pts))


def mask_from_indexes(indexes: Iterable[int]) -> int:
    mask = 0
    for idx in indexes:
        mask |= 1 << idx
    return mask


def popcount(mask: int) -> int:
    return bin(mask).count("1")


@dataclass(frozen=True)
class PieceDef:
    id: str
    cells: Tuple[Cell, ...]
    color: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "cells", normalize_cells(self.cells))

    @property
    def size(self) -> int:
        return len(self.cells)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "color": self.color,
            "cells": [{"row": r, "col": c} for r, c in self.cells],
        }


@dataclass(frozen=True)
class Orientation:
    key: str
    cells: Tuple[Cell, ...]
    width: int
    height: int


@dataclass(frozen=True)
class Placement:
    piece_id: str
    cell_indexes: Tuple[int, ...]
    mask: int
    orientation_key: str
    offset: Cell

    def to_ui(self) -> Dict[str, Any]:
        return {"piece_id": self.piece_id, "cell_indexes": list(self.cell_indexes)}


def placements_to_ui(placements: Iterable[Placement]) -> List[Dict[str, Any]]:
    return [p.to_ui() for p in placements]


# ---------- errors ----------

class SolverError(Exception):
    """Terminal failure of one query; reported to the host as an ``error`` message."""


class InputError(SolverError, ValueError):
    """Malformed query input (date, cell id, pieces, limits)."""


class AreaMismatchError(SolverError):
    """Total piece area differs from the number of cells left to cover."""


class InvariantViolation(SolverError):
    """A full cover was reached with pieces still unused."""
