# solver/orientations.py
from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from models import Cell, Orientation, normalize_cells


def _serialize(cells: Sequence[Cell]) -> str:
    return ";".join(f"{r},{c}" for r, c in cells)


def rotate90(cells: Iterable[Cell]) -> List[Cell]:
    return [(c, -r) for r, c in cells]


def flip_x(cells: Iterable[Cell]) -> List[Cell]:
    return [(r, -c) for r, c in cells]


def to_orientation(cells: Iterable[Cell]) -> Orientation:
    normalized = normalize_cells(cells)
    width = max(c for _, c in normalized) + 1
    height = max(r for r, _ in normalized) + 1
    return Orientation(_serialize(normalized), normalized, width, height)


def generate_orientations(cells: Iterable[Cell]) -> List[Orientation]:
    """Distinct rotations/reflections of a shape, identity first.

    Both reflection states are walked through the four quarter turns; shapes
    that normalize to the same cell list collapse to one entry, so symmetric
    pieces yield fewer than eight orientations.
    """
    base = [(int(r), int(c)) for r, c in cells]
    variants: Dict[str, Orientation] = {}
    for do_flip in (False, True):
        current = flip_x(base) if do_flip else base
        for _ in range(4):
            orientation = to_orientation(current)
            variants.setdefault(orientation.key, orientation)
            current = rotate90(current)
    return list(variants.values())


__all__ = ["generate_orientations", "to_orientation", "rotate90", "flip_x"]
