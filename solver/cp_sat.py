# solver/cp_sat.py
from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from ortools.sat.python import cp_model as _cp

from config import CFG
from models import Placement
from solver.placements import PlacementIndex


def _fitting_placements(target_mask: int, index: PlacementIndex) -> List[Placement]:
    return [p for p in index.all_placements() if (p.mask & target_mask) == p.mask]


def solve_with_cp_sat(
    target_mask: int,
    index: PlacementIndex,
    max_seconds: Optional[float] = None,
) -> Tuple[bool, List[Placement], Optional[str], int]:
    """
    Returns (ok, placements, reason, branches).

    One Boolean per placement that fits inside ``target_mask``; every target
    cell is covered exactly once and every piece is used exactly once.
    Placements come back in piece order.
    """
    if max_seconds is None:
        max_seconds = float(getattr(CFG, "CP_SAT_MAX_SECONDS", 60.0))

    options = _fitting_placements(target_mask, index)

    m = _cp.CpModel()
    x = [m.NewBoolVar(f"x_{k}") for k in range(len(options))]

    by_piece: Dict[str, List[int]] = defaultdict(list)
    by_cell: Dict[int, List[int]] = defaultdict(list)
    for k, p in enumerate(options):
        by_piece[p.piece_id].append(k)
        for idx in p.cell_indexes:
            by_cell[idx].append(k)

    for pid in index.piece_ids:
        ks = by_piece.get(pid)
        if not ks:
            return False, [], "Proven infeasible under current constraints", 0
        m.AddExactlyOne(x[k] for k in ks)

    remaining = target_mask
    while remaining:
        idx = (remaining & -remaining).bit_length() - 1
        remaining &= remaining - 1
        ks = by_cell.get(idx)
        if not ks:
            return False, [], "Proven infeasible under current constraints", 0
        m.AddExactlyOne(x[k] for k in ks)

    solver = _cp.CpSolver()
    solver.parameters.max_time_in_seconds = float(max_seconds)
    solver.parameters.max_memory_in_mb = int(getattr(CFG, "MAX_MEMORY_MB", 2048))
    solver.parameters.num_workers = int(getattr(CFG, "WORKERS", 1))
    solver.parameters.log_search_progress = False

    res = solver.Solve(m)
    branches = int(solver.NumBranches())

    if res in (_cp.OPTIMAL, _cp.FEASIBLE):
        chosen = [p for k, p in enumerate(options) if solver.BooleanValue(x[k])]
        order = {pid: i for i, pid in enumerate(index.piece_ids)}
        chosen.sort(key=lambda p: order.get(p.piece_id, len(order)))
        return True, chosen, None, branches
    if res == _cp.INFEASIBLE:
        return False, [], "Proven infeasible under current constraints", branches
    if res == _cp.MODEL_INVALID:
        return False, [], "Model invalid (configuration error)", branches
    return False, [], "Stopped before solution (timebox)", branches


__all__ = ["solve_with_cp_sat"]
