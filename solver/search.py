# solver/search.py: bitmask exact-cover backtracking (first solution / exhaustive count)
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Set

from config import CFG
from models import (
    AreaMismatchError,
    InputError,
    InvariantViolation,
    PieceDef,
    Placement,
    popcount,
)
from solver.placements import PlacementIndex


@dataclass(frozen=True)
class SearchProgress:
    iterations: int
    unique_solutions: int = 0
    raw_solutions: int = 0


ProgressFn = Callable[[SearchProgress], None]


@dataclass
class SearchOutcome:
    placements: Optional[List[Placement]]
    iterations: int

    @property
    def found(self) -> bool:
        return self.placements is not None


@dataclass
class CountOutcome:
    unique_solutions: int
    raw_solutions: int
    iterations: int
    stored_solutions: List[List[Placement]] = field(default_factory=list)


# ---------- helpers ----------

def lowest_bit_index(mask: int) -> int:
    return (mask & -mask).bit_length() - 1


def check_area(pieces: Iterable[PieceDef], target_mask: int) -> int:
    """Raise AreaMismatchError unless the pieces exactly fill ``target_mask``."""
    area = sum(p.size for p in pieces)
    required = popcount(target_mask)
    if area != required:
        raise AreaMismatchError(
            f"Piece area ({area}) != cells to cover ({required}). "
            f"Check the piece inventory or the date."
        )
    return required


def candidates_for(remaining_mask: int, unused: Set[str], index: PlacementIndex) -> List[Placement]:
    """Placements covering the lowest uncovered cell, largest first."""
    pivot = lowest_bit_index(remaining_mask)
    options = [
        p for p in index.placements_by_cell.get(pivot, ())
        if p.piece_id in unused and (p.mask & remaining_mask) == p.mask
    ]
    # stable: equal sizes keep index order
    options.sort(key=lambda p: -len(p.cell_indexes))
    return options


def solution_signature(solution: Sequence[Placement]) -> str:
    ordered = sorted(solution, key=lambda p: p.piece_id)
    return "|".join(
        f"{p.piece_id}:{','.join(str(i) for i in sorted(p.cell_indexes))}" for p in ordered
    )


def _invariant_message(unused: FrozenSet[str]) -> str:
    return (
        f"Invariant violated: full cover reached with {len(unused)} piece(s) left unused "
        f"({', '.join(sorted(unused))}). The placement precomputation is inconsistent."
    )


def _interval(value: Optional[int], default: int) -> int:
    try:
        n = int(value if value is not None else default)
    except (TypeError, ValueError):
        n = int(default)
    return max(1, n)


# ---------- first solution ----------

def find_first_solution(
    target_mask: int,
    index: PlacementIndex,
    *,
    log_every: Optional[int] = None,
    on_progress: Optional[ProgressFn] = None,
) -> SearchOutcome:
    """Depth-first search that stops at the first full cover.

    Iterations count attempted candidate placements, not recursive calls.
    """
    every = _interval(log_every, getattr(CFG, "LOG_EVERY_SOLVE", 25000))
    iterations = 0

    def _search(remaining: int, unused: FrozenSet[str], solution: List[Placement]) -> Optional[List[Placement]]:
        nonlocal iterations
        if remaining == 0:
            if unused:
                raise InvariantViolation(_invariant_message(unused))
            return solution
        if not unused:
            return None

        for placement in candidates_for(remaining, unused, index):
            iterations += 1
            if on_progress is not None and iterations % every == 0:
                on_progress(SearchProgress(iterations))
            found = _search(
                remaining & ~placement.mask,
                unused - {placement.piece_id},
                solution + [placement],
            )
            if found is not None:
                return found
        return None

    placements = _search(target_mask, frozenset(index.piece_ids), [])
    return SearchOutcome(placements, iterations)


# ---------- exhaustive count ----------

def count_solutions(
    target_mask: int,
    index: PlacementIndex,
    *,
    max_solutions: Optional[int] = None,
    store_limit: Optional[int] = None,
    log_every: Optional[int] = None,
    on_progress: Optional[ProgressFn] = None,
) -> CountOutcome:
    """Explore every branch, counting raw and de-duplicated full covers.

    The first ``store_limit`` unique solutions are kept in discovery order.
    With ``max_solutions`` set, exploration halts once that many unique
    solutions are known, so the counts are a lower bound in that case.
    """
    if store_limit is None:
        store_limit = int(getattr(CFG, "DEFAULT_STORE_LIMIT", 500))
    if int(store_limit) < 0:
        raise InputError(f"store_limit must be >= 0 (got {store_limit})")
    if max_solutions is not None and int(max_solutions) < 0:
        raise InputError(f"max_solutions must be >= 0 (got {max_solutions})")
    store_limit = int(store_limit)
    cap = None if max_solutions is None else int(max_solutions)
    every = _interval(log_every, getattr(CFG, "LOG_EVERY_COUNT", 50000))

    outcome = CountOutcome(0, 0, 0)
    signatures: Set[str] = set()

    def _capped() -> bool:
        return cap is not None and outcome.unique_solutions >= cap

    def _search(remaining: int, unused: FrozenSet[str], solution: List[Placement]) -> None:
        if remaining == 0:
            if unused:
                raise InvariantViolation(_invariant_message(unused))
            outcome.raw_solutions += 1
            signature = solution_signature(solution)
            if signature in signatures:
                return
            signatures.add(signature)
            outcome.unique_solutions += 1
            if len(outcome.stored_solutions) < store_limit:
                outcome.stored_solutions.append(list(solution))
            return
        if not unused or _capped():
            return

        for placement in candidates_for(remaining, unused, index):
            if _capped():
                return
            outcome.iterations += 1
            if on_progress is not None and outcome.iterations % every == 0:
                on_progress(SearchProgress(
                    outcome.iterations, outcome.unique_solutions, outcome.raw_solutions,
                ))
            _search(
                remaining & ~placement.mask,
                unused - {placement.piece_id},
                solution + [placement],
            )

    _search(target_mask, frozenset(index.piece_ids), [])
    return outcome


__all__ = [
    "SearchProgress", "SearchOutcome", "CountOutcome",
    "lowest_bit_index", "check_area", "candidates_for", "solution_signature",
    "find_first_solution", "count_solutions",
]
