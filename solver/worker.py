# solver/worker.py: message protocol between a host and the tiling engine
from __future__ import annotations

import time
import traceback
from typing import Any, Callable, Dict, Optional

from board import BOARD, Board, describe_date, parse_date, visible_cells_for_date
from config import CFG
from models import InputError, SolverError, placements_to_ui
from pieces import parse_pieces, total_pieces_area
from solver.placements import build_index_for_board
from solver.search import (
    SearchProgress,
    check_area,
    count_solutions,
    find_first_solution,
)

Message = Dict[str, Any]
PostFn = Callable[[Message], None]

TERMINAL_TYPES = ("result", "no_solution", "count_result", "error")
BACKENDS = ("backtracking", "cp_sat")


def _pick(msg: Message, *keys: str) -> Any:
    for k in keys:
        if k in msg and msg[k] is not None:
            return msg[k]
    return None


def _optional_int(msg: Message, *keys: str) -> Optional[int]:
    raw = _pick(msg, *keys)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise InputError(f"{keys[0]} must be an integer (got {raw!r})") from None
    if value < 0:
        raise InputError(f"{keys[0]} must be >= 0 (got {value})")
    return value


def _elapsed_ms(t0: float) -> float:
    return (time.perf_counter() - t0) * 1000.0


def _log(post: PostFn, line: str) -> None:
    post({"type": "log", "line": line})


def handle_message(msg: Message, post: PostFn, *, board: Board = BOARD) -> None:
    """Run one inbound message to completion, reporting through ``post``.

    Exactly one terminal message (result / no_solution / count_result / error)
    is posted per query. ``stop`` is accepted and ignored: a search that is
    already running can only be interrupted by the host tearing down the
    execution context.
    """
    kind = msg.get("type") if isinstance(msg, dict) else None
    if kind == "stop":
        return
    if kind not in ("solve", "count_solutions"):
        post({"type": "error", "message": f"Unknown message type: {kind!r}"})
        return

    t0 = time.perf_counter()
    try:
        _run_query(kind, msg, post, board, t0)
    except SolverError as e:
        post({"type": "error", "message": str(e)})
    except Exception as e:
        post({
            "type": "error",
            "message": f"{type(e).__name__}: {e}",
            "traceback": traceback.format_exc(),
        })


def _run_query(kind: str, msg: Message, post: PostFn, board: Board, t0: float) -> None:
    pieces, err = parse_pieces(msg.get("pieces"))
    if err:
        raise InputError(f"Bad pieces: {err}")
    date = parse_date(_pick(msg, "date", "dateMs", "date_ms"))
    visible = visible_cells_for_date(date, board)
    target_mask = board.mask & ~board.mask_from_ids(visible)

    max_solutions = _optional_int(msg, "max_solutions", "maxSolutions")
    store_limit = _optional_int(msg, "store_limit", "storeLimit")
    backend = str(msg.get("backend") or "backtracking").strip().lower()
    if backend not in BACKENDS:
        raise InputError(f"Unknown backend {backend!r} (expected one of {', '.join(BACKENDS)})")

    area = total_pieces_area(pieces)
    _log(post, f"Pieces detected: {len(pieces)}")
    _log(post, f"Total piece area: {area}")
    _log(post, f"Cells to cover: {board.coverable_count - len(visible)}")
    check_area(pieces, target_mask)

    _log(post, "Precomputing placements...")
    index = build_index_for_board(pieces, board)
    _log(post, describe_date(date, visible, board))

    if kind == "solve":
        _solve(post, target_mask, index, backend, t0)
    else:
        _count(post, target_mask, index, max_solutions, store_limit, t0)


def _solve(post: PostFn, target_mask: int, index, backend: str, t0: float) -> None:
    if backend == "cp_sat":
        from solver.cp_sat import solve_with_cp_sat  # ortools is only needed here

        _log(post, "Searching (first solution, CP-SAT)...")
        ok, placements, reason, branches = solve_with_cp_sat(target_mask, index)
        if ok:
            post({
                "type": "result",
                "placements": placements_to_ui(placements),
                "iterations": branches,
                "elapsed_ms": _elapsed_ms(t0),
                "backend": backend,
            })
        elif reason and "infeasible" in reason.lower():
            post({"type": "no_solution", "iterations": branches, "elapsed_ms": _elapsed_ms(t0)})
        else:
            post({"type": "error", "message": reason or "CP-SAT returned no solution"})
        return

    _log(post, "Searching (first solution)...")

    def _progress(p: SearchProgress) -> None:
        _log(post, f"Iterations: {p.iterations:,}")

    outcome = find_first_solution(
        target_mask,
        index,
        log_every=getattr(CFG, "LOG_EVERY_SOLVE", 25000),
        on_progress=_progress,
    )
    if not outcome.found:
        post({"type": "no_solution", "iterations": outcome.iterations, "elapsed_ms": _elapsed_ms(t0)})
        return
    post({
        "type": "result",
        "placements": placements_to_ui(outcome.placements),
        "iterations": outcome.iterations,
        "elapsed_ms": _elapsed_ms(t0),
        "backend": backend,
    })


def _count(
    post: PostFn,
    target_mask: int,
    index,
    max_solutions: Optional[int],
    store_limit: Optional[int],
    t0: float,
) -> None:
    limit_note = f" (limit: {max_solutions:,})" if max_solutions else ""
    _log(post, f"Counting solutions{limit_note}...")

    def _progress(p: SearchProgress) -> None:
        _log(
            post,
            f"Iterations: {p.iterations:,}"
            f" | Unique solutions: {p.unique_solutions:,}"
            f" | Raw solutions: {p.raw_solutions:,}",
        )

    outcome = count_solutions(
        target_mask,
        index,
        max_solutions=max_solutions,
        store_limit=store_limit,
        log_every=getattr(CFG, "LOG_EVERY_COUNT", 50000),
        on_progress=_progress,
    )
    post({
        "type": "count_result",
        "unique_solutions": outcome.unique_solutions,
        "raw_solutions": outcome.raw_solutions,
        "iterations": outcome.iterations,
        "elapsed_ms": _elapsed_ms(t0),
        "stored_solutions": [placements_to_ui(s) for s in outcome.stored_solutions],
    })


__all__ = ["handle_message", "TERMINAL_TYPES", "BACKENDS"]
