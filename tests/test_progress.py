from config import CFG
from progress import (
    append_log,
    mark_stopped,
    record_message,
    reset,
    set_done,
    set_status,
    snapshot,
    start_timer,
)


def test_set_done_no_args_defaults_to_solved():
    reset("solve")
    set_done()
    snap = snapshot()
    assert snap["status"] == "Solved"
    assert snap["done"] is True
    assert snap["ok"] is True
    assert snap["result"] is None


def test_set_done_with_reason_marks_error():
    reset()
    set_status("Solving")
    set_done(False, reason="boom")
    snap = snapshot()
    assert snap["status"] == "Error"
    assert snap["message"] == "boom"
    assert snap["done"] is True
    assert snap["ok"] is False


def test_reset_increments_run_identifier():
    reset()
    first = snapshot()["run_id"]
    reset()
    second = snapshot()["run_id"]
    assert isinstance(first, int)
    assert second == first + 1


def test_reset_status_follows_query_kind():
    reset("solve")
    assert snapshot()["status"] == "Solving"
    reset("count_solutions")
    snap = snapshot()
    assert snap["status"] == "Counting"
    assert snap["kind"] == "count_solutions"
    assert snap["lines"] == []
    reset()
    assert snapshot()["status"] == "Idle"


def test_explicit_run_id_is_kept():
    assert reset("solve", run_id=41) == 41
    assert snapshot()["run_id"] == 41


def test_log_lines_are_bounded(monkeypatch):
    monkeypatch.setattr(CFG, "MAX_LOG_LINES", 3)
    reset("solve")
    for i in range(5):
        append_log(f"line {i}")
    assert snapshot()["lines"] == ["line 2", "line 3", "line 4"]


def test_record_message_folds_engine_output():
    run_id = reset("solve")
    start_timer()
    record_message({"type": "log", "line": "Pieces detected: 10"}, run_id=run_id)
    record_message(
        {"type": "result", "placements": [], "iterations": 1234, "elapsed_ms": 1.0},
        run_id=run_id,
    )
    snap = snapshot()
    assert snap["lines"] == ["Pieces detected: 10"]
    assert snap["status"] == "Solved"
    assert snap["ok"] is True
    assert snap["message"] == "Solved in 1,234 iterations"
    assert snap["result"]["iterations"] == 1234


def test_record_message_ignores_other_runs():
    run_id = reset("solve")
    record_message({"type": "log", "line": "stale"}, run_id=run_id - 1)
    record_message({"type": "error", "message": "stale"}, run_id=run_id - 1)
    snap = snapshot()
    assert snap["lines"] == []
    assert snap["done"] is False
    assert snap["status"] == "Solving"


def test_record_message_terminal_kinds():
    reset("solve")
    record_message({"type": "no_solution", "iterations": 0, "elapsed_ms": 0.1})
    snap = snapshot()
    assert snap["status"] == "No solution"
    assert snap["ok"] is False
    assert snap["done"] is True

    reset("count_solutions")
    record_message({
        "type": "count_result", "unique_solutions": 2, "raw_solutions": 3,
        "iterations": 9, "elapsed_ms": 0.1, "stored_solutions": [],
    })
    snap = snapshot()
    assert snap["status"] == "Solved"
    assert snap["message"] == "2 unique solution(s), 3 raw"

    reset("solve")
    record_message({"type": "error", "message": "Piece area (43) != cells to cover (47)."})
    snap = snapshot()
    assert snap["status"] == "Error"
    assert snap["message"].startswith("Piece area (43)")
    assert snap["result"]["type"] == "error"


def test_mark_stopped_only_affects_live_runs():
    reset("count_solutions")
    mark_stopped()
    snap = snapshot()
    assert snap["status"] == "Stopped"
    assert snap["message"] == "Stopped by request"
    assert snap["done"] is True

    reset("solve")
    set_done(True, reason="Solved in 3 iterations")
    mark_stopped()
    assert snapshot()["status"] == "Solved"


def test_elapsed_string_is_reported():
    reset("solve")
    start_timer()
    snap = snapshot()
    assert snap["elapsed_str"].endswith("s")
    assert snap["elapsed"] >= 0.0
