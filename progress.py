from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, Optional

from config import CFG

# ------------------------------
# Thread-safe global run state
# ------------------------------

PROGRESS_LOCK = threading.Lock()


def _log_file_path() -> Path:
    configured = getattr(CFG, "ATTEMPT_LOG", "") or os.path.join("logs", "solver_runs.log")
    path = Path(configured)
    if path.is_absolute():
        return path
    return Path(__file__).resolve().parent / path


def _init_logger() -> logging.Logger:
    logger = logging.getLogger("calendar.runs")
    if logger.handlers:
        return logger

    log_path = _log_file_path()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    except Exception:
        # no attempt log; run state still works
        logger.handlers.clear()
    return logger


RUN_LOGGER = _init_logger()


def _log_enabled() -> bool:
    return bool(RUN_LOGGER.handlers)


def _fmt_seconds(seconds: Optional[float]) -> Optional[str]:
    if seconds is None:
        return None
    try:
        return f"{float(seconds):.2f}s"
    except Exception:
        return None


def _emit_log(event: str, level: int = logging.INFO, **fields: Any) -> None:
    if not _log_enabled():
        return
    extras = [
        f"{key}={value}"
        for key, value in fields.items()
        if value is not None and value != ""
    ]
    try:
        if extras:
            RUN_LOGGER.log(level, "%s | %s", event, " ".join(extras))
        else:
            RUN_LOGGER.log(level, "%s", event)
    except Exception:
        pass


def _new_lines() -> Deque[str]:
    return deque(maxlen=max(1, int(getattr(CFG, "MAX_LOG_LINES", 500))))


# Single source of truth for the host
PROGRESS: Dict[str, Any] = {
    "status": "Idle",          # Idle | Solving | Counting | Solved | No solution | Error | Stopped
    "kind": "",                # solve | count_solutions
    "run_id": 0,               # monotonically increasing identifier
    "elapsed_start": None,     # t0 (float) when the run started
    "elapsed": 0.0,            # seconds snapshot
    "message": "",             # error text or final note
    "done": False,             # run completed
    "ok": None,                # success flag if known
    "result": None,            # terminal payload (result / no_solution / count_result)
}
LINES: Deque[str] = _new_lines()

_RUNNING_STATUS = {"solve": "Solving", "count_solutions": "Counting"}

# ------------------------------
# Helpers
# ------------------------------

def _now() -> float:
    return time.time()

def _fmt_elapsed(seconds: float) -> str:
    seconds = max(0.0, float(seconds))
    if seconds < 60:
        return f"{int(seconds)}s"
    m, s = divmod(int(seconds), 60)
    if m < 60:
        return f"{m}m {s}s"
    h, m = divmod(m, 60)
    return f"{h}h {m}m"

def _touch_elapsed_locked() -> None:
    t0 = PROGRESS.get("elapsed_start")
    if t0 is not None and not PROGRESS.get("done"):
        PROGRESS["elapsed"] = _now() - float(t0)

def reset(kind: str = "", run_id: Optional[int] = None) -> int:
    global LINES
    with PROGRESS_LOCK:
        if run_id is None:
            try:
                run_id = int(PROGRESS.get("run_id", 0)) + 1
            except Exception:
                run_id = 1
        PROGRESS.update({
            "status": _RUNNING_STATUS.get(kind, "Idle"),
            "kind": kind or "",
            "run_id": int(run_id),
            "elapsed_start": None,
            "elapsed": 0.0,
            "message": "",
            "done": False,
            "ok": None,
            "result": None,
        })
        LINES = _new_lines()
        _emit_log("Run reset", run_id=run_id, kind=kind)
        return int(run_id)

def start_timer() -> None:
    with PROGRESS_LOCK:
        PROGRESS["elapsed_start"] = _now()
        PROGRESS["elapsed"] = 0.0
        _emit_log("Run timer started", run_id=PROGRESS.get("run_id"))

# ------------------------------
# Setters (tolerant)
# ------------------------------

def set_status(v: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["status"] = str(v)

def set_message(msg: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["message"] = "" if msg is None else str(msg)

def append_log(line: Any) -> None:
    text = "" if line is None else str(line)
    with PROGRESS_LOCK:
        LINES.append(text)
        _touch_elapsed_locked()
    _emit_log("Engine", line=text)

def set_done(ok: Any = None, *, reason: Any = None, status: Optional[str] = None) -> None:
    """Mark the run complete.

    ``ok`` picks the default final status (``Solved`` / ``Error``) unless an
    explicit ``status`` is supplied; ``reason`` is surfaced via ``message``.
    """
    with PROGRESS_LOCK:
        _touch_elapsed_locked()
        ok_flag = None if ok is None else bool(ok)
        if status is not None:
            PROGRESS["status"] = str(status)
        elif ok_flag is not None:
            PROGRESS["status"] = "Solved" if ok_flag else "Error"
        elif PROGRESS.get("status") in ("", "Idle", "Solving", "Counting", None):
            PROGRESS["status"] = "Solved"
            ok_flag = True
        if reason is not None:
            PROGRESS["message"] = str(reason)
        PROGRESS["done"] = True
        PROGRESS["ok"] = ok_flag
        _emit_log(
            "Run finished",
            level=logging.INFO if ok_flag is not False else logging.WARNING,
            run_id=PROGRESS.get("run_id"),
            status=PROGRESS.get("status"),
            ok=ok_flag,
            duration=_fmt_seconds(PROGRESS.get("elapsed")),
            message=PROGRESS.get("message"),
        )

def mark_stopped() -> None:
    with PROGRESS_LOCK:
        if PROGRESS.get("done"):
            return
    set_done(None, reason="Stopped by request", status="Stopped")

def set_result(payload: Optional[Dict[str, Any]]) -> None:
    with PROGRESS_LOCK:
        PROGRESS["result"] = None if payload is None else dict(payload)

def record_message(msg: Dict[str, Any], run_id: Optional[int] = None) -> None:
    """Fold one outbound engine message into the run state."""
    if run_id is not None:
        with PROGRESS_LOCK:
            if int(PROGRESS.get("run_id", 0)) != int(run_id):
                return
    kind = msg.get("type")
    if kind == "log":
        append_log(msg.get("line"))
    elif kind == "result":
        set_result(msg)
        set_done(True, reason=f"Solved in {int(msg.get('iterations', 0)):,} iterations")
    elif kind == "no_solution":
        set_result(msg)
        set_done(False, reason="No solution", status="No solution")
    elif kind == "count_result":
        set_result(msg)
        set_done(
            True,
            reason=(
                f"{int(msg.get('unique_solutions', 0)):,} unique solution(s), "
                f"{int(msg.get('raw_solutions', 0)):,} raw"
            ),
        )
    elif kind == "error":
        set_result(msg)
        set_done(False, reason=msg.get("message") or "error")
    else:
        _emit_log("Unknown engine message", level=logging.WARNING, type=kind)

# ------------------------------
# Snapshots for the host
# ------------------------------

def snapshot() -> Dict[str, Any]:
    with PROGRESS_LOCK:
        _touch_elapsed_locked()
        return {
            "status": PROGRESS["status"],
            "kind": PROGRESS["kind"],
            "run_id": PROGRESS["run_id"],
            "elapsed": PROGRESS["elapsed"],
            "elapsed_str": _fmt_elapsed(PROGRESS["elapsed"]),
            "message": PROGRESS["message"],
            "done": PROGRESS["done"],
            "ok": PROGRESS["ok"],
            "lines": list(LINES),
            "result": PROGRESS["result"],
        }

def as_json() -> Dict[str, Any]:
    # Alias used by /progress
    return snapshot()
