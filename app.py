# app.py: HTTP host for background queries, progress and results
from __future__ import annotations
import threading
from typing import Any, Dict, Optional, Tuple

from flask import Flask, request, jsonify

from board import BOARD, parse_date, visible_cells_for_date
from config import CFG
from models import InputError
from pieces import PUZZLE_PIECES, parse_pieces, pieces_to_json
from solver.isolate import SolverSession

from progress import (
    reset as progress_reset,
    as_json as progress_json,
    start_timer as progress_start,
    mark_stopped, record_message,
)

app = Flask(__name__)

SESSION = SolverSession(lambda run_id, msg: record_message(msg, run_id=run_id))
_START_LOCK = threading.Lock()


@app.after_request
def _no_cache_progress(resp):
    try:
        if request.path == "/progress":
            resp.headers["Cache-Control"] = "no-store, max-age=0"
            resp.headers["Pragma"] = "no-cache"
            resp.headers["Expires"] = "0"
    except Exception:
        pass
    return resp


def _merge_like_mapping() -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        merged.update(payload)

    try:
        form_dict = request.form.to_dict(flat=True)
    except Exception:
        form_dict = dict(request.form or {})
    for k, v in form_dict.items():
        merged.setdefault(k, v)

    try:
        args_dict = request.args.to_dict(flat=True)
    except Exception:
        args_dict = dict(request.args or {})
    for k, v in args_dict.items():
        merged.setdefault(k, v)

    return merged


def _pick(like: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = like.get(k)
        if v is not None and v != "":
            return v
    return None


def _truthy(v: Any) -> bool:
    return str(v).strip().lower() in ("1", "true", "yes", "on")


def _build_query(kind: str, like: Dict[str, Any]) -> Dict[str, Any]:
    """Validate the request eagerly so bad input never reaches a worker."""
    raw_date = _pick(like, "date", "dateMs", "date_ms")
    if raw_date is None:
        raise InputError("date is required")
    date = parse_date(raw_date)

    pieces, err = parse_pieces(like.get("pieces"))
    if err:
        raise InputError(f"Bad pieces: {err}")

    msg: Dict[str, Any] = {
        "type": kind,
        "date": date.isoformat(),
        "pieces": pieces_to_json(pieces),
    }
    if kind == "solve":
        backend = _pick(like, "backend")
        if backend is not None:
            msg["backend"] = str(backend)
    else:
        max_solutions = _pick(like, "max_solutions", "maxSolutions")
        if max_solutions is not None:
            msg["max_solutions"] = max_solutions
        store_limit = _pick(like, "store_limit", "storeLimit")
        msg["store_limit"] = store_limit if store_limit is not None else CFG.UI_STORE_LIMIT
    return msg


def _start_query(msg: Dict[str, Any]) -> int:
    with _START_LOCK:
        if SESSION.stop():
            mark_stopped()
        run_id = progress_reset(msg["type"], run_id=SESSION.run_id + 1)
        progress_start()
        SESSION.start(msg)
        return run_id


def _bad_request(message: str) -> Tuple[Any, int]:
    return jsonify({"ok": False, "error": message}), 400


def _launch(kind: str):
    like = _merge_like_mapping()
    try:
        msg = _build_query(kind, like)
    except InputError as e:
        return _bad_request(str(e))

    run_id = _start_query(msg)
    if _truthy(like.get("wait", "")):
        SESSION.wait(CFG.QUERY_TIMEOUT)
        return jsonify(progress_json())
    return jsonify({"ok": True, "run_id": run_id}), 202


@app.route("/board")
def board():
    return jsonify(BOARD.to_json())


@app.route("/pieces")
def pieces():
    return jsonify(pieces_to_json(PUZZLE_PIECES))


@app.route("/visible")
def visible():
    raw = _pick(_merge_like_mapping(), "date", "dateMs", "date_ms")
    try:
        if raw is None:
            raise InputError("date is required")
        date = parse_date(raw)
        cells = visible_cells_for_date(date, BOARD)
    except InputError as e:
        return _bad_request(str(e))
    return jsonify({
        "date": date.isoformat(),
        "cells": [
            {"id": cid, "index": BOARD.index_by_id[cid], "label": BOARD.label_for_id(cid)}
            for cid in cells
        ],
    })


@app.route("/solve", methods=["POST"])
def solve():
    return _launch("solve")


@app.route("/count", methods=["POST"])
def count():
    return _launch("count_solutions")


@app.route("/stop", methods=["POST"])
def stop():
    with _START_LOCK:
        stopped = SESSION.stop()
    if stopped:
        mark_stopped()
    return jsonify({"ok": True, "stopped": stopped})


@app.route("/progress")
def progress():
    return jsonify(progress_json())


@app.route("/result/latest")
def result_latest():
    snap = progress_json()
    result: Optional[Dict[str, Any]] = snap.get("result")
    if not result:
        return jsonify({"ok": False, "status": snap.get("status"), "error": "no result yet"}), 404
    return jsonify(result)


if __name__ == "__main__":
    app.run(debug=False)
