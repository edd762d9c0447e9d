import threading

from pieces import PUZZLE_PIECES, pieces_to_json
from solver.isolate import SolverSession, run_query_isolated
from solver.worker import TERMINAL_TYPES

SHORT_SET = pieces_to_json(PUZZLE_PIECES[:-1])
MISMATCH = {"type": "solve", "date": "2026-10-18", "pieces": SHORT_SET}
LONG_COUNT = {"type": "count_solutions", "date": "2026-10-18"}


def test_isolated_query_returns_terminal_message():
    messages, crash_note = run_query_isolated(MISMATCH, timeout=60)
    assert crash_note is None
    assert messages[-1]["type"] == "error"
    assert "Piece area (43)" in messages[-1]["message"]
    assert [m["line"] for m in messages if m["type"] == "log"][0] == "Pieces detected: 9"


def test_isolated_query_is_killed_on_timeout():
    messages, crash_note = run_query_isolated(LONG_COUNT, timeout=0.5)
    assert crash_note == "killed: timeout"
    assert all(m["type"] not in TERMINAL_TYPES for m in messages)


def test_session_delivers_messages_with_run_id():
    received = []
    lock = threading.Lock()

    def listener(run_id, msg):
        with lock:
            received.append((run_id, msg))

    session = SolverSession(listener, poll=0.05)
    run_id = session.start(MISMATCH)
    assert run_id == 1
    assert session.wait(60)
    assert not session.is_running()

    with lock:
        kinds = [msg["type"] for _, msg in received]
        ids = {rid for rid, _ in received}
    assert kinds[-1] == "error"
    assert ids == {1}


def test_stop_terminates_the_running_query():
    received = []
    session = SolverSession(lambda run_id, msg: received.append(msg), poll=0.05)
    session.start(LONG_COUNT)
    assert session.is_running()
    assert session.stop() is True
    assert not session.is_running()
    assert session.wait(1)
    assert all(m["type"] not in TERMINAL_TYPES for m in received)
    assert session.stop() is False


def test_new_query_replaces_the_previous_one():
    received = []
    session = SolverSession(lambda run_id, msg: received.append((run_id, msg)), poll=0.05)
    session.start(LONG_COUNT)
    second = session.start(MISMATCH)
    assert second == 2
    assert session.wait(60)
    terminal = [(rid, m) for rid, m in received if m["type"] in TERMINAL_TYPES]
    assert terminal == [(2, terminal[0][1])]
    assert terminal[0][1]["type"] == "error"
