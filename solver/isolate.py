# solver/isolate.py: one query per child process; cancellation = termination
from __future__ import annotations

import multiprocessing as mp
import queue as _queue
import threading
import time
import traceback
from typing import Any, Callable, Dict, List, Optional, Tuple

from solver.worker import TERMINAL_TYPES

Message = Dict[str, Any]
Listener = Callable[[int, Message], None]


# Worker must be top-level (picklable on spawn)
def _query_worker(q, msg: Message) -> None:
    try:
        from solver.worker import handle_message  # import inside child

        handle_message(msg, q.put)
    except MemoryError:
        q.put({"type": "error", "message": "Worker ran out of memory"})
    except Exception as e:
        q.put({"type": "error", "message": f"{e}\n{traceback.format_exc()}"})


def _terminate_process(proc, grace: float = 0.2) -> None:
    """Best-effort helper that tears down ``proc`` within ``grace`` seconds."""
    try:
        proc.join(timeout=grace)
    except Exception:
        pass
    if not proc.is_alive():
        return
    try:
        proc.terminate()
    except Exception:
        pass
    try:
        proc.join(timeout=grace)
    except Exception:
        pass
    if not proc.is_alive():
        return
    try:
        proc.kill()
    except Exception:
        pass
    try:
        proc.join(timeout=grace)
    except Exception:
        pass


def run_query_isolated(msg: Message, timeout: float) -> Tuple[List[Message], Optional[str]]:
    """
    Run one query in a child process and collect every message it posts.

    Returns (messages, crash_note); crash_note is set only if the child was
    killed, crashed, or exited without a terminal message.
    """
    ctx = mp.get_context("spawn")
    q = ctx.Queue()
    p = ctx.Process(target=_query_worker, args=(q, msg))
    p.daemon = True
    p.start()

    messages: List[Message] = []
    deadline = time.monotonic() + float(timeout)
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            _terminate_process(p)
            return messages, "killed: timeout"
        try:
            out = q.get(timeout=min(0.1, remaining))
        except _queue.Empty:
            if not p.is_alive() and q.empty():
                break
            continue
        messages.append(out)
        if out.get("type") in TERMINAL_TYPES:
            break

    _terminate_process(p, grace=1.0)
    if not messages or messages[-1].get("type") not in TERMINAL_TYPES:
        if p.exitcode not in (0, None):
            return messages, f"child crashed (exit {p.exitcode})"
        return messages, "no-result"
    return messages, None


class SolverSession:
    """
    Owns at most one running query.

    Messages from the child are forwarded to ``listener(run_id, msg)`` from a
    pump thread. Starting a new query or calling :meth:`stop` terminates the
    previous child; a terminated run delivers nothing further.
    """

    def __init__(self, listener: Listener, *, poll: float = 0.1):
        self._listener = listener
        self._poll = float(poll)
        self._lock = threading.Lock()
        self._ctx = mp.get_context("spawn")
        self._proc = None
        self._queue = None
        self._pump: Optional[threading.Thread] = None
        self._run_id = 0
        self._stopped: Dict[int, bool] = {}
        self._finished = threading.Event()
        self._finished.set()

    @property
    def run_id(self) -> int:
        return self._run_id

    def is_running(self) -> bool:
        return not self._finished.is_set()

    def start(self, msg: Message) -> int:
        with self._lock:
            self._stop_locked()
            self._run_id += 1
            run_id = self._run_id
            q = self._ctx.Queue()
            proc = self._ctx.Process(target=_query_worker, args=(q, msg))
            proc.daemon = True
            self._queue, self._proc = q, proc
            self._stopped[run_id] = False
            self._finished = threading.Event()
            proc.start()
            self._pump = threading.Thread(
                target=self._drain, args=(run_id, proc, q, self._finished), daemon=True
            )
            self._pump.start()
            return run_id

    def stop(self) -> bool:
        """Terminate the running query. Returns True if one was running."""
        with self._lock:
            return self._stop_locked()

    def _stop_locked(self) -> bool:
        proc = self._proc
        if proc is None:
            return False
        was_running = proc.is_alive() and not self._finished.is_set()
        self._stopped[self._run_id] = True
        _terminate_process(proc)
        self._finished.set()
        self._proc = None
        self._queue = None
        return was_running

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._finished.wait(timeout)

    def _deliver(self, run_id: int, msg: Message) -> None:
        if self._stopped.get(run_id):
            return
        try:
            self._listener(run_id, msg)
        except Exception:
            traceback.print_exc()

    def _drain(self, run_id: int, proc, q, finished: threading.Event) -> None:
        while not self._stopped.get(run_id):
            try:
                msg = q.get(timeout=self._poll)
            except _queue.Empty:
                if not proc.is_alive():
                    try:
                        msg = q.get_nowait()
                    except (_queue.Empty, OSError, ValueError):
                        if not self._stopped.get(run_id):
                            self._deliver(run_id, {
                                "type": "error",
                                "message": f"worker exited unexpectedly (exit code {proc.exitcode})",
                            })
                        break
                else:
                    continue
            except (OSError, ValueError, EOFError):
                break
            self._deliver(run_id, msg)
            if msg.get("type") in TERMINAL_TYPES:
                break
        finished.set()


__all__ = ["SolverSession", "run_query_isolated"]
