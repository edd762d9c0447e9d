# board.py: calendar board geometry and the date → visible cells mapping
from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from models import Cell, InputError

BOARD_COLS = 7
BOARD_ROWS = 8

MONTHS_ROW_1 = ("Jan", "Feb", "Mar", "Apr", "May", "Jun")
MONTHS_ROW_2 = ("Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
ALL_MONTHS = MONTHS_ROW_1 + MONTHS_ROW_2
# Sunday-first, matching the physical board
WEEKDAYS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def cell_id(row: int, col: int) -> str:
    return f"r{row}c{col}"


@dataclass(frozen=True)
class BoardCell:
    id: str
    row: int
    col: int
    role: str = "empty"  # month | day | weekday | empty
    label: Optional[str] = None
    blocked: bool = False

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "row": self.row,
            "col": self.col,
            "role": self.role,
            "label": self.label,
            "blocked": self.blocked,
        }


class Board:
    """Static grid: cell list (row-major), blocked cells and the occupancy mask."""

    def __init__(self, cols: int, rows: int, cells: List[BoardCell]):
        self.cols = int(cols)
        self.rows = int(rows)
        self.cells: Tuple[BoardCell, ...] = tuple(cells)
        self.index_by_id: Dict[str, int] = {c.id: i for i, c in enumerate(self.cells)}
        self.index_by_coord: Dict[Cell, int] = {(c.row, c.col): i for i, c in enumerate(self.cells)}
        self.blocked_indexes: Set[int] = {i for i, c in enumerate(self.cells) if c.blocked}
        mask = 0
        for i, c in enumerate(self.cells):
            if not c.blocked:
                mask |= 1 << i
        self.mask = mask

    @classmethod
    def rectangular(cls, cols: int, rows: int, blocked: Iterable[Cell] = ()) -> "Board":
        blocked_set = {(int(r), int(c)) for r, c in blocked}
        cells = [
            BoardCell(cell_id(r, c), r, c, blocked=(r, c) in blocked_set)
            for r in range(rows)
            for c in range(cols)
        ]
        return cls(cols, rows, cells)

    @property
    def coverable_count(self) -> int:
        return len(self.cells) - len(self.blocked_indexes)

    def label_for_id(self, cid: str) -> str:
        idx = self.index_by_id.get(cid)
        if idx is None:
            return cid
        return self.cells[idx].label or cid

    def mask_from_ids(self, ids: Iterable[str]) -> int:
        mask = 0
        for cid in ids:
            idx = self.index_by_id.get(cid)
            if idx is None:
                raise InputError(f"Unknown cell id {cid}")
            mask |= 1 << idx
        return mask

    def to_json(self) -> Dict[str, Any]:
        return {
            "cols": self.cols,
            "rows": self.rows,
            "cells": [c.to_json() for c in self.cells],
        }


def _make_calendar_board() -> Board:
    cells: List[BoardCell] = []

    # Row 0: Jan..Jun + (0,6) blocked
    for col, label in enumerate(MONTHS_ROW_1):
        cells.append(BoardCell(cell_id(0, col), 0, col, "month", label))
    cells.append(BoardCell(cell_id(0, 6), 0, 6, blocked=True))

    # Row 1: Jul..Dec + (1,6) blocked
    for col, label in enumerate(MONTHS_ROW_2):
        cells.append(BoardCell(cell_id(1, col), 1, col, "month", label))
    cells.append(BoardCell(cell_id(1, 6), 1, 6, blocked=True))

    # Rows 2-5: days 1..28
    day = 1
    for row in range(2, 6):
        for col in range(BOARD_COLS):
            cells.append(BoardCell(cell_id(row, col), row, col, "day", str(day)))
            day += 1

    # Row 6: 29, 30, 31 + Sun..Wed
    for col, label in enumerate(("29", "30", "31", "Sun", "Mon", "Tue", "Wed")):
        role = "weekday" if label in WEEKDAYS else "day"
        cells.append(BoardCell(cell_id(6, col), 6, col, role, label))

    # Row 7: (7,0..3) blocked + Thu..Sat
    for col in range(4):
        cells.append(BoardCell(cell_id(7, col), 7, col, blocked=True))
    for i, label in enumerate(("Thu", "Fri", "Sat")):
        cells.append(BoardCell(cell_id(7, 4 + i), 7, 4 + i, "weekday", label))

    return Board(BOARD_COLS, BOARD_ROWS, cells)


BOARD = _make_calendar_board()


def _label_lookup(board: Board) -> Tuple[Dict[str, str], Dict[int, str], Dict[int, str]]:
    months: Dict[str, str] = {}
    days: Dict[int, str] = {}
    weekdays: Dict[int, str] = {}
    for cell in board.cells:
        if not cell.label:
            continue
        if cell.role == "month":
            months[cell.label.lower()] = cell.id
        elif cell.role == "day":
            days[int(cell.label)] = cell.id
        elif cell.role == "weekday" and cell.label in WEEKDAYS:
            weekdays[WEEKDAYS.index(cell.label)] = cell.id
    return months, days, weekdays


class VisibleCells(NamedTuple):
    month_id: str
    day_id: str
    weekday_id: str


def parse_date(value: Any) -> _dt.date:
    """Coerce ISO strings, epoch milliseconds and date objects to a ``date``."""
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if isinstance(value, bool):
        raise InputError(f"Unparseable date: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return _dt.datetime.fromtimestamp(float(value) / 1000.0).date()
        except (OverflowError, OSError, ValueError) as e:
            raise InputError(f"Unparseable date: {value!r} ({e})") from e
    if isinstance(value, str):
        text = value.strip()
        try:
            return _dt.date.fromisoformat(text[:10])
        except ValueError as e:
            raise InputError(f"Unparseable date: {value!r}") from e
    raise InputError(f"Unparseable date: {value!r}")


def visible_cells_for_date(date: _dt.date, board: Board = BOARD) -> VisibleCells:
    months, days, weekdays = _label_lookup(board)
    month_id = months.get(ALL_MONTHS[date.month - 1].lower())
    day_id = days.get(date.day)
    # date.weekday() is Monday=0; the board counts from Sunday
    weekday_id = weekdays.get((date.weekday() + 1) % 7)
    if not month_id or not day_id or not weekday_id:
        raise InputError("Date out of supported range for the board")
    return VisibleCells(month_id, day_id, weekday_id)


def target_mask_for_date(date: _dt.date, board: Board = BOARD) -> int:
    visible = visible_cells_for_date(date, board)
    return board.mask & ~board.mask_from_ids(visible)


def describe_date(date: _dt.date, visible: VisibleCells, board: Board = BOARD) -> str:
    labels = ", ".join(board.label_for_id(cid) for cid in visible)
    return f"Date: {date.strftime('%a, %b %d %Y')} | Visible: {labels}"


__all__ = [
    "BOARD", "BOARD_COLS", "BOARD_ROWS", "Board", "BoardCell", "VisibleCells",
    "cell_id", "parse_date", "visible_cells_for_date", "target_mask_for_date",
    "describe_date",
]
