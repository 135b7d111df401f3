"""
SheetServer — In-Memory Spreadsheet Engine
============================================

What:  A SpreadsheetEngine keeping cells, column widths and row heights in
       process memory, plus a registry handing out one engine per spreadsheet.
How:   Cells live in a dict keyed by relative CellReference. Every public
       method takes the engine's RLock, so operations on one spreadsheet are
       serialized while different spreadsheets proceed independently.
Who:   Used by the spreadsheet routes through `engine_registry`.

Formulas:
    No expression language is evaluated. A formula's value is its numeric
    literal when the text is a number, None when the text starts with "=",
    and the text itself otherwise.

Geometry:
    Column widths / row heights default to settings.default_column_width /
    settings.default_row_height. Per-column / per-row overrides may be set
    with set_column_width() / set_row_height(); 0 hides a column or row.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Dict, Iterable, Optional, Tuple

from sheetserver.config import settings
from sheetserver.exceptions import SpreadsheetEngineError
from sheetserver.models.delta import Cell, Delta, EvaluationMode, Formula
from sheetserver.models.reference import (
    MAX_COLUMNS,
    MAX_ROWS,
    CellBox,
    CellRange,
    CellReference,
    ColumnReference,
    RowReference,
    Viewport,
)
from sheetserver.services.engine_base import SpreadsheetEngine

logger = logging.getLogger(__name__)


def literal_value(text: str):
    """Value of a formula without evaluating expressions."""
    stripped = text.strip()
    if stripped.startswith("="):
        return None
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        return float(stripped)
    except ValueError:
        return text


class MemorySpreadsheetEngine(SpreadsheetEngine):
    """Engine for one spreadsheet, held entirely in memory."""

    def __init__(self, spreadsheet_id: str):
        self.spreadsheet_id = spreadsheet_id
        self._cells: Dict[CellReference, Cell] = {}
        self._column_widths: Dict[int, float] = {}
        self._row_heights: Dict[int, float] = {}
        self._lock = threading.RLock()

    # ── Helpers ───────────────────────────────────────────────────────────
    @staticmethod
    def _evaluate(cell: Cell, mode: EvaluationMode) -> Cell:
        formula = cell.formula
        if mode is EvaluationMode.FORCE_RECOMPUTE or (
            mode is EvaluationMode.COMPUTE_IF_NECESSARY and formula.value is None
        ):
            return replace(cell, formula=Formula(formula.text, literal_value(formula.text)))
        if mode is EvaluationMode.CLEAR_VALUE_ERROR_SKIP_EVALUATE:
            return replace(cell, formula=Formula(formula.text))
        return cell

    def _store(self, cell: Cell) -> Cell:
        key = cell.reference.relative()
        stored = self._evaluate(cell.set_reference(key), EvaluationMode.FORCE_RECOMPUTE)
        self._cells[key] = stored
        return stored

    # ── Cells ─────────────────────────────────────────────────────────────
    def load_cell(self, reference: CellReference, mode: EvaluationMode) -> Delta:
        with self._lock:
            cell = self._cells.get(reference.relative())
            if cell is None:
                return Delta.EMPTY
            return Delta.with_cells([self._evaluate(cell, mode)])

    def load_cells(self, cells: CellRange, mode: EvaluationMode) -> Delta:
        with self._lock:
            return Delta.with_cells(
                self._evaluate(cell, mode)
                for reference, cell in self._cells.items()
                if cells.contains(reference)
            )

    def save_cell(self, cell: Cell) -> Delta:
        with self._lock:
            return Delta.with_cells([self._store(cell)])

    def delete_cell(self, reference: CellReference) -> Delta:
        with self._lock:
            self._cells.pop(reference.relative(), None)
            return Delta.EMPTY

    def fill_cells(self, cells: Iterable[Cell], source: CellRange, destination: CellRange) -> Delta:
        pattern = {cell.reference.relative(): cell for cell in cells}
        saved = []
        with self._lock:
            for target in destination:
                column_offset = (target.column.value - destination.begin.column.value) % source.width
                row_offset = (target.row.value - destination.begin.row.value) % source.height
                origin = CellReference.of(
                    source.begin.column.value + column_offset,
                    source.begin.row.value + row_offset,
                )
                cell = pattern.get(origin)
                if cell is None:
                    self._cells.pop(target, None)
                else:
                    saved.append(self._store(cell.set_reference(target)))
        logger.debug(
            "Filled %s from %s in spreadsheet %s (%d cells)",
            destination, source, self.spreadsheet_id, len(saved),
        )
        return Delta.with_cells(saved)

    def clear_cells(self, cells: CellRange) -> Delta:
        with self._lock:
            cleared = [reference for reference in self._cells if cells.contains(reference)]
            for reference in cleared:
                del self._cells[reference]
        logger.debug(
            "Cleared %s in spreadsheet %s (%d cells)", cells, self.spreadsheet_id, len(cleared)
        )
        return Delta.EMPTY

    # ── Columns and rows ──────────────────────────────────────────────────
    def _shift(
        self,
        position: Callable[[CellReference], int],
        move: Callable[[CellReference, int], Optional[CellReference]],
        start: int,
        count: int,
        delete: bool,
    ) -> Delta:
        moved = []
        remaining: Dict[CellReference, Cell] = {}
        for reference, cell in self._cells.items():
            index = position(reference)
            if index < start:
                remaining[reference] = cell
                continue
            if delete and index < start + count:
                continue
            target = move(reference, -count if delete else count)
            if target is None:
                continue
            shifted = cell.set_reference(target)
            remaining[target] = shifted
            moved.append(shifted)
        self._cells = remaining
        return Delta.with_cells(moved)

    @staticmethod
    def _shift_sizes(sizes: Dict[int, float], start: int, count: int, delete: bool, limit: int):
        shifted: Dict[int, float] = {}
        for index, size in sizes.items():
            if index < start:
                shifted[index] = size
            elif delete and index < start + count:
                continue
            else:
                target = index - count if delete else index + count
                if 0 <= target < limit:
                    shifted[target] = size
        return shifted

    @staticmethod
    def _move_column(reference: CellReference, delta: int) -> Optional[CellReference]:
        value = reference.column.value + delta
        if not 0 <= value < MAX_COLUMNS:
            return None
        return CellReference.of(value, reference.row.value)

    @staticmethod
    def _move_row(reference: CellReference, delta: int) -> Optional[CellReference]:
        value = reference.row.value + delta
        if not 0 <= value < MAX_ROWS:
            return None
        return CellReference.of(reference.column.value, value)

    def _columns(self, column: ColumnReference, count: int, delete: bool) -> Delta:
        with self._lock:
            self._column_widths = self._shift_sizes(
                self._column_widths, column.value, count, delete, MAX_COLUMNS
            )
            return self._shift(
                lambda r: r.column.value, self._move_column, column.value, count, delete
            )

    def _rows(self, row: RowReference, count: int, delete: bool) -> Delta:
        with self._lock:
            self._row_heights = self._shift_sizes(
                self._row_heights, row.value, count, delete, MAX_ROWS
            )
            return self._shift(lambda r: r.row.value, self._move_row, row.value, count, delete)

    def insert_columns(self, column: ColumnReference, count: int) -> Delta:
        return self._columns(column, count, delete=False)

    def delete_columns(self, column: ColumnReference, count: int) -> Delta:
        return self._columns(column, count, delete=True)

    def insert_rows(self, row: RowReference, count: int) -> Delta:
        return self._rows(row, count, delete=False)

    def delete_rows(self, row: RowReference, count: int) -> Delta:
        return self._rows(row, count, delete=True)

    # ── Geometry ──────────────────────────────────────────────────────────
    def set_column_width(self, column: ColumnReference, width: float) -> None:
        with self._lock:
            self._column_widths[column.value] = width

    def set_row_height(self, row: RowReference, height: float) -> None:
        with self._lock:
            self._row_heights[row.value] = height

    def _width(self, index: int) -> float:
        return self._column_widths.get(index, settings.default_column_width)

    def _height(self, index: int) -> float:
        return self._row_heights.get(index, settings.default_row_height)

    def column_width(self, column: ColumnReference) -> float:
        with self._lock:
            return self._width(column.value)

    def row_height(self, row: RowReference) -> float:
        with self._lock:
            return self._height(row.value)

    @staticmethod
    def _span(
        start: int, offset: float, length: float, size: Callable[[int], float], limit: int
    ) -> Tuple[int, int]:
        """First and last index covered by `length` pixels, `offset` pixels into `start`."""
        index = start
        while offset >= size(index) and index < limit - 1:
            offset -= size(index)
            index += 1
        first = index
        remaining = offset + length
        while remaining > size(index) and index < limit - 1:
            remaining -= size(index)
            index += 1
        return first, index

    def range(self, viewport: Viewport) -> CellRange:
        with self._lock:
            left, right = self._span(
                viewport.home.column.value, viewport.x_offset, viewport.width,
                self._width, MAX_COLUMNS,
            )
            top, bottom = self._span(
                viewport.home.row.value, viewport.y_offset, viewport.height,
                self._height, MAX_ROWS,
            )
        return CellRange(CellReference.of(left, top), CellReference.of(right, bottom))

    @staticmethod
    def _locate(pixel: float, size: Callable[[int], float], limit: int) -> Tuple[int, float]:
        index = 0
        start = 0.0
        while index < limit - 1 and pixel >= start + size(index):
            start += size(index)
            index += 1
        return index, start

    def cell_box(self, x: float, y: float) -> CellBox:
        with self._lock:
            column, left = self._locate(x, self._width, MAX_COLUMNS)
            row, top = self._locate(y, self._height, MAX_ROWS)
            return CellBox(
                CellReference.of(column, row), left, top, self._width(column), self._height(row)
            )

    # ── References ────────────────────────────────────────────────────────
    def resolve_cell_reference(self, expression) -> CellReference:
        if isinstance(expression, CellReference):
            return expression
        if isinstance(expression, CellRange):
            return expression.begin
        raise SpreadsheetEngineError(
            f"Cannot resolve {expression!r} to a cell reference",
            context={"spreadsheet_id": self.spreadsheet_id},
        )


class EngineRegistry:
    """
    Lazily creates and caches one MemorySpreadsheetEngine per spreadsheet id.

    Thread-safe: creation happens under a lock so two concurrent first
    requests for the same spreadsheet share one engine.
    """

    def __init__(self):
        self._engines: Dict[str, MemorySpreadsheetEngine] = {}
        self._lock = threading.Lock()

    def get(self, spreadsheet_id: str) -> MemorySpreadsheetEngine:
        with self._lock:
            engine = self._engines.get(spreadsheet_id)
            if engine is None:
                logger.info("Creating in-memory engine for spreadsheet %s", spreadsheet_id)
                engine = MemorySpreadsheetEngine(spreadsheet_id)
                self._engines[spreadsheet_id] = engine
            return engine

    def clear(self) -> None:
        with self._lock:
            self._engines.clear()


# Singleton instance — imported by the spreadsheet routes
engine_registry = EngineRegistry()
