"""
SheetServer — Abstract Spreadsheet Engine Interface
=====================================================

What:  Abstract base class defining the contract the dispatcher consumes for
       every cell, column, row and geometry operation.
How:   Concrete engines inherit from SpreadsheetEngine and implement each method.
       MemorySpreadsheetEngine is the in-process implementation shipped with
       the service; tests use MagicMock(spec=SpreadsheetEngine).
Who:   Called by the dispatcher, the window filter, the metadata annotator and
       the batch loader.

Contract:
    - Every mutating or loading call returns a Delta holding the cells it
      touched (possibly more than the one requested, e.g. dependents).
    - Engines raise SpreadsheetEngineError (or anything else) on failure; the
      routing layer propagates those unchanged and never retries.
    - Calls are synchronous. Each engine serializes operations per spreadsheet.
"""

from abc import ABC, abstractmethod
from typing import Iterable

from sheetserver.models.delta import Cell, Delta, EvaluationMode
from sheetserver.models.reference import (
    CellBox,
    CellRange,
    CellReference,
    ColumnReference,
    RowReference,
    Viewport,
)


class SpreadsheetEngine(ABC):
    """Computation engine for a single spreadsheet."""

    # ── Cells ─────────────────────────────────────────────────────────────
    @abstractmethod
    def load_cell(self, reference: CellReference, mode: EvaluationMode) -> Delta:
        """Load one cell; the delta may also carry cells recomputed as a side effect."""
        ...

    @abstractmethod
    def load_cells(self, cells: CellRange, mode: EvaluationMode) -> Delta:
        """Load every existing cell inside the range."""
        ...

    @abstractmethod
    def save_cell(self, cell: Cell) -> Delta:
        ...

    @abstractmethod
    def delete_cell(self, reference: CellReference) -> Delta:
        ...

    @abstractmethod
    def fill_cells(self, cells: Iterable[Cell], source: CellRange, destination: CellRange) -> Delta:
        """
        Repeat the cells found in `source` across `destination`.

        Cells are placed relative to the top-left of `source`; the pattern is
        tiled over `destination`. Passing the same range for both saves the
        cells in place (save-range).
        """
        ...

    @abstractmethod
    def clear_cells(self, cells: CellRange) -> Delta:
        """Remove every cell inside `cells`; nothing is shifted."""
        ...

    # ── Columns and rows ──────────────────────────────────────────────────
    @abstractmethod
    def insert_columns(self, column: ColumnReference, count: int) -> Delta:
        ...

    @abstractmethod
    def delete_columns(self, column: ColumnReference, count: int) -> Delta:
        ...

    @abstractmethod
    def insert_rows(self, row: RowReference, count: int) -> Delta:
        ...

    @abstractmethod
    def delete_rows(self, row: RowReference, count: int) -> Delta:
        ...

    # ── Geometry ──────────────────────────────────────────────────────────
    @abstractmethod
    def column_width(self, column: ColumnReference) -> float:
        """Pixel width; 0 means hidden or unknown."""
        ...

    @abstractmethod
    def row_height(self, row: RowReference) -> float:
        ...

    @abstractmethod
    def range(self, viewport: Viewport) -> CellRange:
        """The cells visible inside a viewport."""
        ...

    @abstractmethod
    def cell_box(self, x: float, y: float) -> CellBox:
        """The cell covering the pixel coordinate."""
        ...

    # ── References ────────────────────────────────────────────────────────
    @abstractmethod
    def resolve_cell_reference(self, expression) -> CellReference:
        """Reduce a CellReference or CellRange to a single cell reference."""
        ...
