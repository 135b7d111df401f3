"""
SheetServer — Delta Envelope and Cell Values
==============================================

What:  The immutable request/response envelope exchanged with the engine and
       the HTTP client, plus the cell, formula and label values it carries.
How:   Frozen dataclasses. Every `set_*` helper returns a new Delta; nothing
       mutates in place, so one request's delta can never leak into another.

Delta members:
    cells          — one Cell per position (a later cell at the same position
                     replaces an earlier one), kept in row-major order
    labels         — label mappings touched by the operation
    window         — ordered rectangles (CellRange or Viewport)
    column_widths  — ColumnReference → pixels, only for columns among `cells`
    row_heights    — RowReference → pixels, only for rows among `cells`
    selection      — optional Selection echoed back to the client
"""

import enum
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, Iterable, Optional, Tuple, Union

from sheetserver.models.reference import (
    CellRange,
    CellReference,
    ColumnReference,
    LabelName,
    RowReference,
    Viewport,
)
from sheetserver.models.selection import Selection

Rectangle = Union[CellRange, Viewport]


@dataclass(frozen=True)
class Formula:
    text: str
    value: Any = None


@dataclass(frozen=True)
class Cell:
    reference: CellReference
    formula: Formula
    formatted: Optional[str] = None

    def set_reference(self, reference: CellReference) -> "Cell":
        return replace(self, reference=reference)


@dataclass(frozen=True)
class LabelMapping:
    label: LabelName
    reference: CellReference


def _unique_cells(cells: Iterable[Cell]) -> Tuple[Cell, ...]:
    by_position: Dict[CellReference, Cell] = {}
    for cell in cells:
        by_position[cell.reference.relative()] = cell
    return tuple(sorted(by_position.values(), key=lambda c: c.reference.sort_key()))


@dataclass(frozen=True)
class Delta:
    cells: Tuple[Cell, ...] = ()
    labels: Tuple[LabelMapping, ...] = ()
    window: Tuple[Rectangle, ...] = ()
    column_widths: Dict[ColumnReference, float] = field(default_factory=dict)
    row_heights: Dict[RowReference, float] = field(default_factory=dict)
    selection: Optional[Selection] = None

    EMPTY: ClassVar["Delta"]

    def __post_init__(self):
        object.__setattr__(self, "cells", _unique_cells(self.cells))
        object.__setattr__(self, "labels", tuple(self.labels))
        object.__setattr__(self, "window", tuple(self.window))
        object.__setattr__(self, "column_widths", dict(self.column_widths))
        object.__setattr__(self, "row_heights", dict(self.row_heights))

    @classmethod
    def with_cells(cls, cells: Iterable[Cell]) -> "Delta":
        return cls(cells=tuple(cells))

    # ── Copy-on-write setters ─────────────────────────────────────────────
    def set_cells(self, cells: Iterable[Cell]) -> "Delta":
        return replace(self, cells=tuple(cells))

    def set_window(self, window: Iterable[Rectangle]) -> "Delta":
        return replace(self, window=tuple(window))

    def clear_window(self) -> "Delta":
        return replace(self, window=())

    def set_column_widths(self, widths: Dict[ColumnReference, float]) -> "Delta":
        return replace(self, column_widths=widths)

    def set_row_heights(self, heights: Dict[RowReference, float]) -> "Delta":
        return replace(self, row_heights=heights)

    def set_selection(self, selection: Optional[Selection]) -> "Delta":
        return replace(self, selection=selection)

    # ── Queries ───────────────────────────────────────────────────────────
    def cell(self, reference: CellReference) -> Optional[Cell]:
        key = reference.relative()
        for cell in self.cells:
            if cell.reference.relative() == key:
                return cell
        return None

    def references(self) -> Tuple[CellReference, ...]:
        return tuple(cell.reference for cell in self.cells)


Delta.EMPTY = Delta()


class EvaluationMode(str, enum.Enum):
    """How the engine treats a cell's formula when it is loaded."""

    CLEAR_VALUE_ERROR_SKIP_EVALUATE = "clear-value-error-skip-evaluate"
    SKIP_EVALUATE = "skip-evaluate"
    FORCE_RECOMPUTE = "force-recompute"
    COMPUTE_IF_NECESSARY = "compute-if-necessary"

    @property
    def relation(self) -> str:
        return self.value

    @classmethod
    def from_relation(cls, relation: str) -> "EvaluationMode":
        """`self` means the default mode, COMPUTE_IF_NECESSARY."""
        if relation == "self":
            return cls.COMPUTE_IF_NECESSARY
        return cls(relation)


@dataclass(frozen=True)
class SimilaritiesResult:
    cell_reference: Optional[CellReference]
    labels: Tuple[LabelMapping, ...] = ()
