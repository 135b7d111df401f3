"""
SheetServer — Batch Cell Loader
=================================

What:  Loads many cells through the engine's single-cell load, skipping
       references an earlier load already returned.
How:   A sequential fold over the references with an explicit accumulator
       dict (relative CellReference → Cell). A single load may return extra
       cells (recomputed dependents); those are merged immediately, so a
       later reference already present never triggers its own engine call.

Example:
    Range B1:C3, where load_cell(B2) also returns B3:
        calls: B1, C1, B2, C2, C3        (no call for B3)
        result: union of every returned cell, one per reference
"""

import logging
from typing import Dict, Iterable

from sheetserver.config import settings
from sheetserver.exceptions import InvalidInputError
from sheetserver.models.delta import Cell, Delta, EvaluationMode
from sheetserver.models.reference import CellRange, CellReference
from sheetserver.services.engine_base import SpreadsheetEngine

logger = logging.getLogger(__name__)


def check_batch_size(count: int) -> None:
    """Reject batches larger than settings.max_batch_cells."""
    if count > settings.max_batch_cells:
        raise InvalidInputError(
            f"Too many cells requested: {count} (maximum {settings.max_batch_cells})",
            context={"count": count, "maximum": settings.max_batch_cells},
        )


def load_references(
    references: Iterable[CellReference],
    mode: EvaluationMode,
    engine: SpreadsheetEngine,
) -> Delta:
    loaded: Dict[CellReference, Cell] = {}
    calls = 0
    for reference in references:
        if reference.relative() in loaded:
            continue
        calls += 1
        for cell in engine.load_cell(reference, mode).cells:
            loaded[cell.reference.relative()] = cell

    logger.debug("Batch load: %d engine calls, %d cells", calls, len(loaded))
    if not loaded:
        return Delta.EMPTY
    return Delta.with_cells(loaded.values())


def load_range(cells: CellRange, mode: EvaluationMode, engine: SpreadsheetEngine) -> Delta:
    """Load every cell of a closed range in row-major order."""
    check_batch_size(cells.count)
    return load_references(cells, mode, engine)
