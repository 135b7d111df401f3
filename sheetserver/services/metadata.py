"""
SheetServer — Delta Metadata Annotator
========================================

What:  Adds column widths and row heights for exactly the columns and rows
       the response's cells occupy.
How:   Column/row references are normalized to RELATIVE before use as keys,
       so `$B` and `B` share one entry and one engine query. Each key is
       queried once; only strictly positive sizes are kept.

Invariants:
    - keys of column_widths ⊆ columns of delta.cells (same for rows)
    - every stored value > 0
    - no cells → both maps empty
"""

import logging
from typing import Dict

from sheetserver.models.delta import Delta
from sheetserver.models.reference import ColumnReference, RowReference
from sheetserver.services.engine_base import SpreadsheetEngine

logger = logging.getLogger(__name__)


def annotate(delta: Delta, engine: SpreadsheetEngine) -> Delta:
    """Return `delta` with fresh column_widths / row_heights maps."""
    seen_columns = set()
    seen_rows = set()
    widths: Dict[ColumnReference, float] = {}
    heights: Dict[RowReference, float] = {}

    for cell in delta.cells:
        column = cell.reference.column.relative()
        if column not in seen_columns:
            seen_columns.add(column)
            width = engine.column_width(column)
            if width > 0:
                widths[column] = width

        row = cell.reference.row.relative()
        if row not in seen_rows:
            seen_rows.add(row)
            height = engine.row_height(row)
            if height > 0:
                heights[row] = height

    logger.debug(
        "Annotated %d cells: %d column widths, %d row heights",
        len(delta.cells), len(widths), len(heights),
    )
    return delta.set_column_widths(widths).set_row_heights(heights)
