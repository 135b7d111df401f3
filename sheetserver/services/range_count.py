"""
SheetServer — Range to (start, count) Conversion
==================================================

What:  Converts a column/row selection into the (start, count) pair the
       engine's insert/delete operations take.
How:   ONE → (value, 1); closed RANGE → (lower, upper - lower + 1).
       Insert-before/after starts use saturating arithmetic so the start
       never leaves the sheet.

Examples:
    B     → (B, 1)
    B:D   → (B, 3)
    B:    → InvalidInputError("Range with both columns required=B:")
    C, insert before 2 → start A
    A, insert before 3 → start A (clamped)
"""

from typing import Tuple

from sheetserver.exceptions import InvalidInputError, UnsupportedOperationError
from sheetserver.models.reference import ColumnOrRow
from sheetserver.models.selection import Selection, SelectionKind


def to_start_and_count(selection: Selection, noun: str) -> Tuple[ColumnOrRow, int]:
    """
    Args:
        selection:  ONE or RANGE of ColumnReference / RowReference
        noun:       "columns" or "rows", used in the error message

    Raises:
        InvalidInputError:          open range
        UnsupportedOperationError:  any other selection shape
    """
    if selection.kind is SelectionKind.ONE:
        return selection.value, 1
    if selection.kind is SelectionKind.RANGE:
        if not selection.is_closed():
            raise InvalidInputError(
                f"Range with both {noun} required={selection}",
                value=str(selection),
            )
        return selection.lower, selection.upper.value - selection.lower.value + 1
    raise UnsupportedOperationError(
        f'Selection "{selection}" is not supported for {noun}',
        context={"selection": selection.kind.value},
    )


def insert_before_start(reference: ColumnOrRow, count: int) -> ColumnOrRow:
    """Start of `count` columns/rows inserted immediately before `reference`."""
    return reference.add_saturated(-count)


def insert_after_start(reference: ColumnOrRow) -> ColumnOrRow:
    """Start of columns/rows inserted immediately after `reference`."""
    return reference.add_saturated(1)
