"""
SheetServer — Range to (start, count) Tests
=============================================

What we test:
    ✅ count = upper - lower + 1 for closed ranges, 1 for singletons
    ✅ Open ranges are rejected with a message naming the selection
    ✅ Insert-before / insert-after starts clamp at the sheet edge
"""

import pytest

from sheetserver.exceptions import InvalidInputError, UnsupportedOperationError
from sheetserver.models.reference import MAX_COLUMNS, ColumnReference, RowReference
from sheetserver.models.selection import Selection
from sheetserver.services.range_count import (
    insert_after_start,
    insert_before_start,
    to_start_and_count,
)


class TestStartAndCount:

    def test_single_column(self):
        column = ColumnReference.parse("B")
        assert to_start_and_count(Selection.one(column), "columns") == (column, 1)

    def test_closed_column_range(self):
        selection = Selection.range(ColumnReference.parse("B"), ColumnReference.parse("D"))
        start, count = to_start_and_count(selection, "columns")
        assert str(start) == "B"
        assert count == 3

    def test_closed_row_range(self):
        selection = Selection.range(RowReference.parse("2"), RowReference.parse("11"))
        assert to_start_and_count(selection, "rows") == (RowReference(1), 10)

    def test_open_range_is_rejected(self):
        selection = Selection.range(ColumnReference.parse("B"), None)
        with pytest.raises(InvalidInputError) as exc_info:
            to_start_and_count(selection, "columns")
        assert exc_info.value.message == "Range with both columns required=B:"

    def test_open_lower_bound_is_rejected(self):
        selection = Selection.range(None, RowReference.parse("5"))
        with pytest.raises(InvalidInputError) as exc_info:
            to_start_and_count(selection, "rows")
        assert exc_info.value.message == "Range with both rows required=:5"

    def test_list_is_unsupported(self):
        with pytest.raises(UnsupportedOperationError):
            to_start_and_count(Selection.all(), "columns")


class TestInsertStarts:

    def test_before_moves_back_by_count(self):
        assert str(insert_before_start(ColumnReference.parse("C"), 2)) == "A"

    def test_before_clamps_at_first_column(self):
        assert str(insert_before_start(ColumnReference.parse("A"), 3)) == "A"

    def test_before_row(self):
        assert insert_before_start(RowReference.parse("10"), 4) == RowReference(5)

    def test_after_is_next(self):
        assert str(insert_after_start(ColumnReference.parse("C"))) == "D"

    def test_after_clamps_at_last_column(self):
        last = ColumnReference(MAX_COLUMNS - 1)
        assert insert_after_start(last) == last
