"""
SheetServer — Window Filter Tests
===================================

What we test:
    ✅ No window (or an empty one) keeps every cell and clears the window
    ✅ Cells outside the window are dropped, whatever the cell's $ kind
    ✅ Viewports are resolved through the engine
    ✅ preserve_window echoes the request window, otherwise it is cleared
    ✅ The input delta is never modified
"""

from sheetserver.models.delta import Delta
from sheetserver.models.reference import CellRange, Viewport
from sheetserver.services.metadata import annotate
from sheetserver.services.window import filter_window


def _result(make_cell, *references):
    return Delta.with_cells(make_cell(reference) for reference in references)


class TestNoWindow:

    def test_absent_request_keeps_all_cells(self, make_cell, mock_engine):
        result = _result(make_cell, "A1", "Z99")
        filtered = filter_window(result, None, mock_engine)
        assert filtered.cells == result.cells
        assert filtered.window == ()

    def test_empty_window_keeps_all_cells(self, make_cell, mock_engine):
        result = _result(make_cell, "A1", "Z99")
        filtered = filter_window(result, Delta.EMPTY, mock_engine, preserve_window=True)
        assert filtered.cells == result.cells
        assert filtered.window == ()

    def test_result_window_is_cleared(self, make_cell, mock_engine):
        result = _result(make_cell, "A1").set_window([CellRange.parse("A1:B2")])
        assert filter_window(result, None, mock_engine).window == ()

    def test_full_sheet_window_matches_no_window(self, make_cell, mock_engine):
        result = _result(make_cell, "A1", "C7")
        request = Delta(window=(CellRange.whole_sheet(),))
        unfiltered = annotate(filter_window(result, None, mock_engine), mock_engine)
        filtered = annotate(filter_window(result, request, mock_engine), mock_engine)
        assert filtered.cells == unfiltered.cells
        assert filtered.column_widths == unfiltered.column_widths
        assert filtered.row_heights == unfiltered.row_heights


class TestFiltering:

    def test_cells_outside_window_are_dropped(self, make_cell, mock_engine):
        result = _result(make_cell, "A1", "B2", "D4")
        request = Delta(window=(CellRange.parse("A1:B2"),))
        filtered = filter_window(result, request, mock_engine)
        assert [str(r) for r in filtered.references()] == ["A1", "B2"]

    def test_absolute_cell_inside_window_is_kept(self, make_cell, mock_engine):
        result = _result(make_cell, "$B$2")
        request = Delta(window=(CellRange.parse("A1:B2"),))
        assert len(filter_window(result, request, mock_engine).cells) == 1

    def test_union_of_rectangles(self, make_cell, mock_engine):
        result = _result(make_cell, "A1", "C3", "E5")
        request = Delta(window=(CellRange.parse("A1"), CellRange.parse("E5:F6")))
        filtered = filter_window(result, request, mock_engine)
        assert [str(r) for r in filtered.references()] == ["A1", "E5"]

    def test_viewport_is_resolved_by_engine(self, make_cell, memory_engine):
        result = _result(make_cell, "A1", "B2", "E11", "F12")
        request = Delta(window=(Viewport.parse("B2:0:0:400:300"),))
        filtered = filter_window(result, request, memory_engine)
        assert [str(r) for r in filtered.references()] == ["B2", "E11"]

    def test_input_is_not_modified(self, make_cell, mock_engine):
        result = _result(make_cell, "A1", "D4")
        request = Delta(window=(CellRange.parse("A1"),))
        filter_window(result, request, mock_engine)
        assert len(result.cells) == 2


class TestResponseWindow:

    def test_window_cleared_by_default(self, make_cell, mock_engine):
        window = (CellRange.parse("A1:B2"),)
        filtered = filter_window(_result(make_cell, "A1"), Delta(window=window), mock_engine)
        assert filtered.window == ()

    def test_window_preserved_verbatim(self, make_cell, memory_engine):
        window = (Viewport.parse("B2:0:0:400:300"), CellRange.parse("A1"))
        filtered = filter_window(
            _result(make_cell, "A1"), Delta(window=window), memory_engine, preserve_window=True
        )
        assert filtered.window == window
