"""
SheetServer — Delta Window Filter
===================================

What:  Restricts a response delta to the window the client declared on the
       request delta, and decides what window the response carries.
How:   Each rectangle of the request window is resolved to a CellRange
       (viewports through engine.range). Result cells outside every resolved
       range are dropped.

Response window:
    preserve_window=False  load, save-one, delete, insert → window cleared
    preserve_window=True   fill, save-range              → request window verbatim

    The two behaviours are intentionally different and must stay that way.
"""

from typing import Optional, Tuple

from sheetserver.models.delta import Delta, Rectangle
from sheetserver.models.reference import CellRange, Viewport
from sheetserver.services.engine_base import SpreadsheetEngine


def resolve_window(window: Tuple[Rectangle, ...], engine: SpreadsheetEngine) -> Tuple[CellRange, ...]:
    return tuple(
        engine.range(rectangle) if isinstance(rectangle, Viewport) else rectangle
        for rectangle in window
    )


def filter_window(
    result: Delta,
    request: Optional[Delta],
    engine: SpreadsheetEngine,
    preserve_window: bool = False,
) -> Delta:
    """
    Args:
        result:           delta returned by the engine
        request:          delta from the request body, or None
        engine:           resolves viewports to cell ranges
        preserve_window:  echo the request window instead of clearing it

    Returns:
        A new delta; `result` is never modified.
    """
    window = request.window if request is not None else ()
    if not window:
        return result.clear_window()

    ranges = resolve_window(window, engine)
    cells = [
        cell for cell in result.cells
        if any(cells_range.contains(cell.reference) for cells_range in ranges)
    ]
    filtered = result.set_cells(cells)
    return filtered.set_window(window) if preserve_window else filtered.clear_window()
