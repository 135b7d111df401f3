"""
SheetServer — Operation Handlers
==================================

What:  One async handler per Operation tag. Each handler validates what is
       specific to its operation, calls the engine or label store, and
       post-processes any resulting Delta (window filter, then metadata).
How:   Handlers receive an OperationContext built by the dispatcher, which
       has already matched the route, rejected body cells where the entry
       forbids them, rejected unsupported query parameters and parsed the
       selection.
Who:   Registered in the dispatch table in services/dispatcher.py.

Ordering rule:
    Every check that can reject a request runs before the first engine call,
    so invalid input never causes a partial mutation.

Handler results (serialized by schemas/delta.py):
    Delta               cell / column / row operations
    CellReference       RESOLVE
    SimilaritiesResult  SIMILARITIES
    CellRange           COMPUTE_RANGE
    CellBox             CELL_BOX
    LabelMapping        LOAD_LABEL / SAVE_LABEL
    None                DELETE_LABEL (204 No Content)
"""

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from sheetserver.config import settings
from sheetserver.exceptions import (
    InvalidInputError,
    NotFoundError,
    UnsupportedOperationError,
)
from sheetserver.models.delta import Delta, EvaluationMode, LabelMapping, SimilaritiesResult
from sheetserver.models.reference import (
    CellBox,
    CellRange,
    CellReference,
    LabelName,
    Viewport,
    parse_cell_or_label,
)
from sheetserver.models.selection import ResourceKind, Selection, SelectionKind
from sheetserver.services import batch_loader
from sheetserver.services.engine_base import SpreadsheetEngine
from sheetserver.services.label_store import LabelStore
from sheetserver.services.metadata import annotate
from sheetserver.services.range_count import (
    insert_after_start,
    insert_before_start,
    to_start_and_count,
)
from sheetserver.services.selection import resolve_label
from sheetserver.services.window import filter_window

logger = logging.getLogger(__name__)

VIEWPORT_PARAMETERS = ("home", "xOffset", "yOffset", "width", "height")


class Operation(str, enum.Enum):
    LOAD = "load"
    SAVE = "save"
    DELETE = "delete"
    INSERT = "insert"
    INSERT_BEFORE = "insert-before"
    INSERT_AFTER = "insert-after"
    FILL = "fill"
    CLEAR = "clear"
    RESOLVE = "resolve"
    SIMILARITIES = "similarities"
    COMPUTE_RANGE = "compute-range"
    CELL_BOX = "cell-box"
    LOAD_LABEL = "load-label"
    SAVE_LABEL = "save-label"
    DELETE_LABEL = "delete-label"


@dataclass(frozen=True)
class DispatchRequest:
    """Everything the dispatcher needs from one HTTP request."""

    spreadsheet_id: str
    resource: str
    method: str
    relation: str = "self"
    selection_text: str = ""
    body: Any = None
    parameters: Mapping[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationContext:
    request: DispatchRequest
    resource: ResourceKind
    selection: Selection
    engine: SpreadsheetEngine
    label_store: LabelStore

    @property
    def body_delta(self) -> Optional[Delta]:
        body = self.request.body
        return body if isinstance(body, Delta) else None

    def parameter(self, name: str) -> Optional[str]:
        values = self.request.parameters.get(name)
        return values[0] if values else None


# ════════════════════════════════════════════════════════════════════════
# Validation helpers
# ════════════════════════════════════════════════════════════════════════

def required_parameter(ctx: OperationContext, name: str) -> str:
    value = ctx.parameter(name)
    if value is None:
        raise InvalidInputError(f"Missing parameter {name}", parameter=name)
    return value


def number_parameter(ctx: OperationContext, name: str) -> float:
    """Required finite number."""
    text = required_parameter(ctx, name)
    try:
        value = float(text)
    except ValueError:
        value = math.nan
    if not math.isfinite(value):
        raise InvalidInputError(
            f"Invalid value for parameter: {name}", value=text, parameter=name
        )
    return value


def count_parameter(ctx: OperationContext, name: str, minimum: int) -> Optional[int]:
    """Optional integer parameter; None when absent."""
    text = ctx.parameter(name)
    if text is None:
        return None
    try:
        value = int(text)
    except ValueError:
        raise InvalidInputError(
            f"Invalid value for parameter: {name}", value=text, parameter=name
        )
    if value < minimum:
        raise InvalidInputError(
            f"Invalid value for parameter: {name}", value=text, parameter=name
        )
    return value


def viewport_from_parameters(ctx: OperationContext) -> Viewport:
    """Viewport rebuilt from home/xOffset/yOffset/width/height."""
    missing = [name for name in VIEWPORT_PARAMETERS if ctx.parameter(name) is None]
    if missing:
        raise InvalidInputError(
            f"Missing parameter {missing[0]}",
            parameter=missing[0],
            context={"missing": missing},
        )
    home_text = ctx.parameter("home")
    try:
        home = CellReference.parse(home_text)
    except InvalidInputError:
        raise InvalidInputError(
            "Invalid value for parameter: home", value=home_text, parameter="home"
        )
    numbers = [number_parameter(ctx, name) for name in VIEWPORT_PARAMETERS[1:]]
    return Viewport(home, *numbers)


def reject_cells(body: Any) -> None:
    """Body must not carry cells; run by the dispatcher ahead of parameter checks."""
    if isinstance(body, Delta) and body.cells:
        delta = body
        raise InvalidInputError(
            "Expected delta without cells",
            context={"cells": [str(r) for r in delta.references()]},
        )


def require_delta(ctx: OperationContext) -> Delta:
    delta = ctx.body_delta
    if delta is None:
        raise InvalidInputError("Required resource missing")
    return delta


def closed_cell_range(selection: Selection, operation: str) -> CellRange:
    if selection.kind is SelectionKind.RANGE:
        if not selection.is_closed():
            raise InvalidInputError(
                f"Range with both cells required={selection}", value=str(selection)
            )
        return CellRange(selection.lower, selection.upper)
    raise UnsupportedOperationError(f'{operation} is not supported for selection "{selection}"')


def shape(ctx: OperationContext, result: Delta, preserve_window: bool = False) -> Delta:
    """Window filter, then metadata annotation; the request selection is echoed."""
    filtered = filter_window(result, ctx.body_delta, ctx.engine, preserve_window)
    body = ctx.body_delta
    if body is not None and body.selection is not None:
        filtered = filtered.set_selection(body.selection)
    return annotate(filtered, ctx.engine)


def unsupported(ctx: OperationContext, operation: Operation) -> UnsupportedOperationError:
    return UnsupportedOperationError(
        f'{operation.value} is not supported for {ctx.resource.value} "{ctx.selection}"',
        context={"resource": ctx.resource.value, "selection": ctx.selection.kind.value},
    )


# ════════════════════════════════════════════════════════════════════════
# Cells
# ════════════════════════════════════════════════════════════════════════

def _open_range(selection: Selection) -> CellRange:
    sheet = CellRange.whole_sheet()
    lower = selection.lower or sheet.begin
    upper = selection.upper or sheet.end
    return CellRange(lower, upper)


async def load(ctx: OperationContext) -> Delta:
    mode = EvaluationMode.from_relation(ctx.request.relation)
    selection = ctx.selection
    engine = ctx.engine

    if selection.kind is SelectionKind.ONE:
        result = engine.load_cell(selection.value, mode)
    elif selection.kind is SelectionKind.RANGE:
        if selection.is_closed():
            result = batch_loader.load_range(CellRange(selection.lower, selection.upper), mode, engine)
        else:
            result = engine.load_cells(_open_range(selection), mode)
    elif selection.kind is SelectionKind.LIST:
        batch_loader.check_batch_size(len(selection.values))
        result = batch_loader.load_references(selection.values, mode, engine)
    elif selection.kind is SelectionKind.ALL:
        viewport = viewport_from_parameters(ctx)
        result = engine.load_cells(engine.range(viewport), mode)
    else:
        raise unsupported(ctx, Operation.LOAD)
    return shape(ctx, result)


async def save(ctx: OperationContext) -> Delta:
    delta = require_delta(ctx)
    selection = ctx.selection

    if selection.kind is SelectionKind.ONE:
        if len(delta.cells) != 1:
            raise InvalidInputError(
                f"Expected 1 cell got {len(delta.cells)}",
                context={"cells": [str(r) for r in delta.references()]},
            )
        cell = delta.cells[0]
        if cell.reference.relative() != selection.value.relative():
            raise InvalidInputError(
                f"Cell {cell.reference} does not match {selection.value}",
                value=str(cell.reference),
            )
        return shape(ctx, ctx.engine.save_cell(cell))

    if selection.kind is not SelectionKind.RANGE:
        raise unsupported(ctx, Operation.SAVE)
    cells = closed_cell_range(selection, "Save")
    batch_loader.check_batch_size(cells.count)
    return shape(ctx, ctx.engine.fill_cells(delta.cells, cells, cells), preserve_window=True)


async def fill(ctx: OperationContext) -> Delta:
    delta = require_delta(ctx)
    destination = closed_cell_range(ctx.selection, "Fill")
    source_text = ctx.parameter("from")
    try:
        source = CellRange.parse(source_text) if source_text is not None else destination
    except InvalidInputError:
        raise InvalidInputError(
            "Invalid value for parameter: from", value=source_text, parameter="from"
        )
    batch_loader.check_batch_size(destination.count)
    result = ctx.engine.fill_cells(delta.cells, source, destination)
    return shape(ctx, result, preserve_window=True)


async def delete_cell(ctx: OperationContext) -> Delta:
    if ctx.selection.kind is not SelectionKind.ONE:
        raise unsupported(ctx, Operation.DELETE)
    return shape(ctx, ctx.engine.delete_cell(ctx.selection.value))


# ════════════════════════════════════════════════════════════════════════
# Columns and rows
# ════════════════════════════════════════════════════════════════════════

def _noun(ctx: OperationContext) -> str:
    return "columns" if ctx.resource is ResourceKind.COLUMN else "rows"


def _insert(ctx: OperationContext, start, count: int) -> Delta:
    if ctx.resource is ResourceKind.COLUMN:
        return ctx.engine.insert_columns(start, count)
    return ctx.engine.insert_rows(start, count)


def _insert_count(ctx: OperationContext) -> int:
    required_parameter(ctx, "count")
    return count_parameter(ctx, "count", minimum=1)


def _whole_lines(ctx: OperationContext, lower, upper) -> CellRange:
    """Every cell of the columns or rows from lower to upper."""
    sheet = CellRange.whole_sheet()
    if ctx.resource is ResourceKind.COLUMN:
        return CellRange(
            CellReference(lower.relative(), sheet.begin.row),
            CellReference(upper.relative(), sheet.end.row),
        )
    return CellRange(
        CellReference(sheet.begin.column, lower.relative()),
        CellReference(sheet.end.column, upper.relative()),
    )


async def delete_columns_or_rows(ctx: OperationContext) -> Delta:
    start, count = to_start_and_count(ctx.selection, _noun(ctx))
    if ctx.resource is ResourceKind.COLUMN:
        result = ctx.engine.delete_columns(start, count)
    else:
        result = ctx.engine.delete_rows(start, count)
    return shape(ctx, result)


async def insert(ctx: OperationContext) -> Delta:
    start, count = to_start_and_count(ctx.selection, _noun(ctx))
    return shape(ctx, _insert(ctx, start, count))


async def insert_before(ctx: OperationContext) -> Delta:
    lower, _ = to_start_and_count(ctx.selection, _noun(ctx))
    count = _insert_count(ctx)
    return shape(ctx, _insert(ctx, insert_before_start(lower, count), count))


async def insert_after(ctx: OperationContext) -> Delta:
    lower, selected = to_start_and_count(ctx.selection, _noun(ctx))
    count = _insert_count(ctx)
    upper = lower.add_saturated(selected - 1)
    return shape(ctx, _insert(ctx, insert_after_start(upper), count))


async def clear(ctx: OperationContext) -> Delta:
    require_delta(ctx)
    lower, count = to_start_and_count(ctx.selection, _noun(ctx))
    cells = _whole_lines(ctx, lower, lower.add_saturated(count - 1))
    return shape(ctx, ctx.engine.clear_cells(cells))


# ════════════════════════════════════════════════════════════════════════
# References, similarities and geometry
# ════════════════════════════════════════════════════════════════════════

def _raw_text(ctx: OperationContext, operation: Operation) -> str:
    if ctx.selection.kind is not SelectionKind.ONE:
        raise unsupported(ctx, operation)
    return ctx.selection.value


async def parse_reference_expression(text: str, store: LabelStore):
    """Cell, label or range text → CellReference / CellRange; labels resolved."""
    try:
        if ":" in text:
            lower_text, _, upper_text = text.partition(":")
            parts = [parse_cell_or_label(lower_text), parse_cell_or_label(upper_text)]
        else:
            parts = [parse_cell_or_label(text)]
    except InvalidInputError:
        raise InvalidInputError(f'Invalid reference "{text}"', value=text)

    cells = []
    for part in parts:
        if isinstance(part, LabelName):
            part = await resolve_label(part, store.resolve)
        cells.append(part)
    if len(cells) == 1:
        return cells[0]
    return CellRange(cells[0], cells[1])


async def resolve(ctx: OperationContext) -> CellReference:
    text = _raw_text(ctx, Operation.RESOLVE)
    expression = await parse_reference_expression(text, ctx.label_store)
    return ctx.engine.resolve_cell_reference(expression)


async def similarities(ctx: OperationContext) -> SimilaritiesResult:
    text = _raw_text(ctx, Operation.SIMILARITIES)
    required_parameter(ctx, "count")
    count = min(count_parameter(ctx, "count", minimum=0), settings.similarities_max_count)

    try:
        cell_reference = CellReference.parse(text)
    except InvalidInputError:
        cell_reference = None

    labels = await ctx.label_store.find_similar(text, count)
    return SimilaritiesResult(cell_reference, tuple(labels))


async def compute_range(ctx: OperationContext) -> CellRange:
    if ctx.selection.kind is not SelectionKind.ONE:
        raise unsupported(ctx, Operation.COMPUTE_RANGE)
    return ctx.engine.range(ctx.selection.value)


async def cell_box(ctx: OperationContext) -> CellBox:
    if ctx.selection.kind is not SelectionKind.ONE:
        raise unsupported(ctx, Operation.CELL_BOX)
    x, y = ctx.selection.value
    return ctx.engine.cell_box(x, y)


# ════════════════════════════════════════════════════════════════════════
# Labels
# ════════════════════════════════════════════════════════════════════════

async def load_label(ctx: OperationContext) -> LabelMapping:
    label = LabelName.parse(_raw_text(ctx, Operation.LOAD_LABEL))
    mapping = await ctx.label_store.load(label)
    if mapping is None:
        raise NotFoundError(resource="label", resource_id=label.name)
    return mapping


async def save_label(ctx: OperationContext) -> LabelMapping:
    mapping = ctx.request.body
    if not isinstance(mapping, LabelMapping):
        raise InvalidInputError("Required resource missing")
    if ctx.selection.kind is SelectionKind.ONE:
        label = LabelName.parse(ctx.selection.value)
        if label.name.lower() != mapping.label.name.lower():
            raise InvalidInputError(
                f'Label "{mapping.label}" does not match "{label}"',
                value=mapping.label.name,
            )
    elif ctx.selection.kind is not SelectionKind.NONE:
        raise unsupported(ctx, Operation.SAVE_LABEL)
    return await ctx.label_store.save(mapping)


async def delete_label(ctx: OperationContext) -> None:
    label = LabelName.parse(_raw_text(ctx, Operation.DELETE_LABEL))
    await ctx.label_store.delete(label)
    return None
