"""
SheetServer — Resource Selection Parser
=========================================

What:  Turns the raw selection segment of a URL into a typed Selection.
How:   Pure parsing except for label resolution, which awaits the resolver
       (normally SqlLabelStore.resolve). Labels inside a cell range are
       resolved before the range is built.
Who:   Called by the dispatcher before any validation or engine call.

Rules (checked in this order):
    ""           → Selection.none()
    "*"          → Selection.all() for cells, UnsupportedOperationError otherwise
    raw kinds    → cell-reference / label keep the text untouched
    geometry     → viewport / range parse a Viewport, cellbox parses "x,y"
    "a,b,c"      → Selection.list(...) (cells only)
    "a:b"        → Selection.range(lower, upper); an empty side is open
    otherwise    → Selection.one(value)

Failures:
    Malformed text   → InvalidInputError naming the text
    Unknown label    → UnknownReferenceError naming the label
"""

import math
from typing import Awaitable, Callable, Optional, Tuple

from sheetserver.exceptions import (
    InvalidInputError,
    UnknownReferenceError,
    UnsupportedOperationError,
)
from sheetserver.models.reference import (
    CellRange,
    CellReference,
    ColumnReference,
    LabelName,
    RowReference,
    Viewport,
    parse_cell_or_label,
)
from sheetserver.models.selection import ResourceKind, Selection

LabelResolver = Callable[[LabelName], Awaitable[Optional[CellReference]]]

BULK_KINDS = frozenset({ResourceKind.CELL})
LIST_KINDS = frozenset({ResourceKind.CELL})
RAW_TEXT_KINDS = frozenset({ResourceKind.CELL_REFERENCE, ResourceKind.LABEL})
VIEWPORT_KINDS = frozenset({ResourceKind.VIEWPORT, ResourceKind.RANGE})


async def resolve_label(label: LabelName, resolver: Optional[LabelResolver]) -> CellReference:
    """Target cell of a label; UnknownReferenceError when there is none."""
    target = await resolver(label) if resolver is not None else None
    if target is None:
        raise UnknownReferenceError(label.name)
    return target


def parse_coordinates(text: str) -> Tuple[float, float]:
    """Pixel coordinates written as `x,y`, both >= 0."""
    parts = text.split(",")
    try:
        if len(parts) != 2:
            raise ValueError(text)
        x, y = float(parts[0]), float(parts[1])
    except ValueError:
        raise InvalidInputError(f'Invalid cell box coordinates "{text}"', value=text)
    if not (math.isfinite(x) and math.isfinite(y)) or x < 0 or y < 0:
        raise InvalidInputError(f'Invalid cell box coordinates "{text}"', value=text)
    return x, y


async def _parse_value(text: str, kind: ResourceKind, resolver: Optional[LabelResolver]):
    if kind is ResourceKind.COLUMN:
        return ColumnReference.parse(text)
    if kind is ResourceKind.ROW:
        return RowReference.parse(text)
    value = parse_cell_or_label(text)
    if isinstance(value, LabelName):
        return await resolve_label(value, resolver)
    return value


def _ordered(lower, upper):
    if isinstance(lower, CellReference):
        cells = CellRange(lower, upper)
        return cells.begin, cells.end
    if upper.value < lower.value:
        return upper, lower
    return lower, upper


async def parse_selection(
    text: str,
    kind: ResourceKind,
    resolver: Optional[LabelResolver] = None,
) -> Selection:
    """
    Parse a selection for the given resource kind.

    Args:
        text:      selection segment exactly as it appeared in the URL
        kind:      resource the selection addresses
        resolver:  async label → cell lookup; None means no label resolves

    Raises:
        InvalidInputError, UnknownReferenceError, UnsupportedOperationError
    """
    if text == "":
        return Selection.none()

    if text == "*":
        if kind in BULK_KINDS:
            return Selection.all()
        raise UnsupportedOperationError(
            f'Selection "*" is not supported for {kind.value}',
            context={"resource": kind.value},
        )

    if kind in RAW_TEXT_KINDS:
        return Selection.one(text)
    if kind in VIEWPORT_KINDS:
        return Selection.one(Viewport.parse(text))
    if kind is ResourceKind.CELLBOX:
        return Selection.one(parse_coordinates(text))

    if "," in text:
        if kind not in LIST_KINDS:
            raise InvalidInputError(f'Invalid {kind.value} "{text}"', value=text)
        return Selection.list([await _parse_value(part, kind, resolver) for part in text.split(",")])

    if ":" in text:
        lower_text, _, upper_text = text.partition(":")
        if ":" in upper_text or (not lower_text and not upper_text):
            raise InvalidInputError(f'Invalid {kind.value} range "{text}"', value=text)
        lower = await _parse_value(lower_text, kind, resolver) if lower_text else None
        upper = await _parse_value(upper_text, kind, resolver) if upper_text else None
        if lower is not None and upper is not None:
            lower, upper = _ordered(lower, upper)
        return Selection.range(lower, upper)

    return Selection.one(await _parse_value(text, kind, resolver))
