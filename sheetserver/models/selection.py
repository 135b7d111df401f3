"""
SheetServer — Resource Selection Variant
==========================================

What:  Typed result of parsing the selection segment of a resource URL.
How:   One frozen dataclass tagged by SelectionKind. Factory classmethods build
       each shape so callers never set fields that do not belong to the kind.

Shapes:
    NONE   — empty selection text
    ONE    — a single value (cell, column, row, viewport, raw text, ...)
    RANGE  — lower/upper bounds, either of which may be None (open side)
    LIST   — several values in request order
    ALL    — "*", every cell
"""

import enum
from dataclasses import dataclass
from typing import Any, Optional, Tuple


class SelectionKind(str, enum.Enum):
    NONE = "none"
    ONE = "one"
    RANGE = "range"
    LIST = "list"
    ALL = "all"


@dataclass(frozen=True)
class Selection:
    kind: SelectionKind
    value: Any = None
    lower: Any = None
    upper: Any = None
    values: Tuple[Any, ...] = ()

    # ── Factories ─────────────────────────────────────────────────────────
    @classmethod
    def none(cls) -> "Selection":
        return cls(SelectionKind.NONE)

    @classmethod
    def one(cls, value: Any) -> "Selection":
        return cls(SelectionKind.ONE, value=value)

    @classmethod
    def range(cls, lower: Optional[Any], upper: Optional[Any]) -> "Selection":
        return cls(SelectionKind.RANGE, lower=lower, upper=upper)

    @classmethod
    def list(cls, values) -> "Selection":
        return cls(SelectionKind.LIST, values=tuple(values))

    @classmethod
    def all(cls) -> "Selection":
        return cls(SelectionKind.ALL)

    # ── Queries ───────────────────────────────────────────────────────────
    def is_closed(self) -> bool:
        """True for a RANGE carrying both bounds."""
        return (
            self.kind is SelectionKind.RANGE
            and self.lower is not None
            and self.upper is not None
        )

    def __str__(self) -> str:
        if self.kind is SelectionKind.ONE:
            return str(self.value)
        if self.kind is SelectionKind.RANGE:
            lower = "" if self.lower is None else str(self.lower)
            upper = "" if self.upper is None else str(self.upper)
            return f"{lower}:{upper}"
        if self.kind is SelectionKind.LIST:
            return ",".join(str(v) for v in self.values)
        if self.kind is SelectionKind.ALL:
            return "*"
        return ""


class ResourceKind(str, enum.Enum):
    """Resource segment of a spreadsheet URL."""

    CELL = "cell"
    COLUMN = "column"
    ROW = "row"
    CELL_REFERENCE = "cell-reference"
    LABEL = "label"
    VIEWPORT = "viewport"
    RANGE = "range"
    CELLBOX = "cellbox"
