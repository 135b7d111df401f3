"""
SheetServer — Spreadsheet Reference Values
============================================

What:  Immutable value types addressing parts of a sheet: columns, rows, cells,
       cell ranges, label names, viewports and cell boxes.
How:   Frozen dataclasses parsed from A1 text. Indexes are 0-based internally
       (column A = 0, row 1 = 0) and rendered back to A1 text by __str__.
Who:   Used by the selection parser, the dispatcher, the engine contract and the
       wire schemas.

Sheet bounds:
    Columns A..XFD (16384 columns), rows 1..1048576.
    add_saturated() clamps at these bounds instead of failing or wrapping.

Reference kinds:
    `$A$1` is ABSOLUTE, `A1` is RELATIVE. Equality includes the kind, so
    `$A` != `A`; callers that need position-only keys use relative().
"""

import enum
import math
import re
from dataclasses import dataclass, replace
from typing import Iterator, Union

from sheetserver.exceptions import InvalidInputError

MAX_COLUMNS = 16384
MAX_ROWS = 1048576

_COLUMN_PATTERN = re.compile(r"^(\$?)([A-Za-z]{1,3})$")
_ROW_PATTERN = re.compile(r"^(\$?)([1-9][0-9]*)$")
_CELL_PATTERN = re.compile(r"^(\$?)([A-Za-z]{1,3})(\$?)([1-9][0-9]*)$")
_LABEL_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")

LABEL_MAX_LENGTH = 255


class ReferenceKind(str, enum.Enum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"

    @property
    def prefix(self) -> str:
        return "$" if self is ReferenceKind.ABSOLUTE else ""

    @classmethod
    def from_prefix(cls, dollar: str) -> "ReferenceKind":
        return cls.ABSOLUTE if dollar else cls.RELATIVE


def column_letters_to_index(letters: str) -> int:
    """Convert column letters (A, AA, XFD) to a 0-based index."""
    index = 0
    for char in letters.upper():
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def column_index_to_letters(index: int) -> str:
    """Convert a 0-based column index to column letters."""
    chunks = []
    current = index + 1
    while current > 0:
        current -= 1
        chunks.append(chr(ord("A") + (current % 26)))
        current //= 26
    return "".join(reversed(chunks))


def _clamp(value: int, upper: int) -> int:
    return max(0, min(value, upper - 1))


@dataclass(frozen=True, order=True)
class ColumnReference:
    value: int
    kind: ReferenceKind = ReferenceKind.RELATIVE

    @classmethod
    def parse(cls, text: str) -> "ColumnReference":
        match = _COLUMN_PATTERN.match(text)
        if not match:
            raise InvalidInputError(f'Invalid column "{text}"', value=text)
        index = column_letters_to_index(match.group(2))
        if index >= MAX_COLUMNS:
            raise InvalidInputError(f'Invalid column "{text}"', value=text)
        return cls(index, ReferenceKind.from_prefix(match.group(1)))

    def add_saturated(self, delta: int) -> "ColumnReference":
        return replace(self, value=_clamp(self.value + delta, MAX_COLUMNS))

    def relative(self) -> "ColumnReference":
        return replace(self, kind=ReferenceKind.RELATIVE)

    def __str__(self) -> str:
        return self.kind.prefix + column_index_to_letters(self.value)


@dataclass(frozen=True, order=True)
class RowReference:
    value: int
    kind: ReferenceKind = ReferenceKind.RELATIVE

    @classmethod
    def parse(cls, text: str) -> "RowReference":
        match = _ROW_PATTERN.match(text)
        if not match:
            raise InvalidInputError(f'Invalid row "{text}"', value=text)
        index = int(match.group(2)) - 1
        if index >= MAX_ROWS:
            raise InvalidInputError(f'Invalid row "{text}"', value=text)
        return cls(index, ReferenceKind.from_prefix(match.group(1)))

    def add_saturated(self, delta: int) -> "RowReference":
        return replace(self, value=_clamp(self.value + delta, MAX_ROWS))

    def relative(self) -> "RowReference":
        return replace(self, kind=ReferenceKind.RELATIVE)

    def __str__(self) -> str:
        return f"{self.kind.prefix}{self.value + 1}"


ColumnOrRow = Union[ColumnReference, RowReference]


@dataclass(frozen=True)
class CellReference:
    column: ColumnReference
    row: RowReference

    @classmethod
    def of(cls, column: int, row: int) -> "CellReference":
        """Relative reference from 0-based column and row indexes."""
        return cls(ColumnReference(column), RowReference(row))

    @classmethod
    def parse(cls, text: str) -> "CellReference":
        match = _CELL_PATTERN.match(text)
        if not match:
            raise InvalidInputError(f'Invalid cell reference "{text}"', value=text)
        column = column_letters_to_index(match.group(2))
        row = int(match.group(4)) - 1
        if column >= MAX_COLUMNS or row >= MAX_ROWS:
            raise InvalidInputError(f'Invalid cell reference "{text}"', value=text)
        return cls(
            ColumnReference(column, ReferenceKind.from_prefix(match.group(1))),
            RowReference(row, ReferenceKind.from_prefix(match.group(3))),
        )

    @staticmethod
    def is_cell_text(text: str) -> bool:
        try:
            CellReference.parse(text)
        except InvalidInputError:
            return False
        return True

    def relative(self) -> "CellReference":
        return CellReference(self.column.relative(), self.row.relative())

    def sort_key(self) -> tuple:
        """Row-major ordering key, ignoring reference kinds."""
        return (self.row.value, self.column.value)

    def __str__(self) -> str:
        return f"{self.column}{self.row}"


@dataclass(frozen=True)
class CellRange:
    """
    Closed rectangular range of cells.

    Construction normalizes the corners so `begin` is top-left and `end` is
    bottom-right whatever order the corners were given in.
    """

    begin: CellReference
    end: CellReference

    def __post_init__(self):
        columns = sorted((self.begin.column, self.end.column), key=lambda c: c.value)
        rows = sorted((self.begin.row, self.end.row), key=lambda r: r.value)
        object.__setattr__(self, "begin", CellReference(columns[0], rows[0]))
        object.__setattr__(self, "end", CellReference(columns[1], rows[1]))

    @classmethod
    def parse(cls, text: str) -> "CellRange":
        """Parse `A1:B2`, or a single cell `A1` as a one-cell range."""
        if text.count(":") > 1:
            raise InvalidInputError(f'Invalid cell range "{text}"', value=text)
        begin, _, end = text.partition(":")
        try:
            first = CellReference.parse(begin)
            last = CellReference.parse(end) if end else first
        except InvalidInputError:
            raise InvalidInputError(f'Invalid cell range "{text}"', value=text)
        return cls(first, last)

    @classmethod
    def whole_sheet(cls) -> "CellRange":
        return cls(CellReference.of(0, 0), CellReference.of(MAX_COLUMNS - 1, MAX_ROWS - 1))

    @property
    def width(self) -> int:
        return self.end.column.value - self.begin.column.value + 1

    @property
    def height(self) -> int:
        return self.end.row.value - self.begin.row.value + 1

    @property
    def count(self) -> int:
        return self.width * self.height

    def contains(self, cell: CellReference) -> bool:
        return (
            self.begin.column.value <= cell.column.value <= self.end.column.value
            and self.begin.row.value <= cell.row.value <= self.end.row.value
        )

    def __iter__(self) -> Iterator[CellReference]:
        """Yields relative references row by row, left to right."""
        for row in range(self.begin.row.value, self.end.row.value + 1):
            for column in range(self.begin.column.value, self.end.column.value + 1):
                yield CellReference.of(column, row)

    def __str__(self) -> str:
        if self.begin == self.end:
            return str(self.begin)
        return f"{self.begin}:{self.end}"


@dataclass(frozen=True)
class LabelName:
    name: str

    @classmethod
    def parse(cls, text: str) -> "LabelName":
        if (
            not text
            or len(text) > LABEL_MAX_LENGTH
            or not _LABEL_PATTERN.match(text)
            or CellReference.is_cell_text(text)
        ):
            raise InvalidInputError(f'Invalid label "{text}"', value=text)
        return cls(text)

    def __str__(self) -> str:
        return self.name


CellOrLabel = Union[CellReference, LabelName]


def parse_cell_or_label(text: str) -> CellOrLabel:
    """Parse text that may name either a cell or a label."""
    if CellReference.is_cell_text(text):
        return CellReference.parse(text)
    try:
        return LabelName.parse(text)
    except InvalidInputError:
        raise InvalidInputError(f'Invalid cell or label "{text}"', value=text)


def _number_text(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


@dataclass(frozen=True)
class Viewport:
    """
    Visible area: a home cell plus a pixel offset into it and a pixel size.

    Text form: HOME:XOFFSET:YOFFSET:WIDTH:HEIGHT, e.g. B2:0:0:400:300
    """

    home: CellReference
    x_offset: float
    y_offset: float
    width: float
    height: float

    def __post_init__(self):
        numbers = (self.x_offset, self.y_offset, self.width, self.height)
        if not all(math.isfinite(n) for n in numbers):
            raise InvalidInputError("Viewport numbers must be finite", value=str(self))
        if self.x_offset < 0 or self.y_offset < 0:
            raise InvalidInputError("Viewport offsets must be >= 0", value=str(self))
        if self.width <= 0 or self.height <= 0:
            raise InvalidInputError("Viewport width and height must be > 0", value=str(self))

    @classmethod
    def parse(cls, text: str) -> "Viewport":
        parts = text.split(":")
        if len(parts) != 5:
            raise InvalidInputError(f'Invalid viewport "{text}"', value=text)
        try:
            home = CellReference.parse(parts[0])
            numbers = [float(part) for part in parts[1:]]
        except (InvalidInputError, ValueError):
            raise InvalidInputError(f'Invalid viewport "{text}"', value=text)
        return cls(home, *numbers)

    def __str__(self) -> str:
        numbers = (self.x_offset, self.y_offset, self.width, self.height)
        return ":".join([str(self.home)] + [_number_text(n) for n in numbers])


@dataclass(frozen=True)
class CellBox:
    """Pixel rectangle occupied by a single cell."""

    reference: CellReference
    x: float
    y: float
    width: float
    height: float
