"""
SheetServer — Delta JSON Schemas
==================================

What:  Pydantic models for the JSON bodies exchanged by the spreadsheet routes,
       plus converters between those models and the immutable domain values.
How:   Request bodies are validated with model_validate() and converted with
       delta_from_json() / label_mapping_from_json(); reference text that does
       not parse raises InvalidInputError (400), never a 422.
       Handler results are rendered with to_json(); empty members are omitted
       through model_dump(exclude_defaults=True).

Delta JSON:
    {
        "cells": {"B2": {"formula": {"text": "=1+2", "value": 3}, "formatted": "3"}},
        "labels": [{"label": "Total", "reference": "B2"}],
        "window": ["A1:C3", {"home": "B2", "xOffset": 0, "yOffset": 0, "width": 400, "height": 300}],
        "columnWidths": {"B": 100},
        "rowHeights": {"2": 30},
        "selection": "B2"
    }
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from sheetserver.exceptions import InvalidInputError
from sheetserver.models.delta import Cell, Delta, Formula, LabelMapping, SimilaritiesResult
from sheetserver.models.reference import (
    CellBox,
    CellRange,
    CellReference,
    ColumnReference,
    LabelName,
    RowReference,
    Viewport,
)
from sheetserver.models.selection import Selection


# ══════════════════════════════════════════════════════════════════════════
# Wire Models
# ══════════════════════════════════════════════════════════════════════════


class FormulaSchema(BaseModel):
    text: str = Field(description="Formula text as typed by the user")
    value: Any = Field(default=None, description="Computed value, absent when not evaluated")


class CellSchema(BaseModel):
    formula: FormulaSchema
    formatted: Optional[str] = Field(default=None, description="Formatted rendering of the value")


class LabelMappingSchema(BaseModel):
    label: str = Field(description="Label name")
    reference: str = Field(description="Target cell in A1 notation")


class ViewportSchema(BaseModel):
    home: str = Field(description="Top-left cell of the viewport")
    x_offset: float = Field(default=0, alias="xOffset", ge=0)
    y_offset: float = Field(default=0, alias="yOffset", ge=0)
    width: float = Field(gt=0)
    height: float = Field(gt=0)

    model_config = {"populate_by_name": True}


class DeltaSchema(BaseModel):
    """
    What:  JSON shape of a Delta.
    Who:   Request body of cell POST/GET/DELETE and column/row operations;
           response body of every delta-producing operation.
    """
    cells: Dict[str, CellSchema] = Field(default_factory=dict)
    labels: List[LabelMappingSchema] = Field(default_factory=list)
    window: List[Union[str, ViewportSchema]] = Field(default_factory=list)
    column_widths: Dict[str, float] = Field(default_factory=dict, alias="columnWidths")
    row_heights: Dict[str, float] = Field(default_factory=dict, alias="rowHeights")
    selection: Optional[str] = None

    model_config = {"populate_by_name": True}


class SimilaritiesSchema(BaseModel):
    cell_reference: Optional[str] = Field(default=None, alias="cell-reference")
    labels: List[LabelMappingSchema] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class ResolveSchema(BaseModel):
    cell_reference: str = Field(alias="cell-reference")

    model_config = {"populate_by_name": True}


class RangeSchema(BaseModel):
    range: str = Field(description="Cell range covered by the viewport")


class CellBoxSchema(BaseModel):
    reference: str
    x: float
    y: float
    width: float
    height: float


# ══════════════════════════════════════════════════════════════════════════
# JSON → Domain
# ══════════════════════════════════════════════════════════════════════════


def _validation_error(error: ValidationError) -> InvalidInputError:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return InvalidInputError(
        f"Invalid request body: {location} {first.get('msg', '')}".strip(),
        context={"errors": len(error.errors())},
    )


def _mapping(schema: LabelMappingSchema) -> LabelMapping:
    return LabelMapping(LabelName.parse(schema.label), CellReference.parse(schema.reference))


def _rectangle(item: Union[str, ViewportSchema]):
    if isinstance(item, str):
        return CellRange.parse(item)
    return Viewport(
        CellReference.parse(item.home), item.x_offset, item.y_offset, item.width, item.height
    )


def _selection(text: str) -> Selection:
    """A single cell or a cell range such as `A1:B2`."""
    if ":" not in text:
        return Selection.one(CellReference.parse(text))
    cells = CellRange.parse(text)
    return Selection.range(cells.begin, cells.end)


def delta_from_json(payload: Any) -> Delta:
    """Validate a JSON body and build a Delta; InvalidInputError on any problem."""
    try:
        schema = DeltaSchema.model_validate(payload)
    except ValidationError as e:
        raise _validation_error(e)

    cells = [
        Cell(
            CellReference.parse(reference),
            Formula(cell.formula.text, cell.formula.value),
            cell.formatted,
        )
        for reference, cell in schema.cells.items()
    ]
    return Delta(
        cells=tuple(cells),
        labels=tuple(_mapping(label) for label in schema.labels),
        window=tuple(_rectangle(item) for item in schema.window),
        column_widths={ColumnReference.parse(k): v for k, v in schema.column_widths.items()},
        row_heights={RowReference.parse(k): v for k, v in schema.row_heights.items()},
        selection=None if schema.selection is None else _selection(schema.selection),
    )


def label_mapping_from_json(payload: Any) -> LabelMapping:
    try:
        schema = LabelMappingSchema.model_validate(payload)
    except ValidationError as e:
        raise _validation_error(e)
    return _mapping(schema)


# ══════════════════════════════════════════════════════════════════════════
# Domain → JSON
# ══════════════════════════════════════════════════════════════════════════


def _mapping_schema(mapping: LabelMapping) -> LabelMappingSchema:
    return LabelMappingSchema(label=mapping.label.name, reference=str(mapping.reference))


def _window_item(rectangle) -> Union[str, ViewportSchema]:
    if isinstance(rectangle, Viewport):
        return ViewportSchema(
            home=str(rectangle.home),
            x_offset=rectangle.x_offset,
            y_offset=rectangle.y_offset,
            width=rectangle.width,
            height=rectangle.height,
        )
    return str(rectangle)


def delta_schema(delta: Delta) -> DeltaSchema:
    return DeltaSchema(
        cells={
            str(cell.reference): CellSchema(
                formula=FormulaSchema(text=cell.formula.text, value=cell.formula.value),
                formatted=cell.formatted,
            )
            for cell in delta.cells
        },
        labels=[_mapping_schema(mapping) for mapping in delta.labels],
        window=[_window_item(rectangle) for rectangle in delta.window],
        column_widths={str(column): width for column, width in delta.column_widths.items()},
        row_heights={str(row): height for row, height in delta.row_heights.items()},
        selection=None if delta.selection is None else str(delta.selection),
    )


def to_json(result: Any) -> Dict[str, Any]:
    """Render any handler result; members left at their defaults are omitted."""
    if isinstance(result, Delta):
        schema: BaseModel = delta_schema(result)
    elif isinstance(result, SimilaritiesResult):
        schema = SimilaritiesSchema(
            cell_reference=None if result.cell_reference is None else str(result.cell_reference),
            labels=[_mapping_schema(mapping) for mapping in result.labels],
        )
    elif isinstance(result, CellReference):
        schema = ResolveSchema(cell_reference=str(result))
    elif isinstance(result, CellRange):
        schema = RangeSchema(range=str(result))
    elif isinstance(result, CellBox):
        schema = CellBoxSchema(
            reference=str(result.reference),
            x=result.x,
            y=result.y,
            width=result.width,
            height=result.height,
        )
    elif isinstance(result, LabelMapping):
        schema = _mapping_schema(result)
    else:
        raise TypeError(f"Cannot render {type(result).__name__}")
    return schema.model_dump(mode="json", by_alias=True, exclude_defaults=True)
