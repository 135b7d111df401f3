"""
SheetServer — Operation Dispatcher
====================================

What:  Routes a DispatchRequest to the handler for its
       (resource kind, HTTP method, link relation) and runs the shared pipeline.
How:   A dispatch table maps each key to a Handler (operation tag, handler
       function, accepted query parameters). The pipeline is the same for
       every operation:

           match route → reject body cells → reject unknown parameters
                       → parse selection
                       → handler (validate → execute → post-process)

Who:   Called by the spreadsheet routes with the spreadsheet's engine and a
       label store bound to the same spreadsheet.

Dispatch Table:
    cell            GET     self + evaluation modes   LOAD
    cell            POST    self                      SAVE
    cell            POST    fill                      FILL
    cell            DELETE  self                      DELETE
    column / row    POST    self / before / after     INSERT / INSERT_BEFORE / INSERT_AFTER
    column / row    POST    clear                     CLEAR
    column / row    DELETE  self                      DELETE
    cell-reference  GET     self / similarities       RESOLVE / SIMILARITIES
    viewport, range GET     self                      COMPUTE_RANGE
    cellbox         GET     self                      CELL_BOX
    label           GET / POST / DELETE   self        LOAD_LABEL / SAVE_LABEL / DELETE_LABEL

Errors:
    Unknown resource kind                     → NotFoundError
    Known resource, no method/relation entry  → UnsupportedOperationError
    Engine / label store failures propagate untouched.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, Optional, Tuple

from sheetserver.exceptions import (
    InvalidInputError,
    NotFoundError,
    UnknownReferenceError,
    UnsupportedOperationError,
)
from sheetserver.models.delta import EvaluationMode
from sheetserver.models.selection import ResourceKind
from sheetserver.services import operations
from sheetserver.services.engine_base import SpreadsheetEngine
from sheetserver.services.label_store import LabelStore
from sheetserver.services.operations import (
    VIEWPORT_PARAMETERS,
    DispatchRequest,
    Operation,
    OperationContext,
)
from sheetserver.services.selection import parse_selection

logger = logging.getLogger(__name__)

HandlerFunction = Callable[[OperationContext], Awaitable[Any]]
RouteKey = Tuple[ResourceKind, str, str]


@dataclass(frozen=True)
class Handler:
    operation: Operation
    execute: HandlerFunction
    parameters: FrozenSet[str] = frozenset()
    rejects_cells: bool = False


def build_dispatch_table() -> Dict[RouteKey, Handler]:
    table: Dict[RouteKey, Handler] = {}

    def add(
        resources: Iterable[ResourceKind],
        method: str,
        relations: Iterable[str],
        operation: Operation,
        execute: HandlerFunction,
        parameters: Iterable[str] = (),
        rejects_cells: bool = False,
    ) -> None:
        handler = Handler(operation, execute, frozenset(parameters), rejects_cells)
        for resource in resources:
            for relation in relations:
                table[(resource, method, relation)] = handler

    cell = [ResourceKind.CELL]
    columns_and_rows = [ResourceKind.COLUMN, ResourceKind.ROW]
    modes = [mode.relation for mode in EvaluationMode]

    add(
        cell, "GET", ["self", *modes],
        Operation.LOAD, operations.load, VIEWPORT_PARAMETERS, rejects_cells=True,
    )
    add(cell, "POST", ["self"], Operation.SAVE, operations.save)
    add(cell, "POST", ["fill"], Operation.FILL, operations.fill, ["from"])
    add(cell, "DELETE", ["self"], Operation.DELETE, operations.delete_cell, rejects_cells=True)

    add(columns_and_rows, "POST", ["self"], Operation.INSERT, operations.insert, rejects_cells=True)
    add(
        columns_and_rows, "POST", ["before"],
        Operation.INSERT_BEFORE, operations.insert_before, ["count"], rejects_cells=True,
    )
    add(
        columns_and_rows, "POST", ["after"],
        Operation.INSERT_AFTER, operations.insert_after, ["count"], rejects_cells=True,
    )
    add(columns_and_rows, "POST", ["clear"], Operation.CLEAR, operations.clear)
    add(
        columns_and_rows, "DELETE", ["self"],
        Operation.DELETE, operations.delete_columns_or_rows, rejects_cells=True,
    )

    add([ResourceKind.CELL_REFERENCE], "GET", ["self"], Operation.RESOLVE, operations.resolve)
    add(
        [ResourceKind.CELL_REFERENCE], "GET", ["similarities"],
        Operation.SIMILARITIES, operations.similarities, ["count"],
    )
    add([ResourceKind.VIEWPORT, ResourceKind.RANGE], "GET", ["self"], Operation.COMPUTE_RANGE, operations.compute_range)
    add([ResourceKind.CELLBOX], "GET", ["self"], Operation.CELL_BOX, operations.cell_box)

    label = [ResourceKind.LABEL]
    add(label, "GET", ["self"], Operation.LOAD_LABEL, operations.load_label)
    add(label, "POST", ["self"], Operation.SAVE_LABEL, operations.save_label)
    add(label, "DELETE", ["self"], Operation.DELETE_LABEL, operations.delete_label)
    return table


class OperationDispatcher:
    """
    Stateless dispatcher; one instance serves every spreadsheet.

    Usage:
        result = await dispatcher.dispatch(request, engine, label_store)
    """

    def __init__(self, table: Optional[Dict[RouteKey, Handler]] = None):
        self.table = table if table is not None else build_dispatch_table()

    def route(self, request: DispatchRequest) -> Tuple[ResourceKind, Handler]:
        try:
            resource = ResourceKind(request.resource)
        except ValueError:
            raise NotFoundError(resource="resource", resource_id=request.resource)

        method = request.method.upper()
        handler = self.table.get((resource, method, request.relation))
        if handler is None:
            raise UnsupportedOperationError(
                f'{method} "{request.relation}" is not supported for {resource.value}',
                context={"resource": resource.value, "method": method, "relation": request.relation},
            )
        return resource, handler

    async def dispatch(
        self,
        request: DispatchRequest,
        engine: SpreadsheetEngine,
        label_store: LabelStore,
    ) -> Any:
        resource, handler = self.route(request)
        try:
            if handler.rejects_cells:
                operations.reject_cells(request.body)
            for name in request.parameters:
                if name not in handler.parameters:
                    raise InvalidInputError(f"Unsupported parameter {name}", parameter=name)

            selection = await parse_selection(request.selection_text, resource, label_store.resolve)
            context = OperationContext(request, resource, selection, engine, label_store)
            logger.debug(
                "Dispatching %s on %s/%s in spreadsheet %s",
                handler.operation.value, resource.value, selection, request.spreadsheet_id,
            )
            return await handler.execute(context)
        except (InvalidInputError, UnknownReferenceError, UnsupportedOperationError) as e:
            logger.info(
                "Rejected %s %s/%s: %s",
                handler.operation.value, resource.value, request.selection_text, e.message,
            )
            raise


# Singleton instance — imported by the spreadsheet routes
operation_dispatcher = OperationDispatcher()
