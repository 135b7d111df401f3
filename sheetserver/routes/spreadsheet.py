"""
SheetServer — Spreadsheet Route Handlers
==========================================

What:  The hypermedia surface: /api/spreadsheet/{id}/{resource}[/{selection}[/{relation}]]
       for GET, POST and DELETE.
How:   Routes only translate HTTP into a DispatchRequest (JSON body → Delta or
       LabelMapping, query string → parameter lists) and the handler result
       back into JSON. All decisions live in OperationDispatcher.
Who:   Called by spreadsheet clients.

Response codes:
    200  JSON result (Delta, resolved reference, similarities, range, cell box, label)
    204  handler returned nothing (label delete)
    4xx / 5xx  produced by the exception handlers in main.py

Dependencies (overridable in tests through app.dependency_overrides):
    get_engine       → engine_registry.get(spreadsheet_id)
    get_label_store  → SqlLabelStore on the request's database session
    get_dispatcher   → operation_dispatcher singleton
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from sheetserver.database import get_db_session
from sheetserver.exceptions import InvalidInputError
from sheetserver.models.selection import ResourceKind
from sheetserver.schemas.common import ErrorResponse
from sheetserver.schemas.delta import delta_from_json, label_mapping_from_json, to_json
from sheetserver.services.dispatcher import OperationDispatcher, operation_dispatcher
from sheetserver.services.engine_base import SpreadsheetEngine
from sheetserver.services.label_store import LabelStore, SqlLabelStore
from sheetserver.services.memory_engine import engine_registry
from sheetserver.services.operations import DispatchRequest

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/spreadsheet", tags=["Spreadsheet"])

ERROR_RESPONSES = {
    400: {"description": "Malformed selection, parameter or body", "model": ErrorResponse},
    404: {"description": "Unknown resource or label", "model": ErrorResponse},
    405: {"description": "Operation not offered for this resource", "model": ErrorResponse},
    500: {"description": "Engine or label store failure", "model": ErrorResponse},
}

METHODS = ["GET", "POST", "DELETE"]


# ── Dependencies ──────────────────────────────────────────────────────────
def get_engine(spreadsheet_id: str) -> SpreadsheetEngine:
    return engine_registry.get(spreadsheet_id)


def get_label_store(
    spreadsheet_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> LabelStore:
    return SqlLabelStore(db, spreadsheet_id)


def get_dispatcher() -> OperationDispatcher:
    return operation_dispatcher


# ── Helpers ───────────────────────────────────────────────────────────────
async def _read_body(request: Request, resource: str) -> Any:
    """Parsed body for known resources; None when the body is empty."""
    raw = await request.body()
    if not raw.strip() or resource not in {kind.value for kind in ResourceKind}:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        raise InvalidInputError("Request body is not valid JSON")
    if resource == ResourceKind.LABEL.value:
        return label_mapping_from_json(payload)
    return delta_from_json(payload)


async def _handle(
    request: Request,
    spreadsheet_id: str,
    resource: str,
    selection: str,
    relation: str,
    engine: SpreadsheetEngine,
    label_store: LabelStore,
    dispatcher: OperationDispatcher,
) -> Response:
    parameters = {
        name: request.query_params.getlist(name) for name in request.query_params.keys()
    }
    dispatch_request = DispatchRequest(
        spreadsheet_id=spreadsheet_id,
        resource=resource,
        method=request.method,
        relation=relation,
        selection_text=selection,
        body=await _read_body(request, resource),
        parameters=parameters,
    )
    result = await dispatcher.dispatch(dispatch_request, engine, label_store)
    if result is None:
        return Response(status_code=204)
    return JSONResponse(content=to_json(result))


# ── Routes ────────────────────────────────────────────────────────────────
@router.api_route(
    "/{spreadsheet_id}/{resource}",
    methods=METHODS,
    responses=ERROR_RESPONSES,
    summary="Operate on a resource without a selection",
    description="Used by POST label (body names the label) and by resources whose empty selection is meaningful.",
)
async def resource_without_selection(
    request: Request,
    spreadsheet_id: str,
    resource: str,
    engine: SpreadsheetEngine = Depends(get_engine),
    label_store: LabelStore = Depends(get_label_store),
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> Response:
    return await _handle(request, spreadsheet_id, resource, "", "self", engine, label_store, dispatcher)


@router.api_route(
    "/{spreadsheet_id}/{resource}/{selection}",
    methods=METHODS,
    responses=ERROR_RESPONSES,
    summary="Operate on a selection with the default link relation",
    description=(
        "Selections: single reference (B2), range (B2:C3, open sides allowed for loads), "
        "list (A1,B2), all (*), viewport (B2:0:0:400:300) or pixel coordinates (cellbox)."
    ),
)
async def resource_selection(
    request: Request,
    spreadsheet_id: str,
    resource: str,
    selection: str,
    engine: SpreadsheetEngine = Depends(get_engine),
    label_store: LabelStore = Depends(get_label_store),
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> Response:
    return await _handle(
        request, spreadsheet_id, resource, selection, "self", engine, label_store, dispatcher
    )


@router.api_route(
    "/{spreadsheet_id}/{resource}/{selection}/{relation}",
    methods=METHODS,
    responses=ERROR_RESPONSES,
    summary="Operate on a selection through a link relation",
    description=(
        "Relations: evaluation modes for cell loads, fill, before/after for column and row "
        "inserts, similarities for cell-reference."
    ),
)
async def resource_selection_relation(
    request: Request,
    spreadsheet_id: str,
    resource: str,
    selection: str,
    relation: str,
    engine: SpreadsheetEngine = Depends(get_engine),
    label_store: LabelStore = Depends(get_label_store),
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> Response:
    return await _handle(
        request, spreadsheet_id, resource, selection, relation, engine, label_store, dispatcher
    )
