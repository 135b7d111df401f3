"""
SheetServer — Health Check Route
==================================

What:  Health check endpoint for monitoring and load balancer health checks.
How:   Runs SELECT 1 against the label store database and reports uptime.
Who:   Called by container health checks, load balancers and monitoring.

Status levels:
    healthy:    label store reachable
    unhealthy:  label store unreachable (label resolution and similarities fail)

The in-memory engine has no external dependency and is not checked.
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from sheetserver import __version__
from sheetserver.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Module load time, for uptime reporting
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Returns the health status of the service and its label store.",
)
async def health_check() -> HealthResponse:
    label_store_status = "connected"
    overall = "healthy"

    try:
        from sheetserver.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        label_store_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: label store unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        label_store=label_store_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
