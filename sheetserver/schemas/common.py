"""
SheetServer — Shared Response Schemas
=======================================

What:  Error envelope and health check response models.
Who:   ErrorResponse is produced by every exception handler in main.py;
       HealthResponse by GET /health.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "invalid_input", "unknown_reference")
        message: Human-readable description
        details: Optional extra context (e.g., which parameter was rejected)
        request_id: Correlation ID for tracing this error in server logs

    Example:
        {
            "error": "invalid_input",
            "message": "Missing parameter count",
            "details": {"parameter": "count"},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health for monitoring and load balancer health checks.
    """
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    label_store: str = Field(description="Label store connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
