"""
SheetServer — Custom Exception Hierarchy
==========================================

What:  Application-specific exceptions for every failure the routing layer can report.
How:   Each exception carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with the matching HTTP status code.
Who:   Raised by the selection parser, dispatcher, engine and label store;
       caught by the global handlers.

Exception Hierarchy:
    SheetServerError (base)
    ├── InvalidInputError          → 400 Bad Request (malformed reference, parameter or body)
    ├── UnknownReferenceError      → 404 Not Found (label does not resolve)
    ├── NotFoundError              → 404 Not Found (unknown resource kind, missing label)
    ├── UnsupportedOperationError  → 405 Method Not Allowed (capability not offered)
    ├── RateLimitExceededError     → 429 Too Many Requests
    ├── SpreadsheetEngineError     → 500 (raised by engines, passed through untouched)
    └── LabelStoreError            → 500 (label store persistence failed)

InvalidInputError and UnsupportedOperationError are kept apart so callers can
tell "bad data" from "this resource does not offer that operation".
"""

from typing import Any, Dict, Optional


class SheetServerError(Exception):
    """
    Base exception for all SheetServer errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (returned as `details` for client errors,
                  logged only for server errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class InvalidInputError(SheetServerError):
    """
    Raised when the client sent something that cannot be used as given.

    When:    Malformed cell/column/row/label/range text, a missing or non-numeric
             query parameter, an unsupported query parameter, or a request body
             holding the wrong number of cells for the operation.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "invalid_input",
            "message": "Invalid column \\"1A\\"",
            "details": {"value": "1A"}
        }
    """

    def __init__(
        self,
        message: str = "Invalid input",
        value: Optional[str] = None,
        parameter: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if value is not None:
            ctx["value"] = value
        if parameter is not None:
            ctx["parameter"] = parameter
        super().__init__(message=message, context=ctx)
        self.value = value
        self.parameter = parameter


class UnknownReferenceError(SheetServerError):
    """
    Raised when a label name is well formed but no mapping exists for it.

    When:    A label used as a selection, a range endpoint or resolve text
             has no entry in the label store.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        label: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["label"] = label
        super().__init__(message=f'Unknown label "{label}"', context=ctx)
        self.label = label


class NotFoundError(SheetServerError):
    """
    Raised when a requested resource does not exist.

    When:    Unknown resource kind in the URL, or GET label/{name} for a label
             with no mapping.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class UnsupportedOperationError(SheetServerError):
    """
    Raised when a selection shape or method is not offered for a resource.

    When:    Bulk ("*") selection on a single-only resource, fill with a single
             cell, delete of a cell range, a method/link-relation pairing with no
             handler.
    HTTP:    405 Method Not Allowed
    """

    def __init__(
        self,
        message: str = "Operation not supported",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(SheetServerError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class SpreadsheetEngineError(SheetServerError):
    """
    Raised by a spreadsheet engine implementation when an operation fails.

    The routing layer never catches, retries or rewrites this error; the
    global handler reports the engine's own message with HTTP 500.
    """

    def __init__(
        self,
        message: str = "Spreadsheet engine failure",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LabelStoreError(SheetServerError):
    """
    Raised when the SQL label store cannot complete a query.

    Security Note:
        The client receives a generic message; the SQL error is logged
        server-side only.
    """

    def __init__(
        self,
        message: str = "A label store error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
