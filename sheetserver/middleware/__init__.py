# Middleware package init
"""
SheetServer — Middleware Package
==================================

Middleware Chain:
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Rate Limit first: rejects excess traffic before any processing
    2. Request ID: correlation ID for logs and error bodies
    3. Logging: one access line per request, tagged with the request ID
"""
