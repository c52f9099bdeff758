"""
Companion Backend — Middleware Package
========================================

Cross-cutting request handling shared by every route.

Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    Rate limiting runs before anything else so abusive clients are turned
    away cheaply. The request ID is set before the access log line is
    written, so every line for a request carries the same ID.
"""
