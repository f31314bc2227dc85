# Middleware package init
"""
couchmodel — Middleware Package
=================================

What:  Cross-cutting concerns applied to every request of the served app.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [CORS] → Route / REST dispatcher

    The order is reversed for responses:
    Response ← [Request ID] ← [Logging] ← [CORS] ← Route / REST dispatcher

    This means:
    - The request ID is set before anything logs, and echoed in the response
    - The access log sees the final status, including dispatcher 403/404s
"""
