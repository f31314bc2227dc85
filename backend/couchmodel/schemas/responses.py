"""
couchmodel — Application Response Schemas
===========================================

What:  Pydantic models for the responses of the application's own routes
       (health check, error bodies of FastAPI exception handlers).
Note:  The mirrored CouchDB routes do NOT use these models; their bodies are
       CouchDB's own JSON (see restapi/shaper.py).
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    What:  Error body returned by the application's exception handlers.

    Example:
        {
            "error": "conflict",
            "message": "Document update conflict",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and database status."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="CouchDB connectivity: connected, disconnected")
    rest_api: str = Field(description="Embedded REST handler: mounted, disabled")
    uptime_seconds: float = Field(description="Seconds since service started")
