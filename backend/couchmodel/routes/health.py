"""
couchmodel — Health Check Route
=================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Asks the model's store whether the database answers, reports whether
       the REST surface is mounted.
Who:   Called by container health checks, load balancers and monitoring.

Status levels:
    - healthy:   CouchDB reachable (HTTP 200)
    - unhealthy: CouchDB unreachable or database missing (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request, Response

from couchmodel import __version__
from couchmodel.schemas.responses import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Returns the health status of the service and its CouchDB database.",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Probe CouchDB with a database-info request (no document is read).

    The model is taken from app.state, where create_app() put it.
    """
    model = request.app.state.model

    database = "connected"
    overall = "healthy"
    if not await model.store.health_check():
        database = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: CouchDB unreachable")

    return HealthResponse(
        status=overall,
        version=__version__,
        database=database,
        rest_api="mounted" if model.on_request is not None else "disabled",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
