"""
couchmodel — FastAPI Application Factory
==========================================

What:  Serves a model's embedded REST handler next to a health endpoint.
How:   Factory pattern: create_app() returns a configured FastAPI instance;
       the model's RequestDispatcher is mounted last and receives every path
       no FastAPI route claimed.
Who:   uvicorn (`uvicorn couchmodel.main:app`) or applications passing
       their own model to create_app().

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌─────────────────────┐  │
    │  │  Req ID  │→│ Logging  │→│  CORS               │  │
    │  └──────────┘ └──────────┘ └─────────────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌──────────────────────────────┐  │
    │  │ GET /health  │ │ mount "" → model.on_request  │  │
    │  └──────────────┘ └──────────────────────────────┘  │
    │                                                     │
    │  Exception Handlers (FastAPI routes only):          │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ CouchModelError → its status │ other → 500   │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

The dispatcher answers its own errors (CouchDB-style bodies); the handlers
below cover the application's routes.

Lifecycle:
    Startup:  logging setup, log model summary
    Shutdown: close the shared CouchDB client (when the app created it)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from couchmodel import __version__
from couchmodel.config import settings
from couchmodel.database import dispose_client, get_store
from couchmodel.exceptions import CouchModelError
from couchmodel.middleware.logging import RequestLoggingMiddleware
from couchmodel.middleware.request_id import RequestIDMiddleware, request_id_var
from couchmodel.routes import health
from couchmodel.schemas.responses import ErrorResponse
from couchmodel.services.model_service import CouchModel, create_model

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    When:   Once during app startup.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-request chatter from the HTTP stack
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    model: CouchModel = app.state.model
    logger.info("=" * 60)
    logger.info("couchmodel %s starting up...", __version__)
    logger.info("CouchDB: %s/%s", settings.couchdb_url, settings.couchdb_db_name)
    if model.route_table is not None:
        logger.info(
            "REST routes: %s",
            ", ".join(entry.pattern for entry in model.route_table.enabled_routes()) or "none enabled",
        )
    else:
        logger.info("REST routes: not configured")
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("couchmodel shutting down...")
    if app.state.owns_store:
        await dispose_client()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions raised inside FastAPI routes to JSON error responses.

    Handler hierarchy:
        CouchModelError (and subclasses) → exc.status_code
        Exception (fallback)             → 500

    Context dicts are logged, never returned.
    """

    @app.exception_handler(CouchModelError)
    async def handle_couchmodel_error(request: Request, exc: CouchModelError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s | Context: %s", rid, exc.message, exc.context)
            message = "An internal error occurred. Please try again later."
        else:
            logger.warning("[%s] %s", rid, exc.message)
            message = exc.message
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.error_code,
                message=message,
                request_id=rid,
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="internal_server_error",
                message="An unexpected error occurred.",
                request_id=rid,
            ).model_dump(),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(model: Optional[CouchModel] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        model: Model to serve. Without one, a model is built from settings
               (MODEL_VIEWS, MODEL_RESTAPI) over the shared CouchDB store,
               and the app closes that store on shutdown.

    Path collisions:
        /health is routed before the mount. With an empty REST prefix, a
        document whose id is "health" is therefore unreachable through
        GET /{id}; give the model a prefix (e.g. "/db") when such ids exist.

    Raises:
        ConfigurationError: The settings describe an invalid model.
    """
    owns_store = model is None
    if model is None:
        model = create_model(
            get_store(),
            views=settings.model_views,
            restapi=settings.model_restapi,
        )

    app = FastAPI(
        title="couchmodel",
        description="Document model over CouchDB with a gated, CouchDB-compatible REST surface.",
        version=__version__,
        # Every path except /health belongs to the mirrored REST surface
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.model = model
    app.state.owns_store = owns_store

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute: RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    if model.on_request is not None:
        app.mount("", model.on_request, name="restapi")

    return app


# uvicorn expects `couchmodel.main:app` to be importable
app = create_app()
