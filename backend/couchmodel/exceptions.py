"""
couchmodel — Custom Exception Hierarchy
=========================================

What:  Application-specific exceptions for configuration, routing, entity
       lifecycle and backend failures.
How:   Each exception carries a message, an optional context dict and the
       HTTP status code it maps to. The REST dispatcher and the FastAPI
       exception handlers (main.py) translate them into responses.
Who:   Raised by the view registry, route table builder, model, CouchDB
       store and dispatcher.

Exception Hierarchy:
    CouchModelError (base)
    ├── ConfigurationError       → fatal at model construction
    │   ├── InvalidPrefix
    │   ├── DuplicateViewName
    │   └── UnknownView
    ├── RouteNotFound            → 404 (path shape matches no route)
    ├── RouteForbidden           → 403 (route exists but is disabled)
    ├── NotFoundInBackend        → 404 (document or view row missing)
    ├── ConflictError            → 409 (stale revision)
    ├── EntityStateError         → 400 (write on a deleted/unsaved entity)
    └── BackendFailure           → 500 (CouchDB unreachable or misbehaving)

RouteNotFound and NotFoundInBackend share a status code but not a meaning:
the first is decided from the path alone, the second only after asking the
database.
"""

from typing import Any, Dict, Optional


class CouchModelError(Exception):
    """
    Base exception for all couchmodel errors.

    Attributes:
        message:      Human-readable description (safe to log)
        context:      Debug info (logged, never returned to HTTP clients)
        status_code:  HTTP status the error maps to
        error_code:   CouchDB-style machine-readable error name
    """

    status_code: int = 500
    error_code: str = "internal_server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


# ══════════════════════════════════════════════════════════════════════════
# Configuration Errors: raised while building a model, never per request
# ══════════════════════════════════════════════════════════════════════════


class ConfigurationError(CouchModelError):
    """
    Raised when model options are inconsistent.

    When:    CouchModel construction (view registration, route table build).
    Effect:  No model is returned; the caller must fix its options.
    """

    error_code = "configuration_error"

    def __init__(
        self,
        message: str = "Invalid model configuration",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidPrefix(ConfigurationError):
    """A REST prefix must start with '/' and must not end with '/'."""

    def __init__(self, prefix: str):
        super().__init__(
            message=(
                f"Invalid REST prefix '{prefix}': it must start with '/' "
                f"and must not end with '/'"
            ),
            context={"prefix": prefix},
        )
        self.prefix = prefix


class DuplicateViewName(ConfigurationError):
    """Two views were registered under the same exposed name."""

    def __init__(self, name: str, existing_path: Optional[str] = None):
        ctx = {"name": name}
        if existing_path:
            ctx["existing_path"] = existing_path
        super().__init__(
            message=f"A view named '{name}' is already registered",
            context=ctx,
        )
        self.name = name


class UnknownView(ConfigurationError):
    """
    A view name does not resolve to a registered view.

    Raised for REST options referencing an unregistered view and for
    finder calls naming one.
    """

    def __init__(self, name: str):
        super().__init__(
            message=f"No view named '{name}' is registered",
            context={"name": name},
        )
        self.name = name


# ══════════════════════════════════════════════════════════════════════════
# Request Errors: recoverable, one request at a time
# ══════════════════════════════════════════════════════════════════════════


class RouteNotFound(CouchModelError):
    """
    The request path does not have the shape of any route.

    HTTP:    404 Not Found
    When:    Path outside the prefix, too many segments, unsupported method,
             unregistered view name.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(self, path: str = "", context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["path"] = path
        super().__init__(message=f"No route matches '{path}'", context=ctx)
        self.path = path


class RouteForbidden(CouchModelError):
    """
    The matched route is disabled in the REST options.

    HTTP:    403 Forbidden
    Raised before any backend I/O.
    """

    status_code = 403
    error_code = "forbidden"

    def __init__(self, route: str = "", context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["route"] = route
        super().__init__(message=f"Route '{route}' is disabled", context=ctx)
        self.route = route


class NotFoundInBackend(CouchModelError):
    """
    The database has no such document, or a view has no row for a key.

    HTTP:    404 Not Found
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "document",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(CouchModelError):
    """
    CouchDB rejected a write because the revision is stale.

    HTTP:    409 Conflict
    Recovery: Reload the document (find_one_by_id), reapply, save again.
    """

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "Document update conflict",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EntityStateError(CouchModelError):
    """
    An entity operation is not valid in the entity's lifecycle state.

    When:    Saving or removing a deleted entity, removing a never-saved one.
    HTTP:    400 Bad Request
    """

    status_code = 400
    error_code = "bad_request"

    def __init__(
        self,
        message: str = "Operation not allowed in the entity's current state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class BackendFailure(CouchModelError):
    """
    CouchDB could not be reached or answered unexpectedly.

    HTTP:    500 Internal Server Error
    Retries: Transport errors are retried inside the store; once this is
             raised the store has given up.
    """

    status_code = 500
    error_code = "internal_server_error"

    def __init__(
        self,
        message: str = "The database request failed",
        status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status is not None:
            ctx["status"] = status
        super().__init__(message=message, context=ctx)
        self.status = status
