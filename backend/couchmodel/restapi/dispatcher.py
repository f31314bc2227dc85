"""
couchmodel — REST Request Dispatcher
======================================

What:  The model's `on_request` handler: maps one HTTP request onto one
       CouchDB read and answers with CouchDB's own response shape.
How:   A plain ASGI application. Each request walks the same pipeline and
       ends with exactly one response:

       Received → Matching → Authorizing → Querying → Shaping → Responded
                     │            │            │
                     └─ 404       └─ 403       └─ 404 / 500

Who:   Built by CouchModel when REST options are given; mounted into the
       FastAPI app by main.create_app(), or served on its own by any ASGI
       server.

Matching rules (path relative to the prefix, split on literal "/", empty
segments dropped, each segment then percent-decoded):
    []                  → INDEX
    [name]              → VIEW_QUERY without key, if `name` is a view
    [id]                → BY_ID otherwise
    [name, key]         → VIEW_QUERY, if `name` is a view
    anything else       → 404

    View names win over ids: with a view exposed as "by_slug", GET /by_slug
    never fetches a document called "by_slug".

Authorization happens before the store is touched: a disabled route costs
no database call. Nothing is shared between requests except the route
table, the view registry and the store, all read-only here.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote, unquote

from starlette.requests import Request
from starlette.types import Receive, Scope, Send

from couchmodel.exceptions import CouchModelError, NotFoundInBackend, RouteForbidden, RouteNotFound
from couchmodel.middleware.request_id import request_id_var
from couchmodel.models.entity import Entity
from couchmodel.models.view import ViewRegistry
from couchmodel.restapi import shaper
from couchmodel.restapi.table import RouteEntry, RouteKind, RouteTable
from couchmodel.services.backend_base import DocumentStore

logger = logging.getLogger(__name__)

ALLOWED_METHODS = frozenset({"GET"})


@dataclass(frozen=True)
class DispatchContext:
    """Per-request match result; never outlives the request."""

    method: str
    path: str
    route: RouteEntry
    key: Optional[str] = None


@dataclass(frozen=True)
class DispatchResult:
    status_code: int
    body: Any

    def to_response(self) -> shaper.CouchJSONResponse:
        return shaper.CouchJSONResponse(content=self.body, status_code=self.status_code)


def route_path(scope: Scope) -> str:
    """
    Request path relative to where the dispatcher is mounted.

    Taken from `raw_path` and left percent-encoded: an encoded "/" inside
    an id or view key ("a%2Fb") must not split the segment. match()
    decodes each segment after splitting.
    """
    raw_path = scope.get("raw_path")
    if raw_path:
        path = raw_path.decode("utf-8", "replace").split("?", 1)[0]
    else:
        path = quote(scope.get("path") or "/", safe="/")
    root_path = quote(scope.get("root_path") or "", safe="/")
    if root_path and path.startswith(root_path):
        path = path[len(root_path):]
    return path or "/"


class RequestDispatcher:
    """
    Routes REST requests for one model.

    Args:
        table:           Route table built from the REST options
        registry:        View registry (exposed name → canonical path)
        store:           Document store reads go through
        entity_from_row: Builds an Entity from a view row; the model's own
                         finders use the same function, so REST and
                         in-process results are identical
    """

    def __init__(
        self,
        table: RouteTable,
        registry: ViewRegistry,
        store: DocumentStore,
        entity_from_row: Callable[[Dict[str, Any]], Entity],
    ):
        self.table = table
        self.registry = registry
        self.store = store
        self.entity_from_row = entity_from_row

    # ══════════════════════════════════════════════════════════════════════
    # ASGI entry point
    # ══════════════════════════════════════════════════════════════════════

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        # Lifespan and websocket scopes have no REST meaning
        if scope["type"] != "http":
            return
        request = Request(scope, receive)
        result = await self.dispatch(request.method, route_path(scope))
        response = result.to_response()
        await response(scope, receive, send)

    # ══════════════════════════════════════════════════════════════════════
    # Pipeline
    # ══════════════════════════════════════════════════════════════════════

    async def dispatch(self, method: str, path: str) -> DispatchResult:
        """
        Handle one request and return its status and body.

        Never raises: every failure is turned into a status code here, so
        one bad request cannot affect another.
        """
        rid = request_id_var.get("")
        try:
            context = self.match(method, path)
            self.authorize(context)
            body = await self.query(context)
            return DispatchResult(status_code=200, body=body)
        except (RouteNotFound, RouteForbidden, NotFoundInBackend) as e:
            logger.debug("[%s] %s %s → %d: %s", rid, method, path, e.status_code, e.message)
            return DispatchResult(status_code=e.status_code, body=shaper.error_body(e.status_code))
        except CouchModelError as e:
            logger.error(
                "[%s] %s %s failed: %s | Context: %s",
                rid,
                method,
                path,
                e.message,
                e.context,
            )
            return DispatchResult(status_code=500, body=shaper.error_body(500))
        except Exception as e:
            logger.error(
                "[%s] Unexpected error dispatching %s %s: %s",
                rid,
                method,
                path,
                str(e),
                exc_info=True,
            )
            return DispatchResult(status_code=500, body=shaper.error_body(500))

    def match(self, method: str, path: str) -> DispatchContext:
        """
        Find the route a request addresses.

        `path` is percent-encoded (see route_path()); ids and keys come out
        decoded.

        Raises:
            RouteNotFound: Outside the prefix, unsupported method, or a
                           path shape no route has.
        """
        relative = self.table.strip_prefix(path)
        if relative is None:
            raise RouteNotFound(path, context={"reason": "outside prefix"})
        if method.upper() not in ALLOWED_METHODS:
            raise RouteNotFound(path, context={"reason": "method", "method": method})

        segments: List[str] = [unquote(segment) for segment in relative.split("/") if segment]

        if not segments:
            return DispatchContext(method, path, self.table.index)

        head = segments[0]
        if len(segments) == 1:
            view_route = self.table.view(head)
            if view_route is not None:
                return DispatchContext(method, path, view_route)
            return DispatchContext(method, path, self.table.by_id, key=head)

        if len(segments) == 2:
            view_route = self.table.view(head)
            if view_route is not None:
                return DispatchContext(method, path, view_route, key=segments[1])
            raise RouteNotFound(path, context={"reason": "unknown view", "view": head})

        raise RouteNotFound(path, context={"reason": "too many segments"})

    def authorize(self, context: DispatchContext) -> None:
        """
        Raises:
            RouteForbidden: The matched route is switched off.
        """
        if not context.route.enabled:
            raise RouteForbidden(context.route.pattern)

    async def query(self, context: DispatchContext) -> Any:
        """
        Run the single store call for the matched route and shape its result.

        Raises:
            RouteNotFound:     View route addressed without a key.
            NotFoundInBackend: Missing document or no row for the key.
            BackendFailure:    The store gave up.
        """
        route = context.route

        if route.kind is RouteKind.INDEX:
            return shaper.shape_listing(await self.store.list_all())

        if route.kind is RouteKind.BY_ID:
            # Ids starting with "_" name CouchDB endpoints, not documents
            if context.key.startswith("_"):
                raise NotFoundInBackend(resource_id=context.key)
            return shaper.shape_document(await self.store.get_by_id(context.key))

        if context.key is None:
            raise RouteNotFound(context.path, context={"reason": "missing view key"})

        view_path = self.registry.resolve(route.path_segment)
        result = await self.store.query_view(
            view_path,
            key=context.key,
            limit=1,
            include_docs=True,
        )
        rows = result["rows"]
        if not rows:
            raise NotFoundInBackend(resource="view row", resource_id=context.key)
        return shaper.shape_entity(self.entity_from_row(rows[0]))
