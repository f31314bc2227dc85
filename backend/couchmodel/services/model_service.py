"""
couchmodel — Document Model
=============================

What:  A model over one CouchDB database: entity creation, persistence,
       view-backed finders and (optionally) the embedded REST handler.
How:   Composes a DocumentStore, a ViewRegistry and, when REST options are
       given, a RouteTable + RequestDispatcher.
Who:   Created by applications (create_model) and by main.create_app().
When:  Built once at startup; every configuration error surfaces here.

Usage:
    model = create_model(
        store,
        views=[
            "_design/article/_view/by_date",
            {"path": "_design/article/_view/by_slug"},
        ],
        restapi={"index": True, "views": {"bySlug": True}},
    )

    article = model.create({"slug": "hello", "date": "2014-03-24"})
    await article.save()

    same = await model.find_one_by_slug("hello")
    latest = await model.find_by_date(limit=5, descending=True)

    app.mount("", model.on_request)   # None when restapi is not given

Finder naming:
    Each registered view yields two accessors named after its exposed name:
    find_<name>(key, **params) → list of entities
    find_one_<name>(key)       → first entity or None
    ("by_slug" → find_by_slug / find_one_by_slug)
"""

import functools
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from couchmodel.exceptions import BackendFailure, EntityStateError
from couchmodel.models.entity import Entity
from couchmodel.models.view import ViewDescriptor, ViewRegistry
from couchmodel.restapi.dispatcher import RequestDispatcher
from couchmodel.restapi.table import RouteTable, build_route_table
from couchmodel.schemas.options import RestApiOptions, ViewRegistration
from couchmodel.services.backend_base import MISSING, DocumentStore

logger = logging.getLogger(__name__)

ViewOption = Union[str, Dict[str, Any], ViewRegistration]


class CouchModel:
    """
    Entity model bound to one document store.

    Construction is all-or-nothing: a duplicate view name, a REST option
    naming an unknown view, or a malformed prefix raises a
    ConfigurationError and no model exists.

    Attributes:
        store:       Where documents live
        views:       Registry of queryable views
        route_table: REST route table, None without REST options
        on_request:  ASGI handler for the REST surface, None without REST options
    """

    def __init__(
        self,
        store: DocumentStore,
        views: Iterable[ViewOption] = (),
        restapi: Optional[Union[Dict[str, Any], RestApiOptions]] = None,
    ):
        self.store = store
        self.views = ViewRegistry()
        for option in views:
            registration = ViewRegistration.coerce(option)
            self.views.register(ViewDescriptor.from_registration(registration))

        self.route_table: Optional[RouteTable] = build_route_table(restapi, self.views)
        self.on_request: Optional[RequestDispatcher] = None
        if self.route_table is not None:
            self.on_request = RequestDispatcher(
                table=self.route_table,
                registry=self.views,
                store=self.store,
                entity_from_row=self.entity_from_row,
            )

        logger.info(
            "Model initialized with %d view(s): %s; REST %s",
            len(self.views),
            ", ".join(self.views.names()) or "none",
            "enabled" if self.on_request is not None else "disabled",
        )

    # ══════════════════════════════════════════════════════════════════════
    # Entity construction
    # ══════════════════════════════════════════════════════════════════════

    def create(self, data: Optional[Dict[str, Any]] = None, **fields: Any) -> Entity:
        """
        Build a new, unsaved entity.

        `data` may carry `_id` to choose the document id; without it CouchDB
        assigns one on first save.
        """
        document = dict(data or {})
        document.update(fields)
        document.pop("_rev", None)
        return Entity(self, document)

    def entity_from_document(self, document: Dict[str, Any]) -> Entity:
        return Entity.from_document(self, document)

    def entity_from_row(self, row: Dict[str, Any]) -> Entity:
        """
        Entity for a view or listing row.

        Prefers the included document (include_docs=true) and falls back to
        the emitted value when that is the document itself.
        """
        document = row.get("doc")
        if not isinstance(document, dict):
            document = row.get("value")
        if not isinstance(document, dict):
            raise BackendFailure(
                message="View row does not carry a document",
                context={"id": row.get("id"), "key": row.get("key")},
            )
        return self.entity_from_document(document)

    # ══════════════════════════════════════════════════════════════════════
    # Persistence
    # ══════════════════════════════════════════════════════════════════════

    async def save(self, entity: Entity) -> Entity:
        """
        Create or update the entity's document.

        Raises:
            EntityStateError: The entity was deleted.
            ConflictError:    The entity's rev is stale.
        """
        if entity.is_deleted:
            raise EntityStateError(
                message="A deleted entity cannot be saved",
                context={"id": entity.id},
            )
        result = await self.store.save(entity.to_value_object())
        entity.mark_saved(result["id"], result["rev"])
        logger.debug("Entity %s saved at rev %s", entity.id, entity.rev)
        return entity

    async def remove(self, entity: Entity) -> None:
        """
        Delete the entity's document.

        Raises:
            EntityStateError: Never saved, or already deleted.
            ConflictError:    The entity's rev is stale.
        """
        if entity.is_deleted:
            raise EntityStateError(
                message="Entity is already deleted",
                context={"id": entity.id},
            )
        if entity.id is None or entity.rev is None:
            raise EntityStateError(
                message="An unsaved entity cannot be removed",
                context={"id": entity.id},
            )
        result = await self.store.remove(entity.id, entity.rev)
        entity.mark_deleted(result.get("rev"))
        logger.debug("Entity %s removed", entity.id)

    # ══════════════════════════════════════════════════════════════════════
    # Finders
    # ══════════════════════════════════════════════════════════════════════

    async def find_one_by_id(self, doc_id: str) -> Entity:
        """
        Raises:
            NotFoundInBackend: No document with this id.
        """
        return self.entity_from_document(await self.store.get_by_id(doc_id))

    async def list_documents(self, **params: Any) -> Dict[str, Any]:
        """Native _all_docs listing, untouched."""
        return await self.store.list_all(**params)

    async def find_all(self, **params: Any) -> List[Entity]:
        """Every document of the database as entities, design documents skipped."""
        params.setdefault("include_docs", True)
        listing = await self.store.list_all(**params)
        return [
            self.entity_from_row(row)
            for row in listing.get("rows", [])
            if not str(row.get("id", "")).startswith("_design/")
        ]

    async def find_by(self, view_name: str, key: Any = MISSING, **params: Any) -> List[Entity]:
        """
        All entities a view returns, optionally filtered by key.

        Args:
            view_name: Exposed view name, e.g. "by_date"
            key:       Exact key; omit for the whole view
            params:    CouchDB view options (limit, skip, descending,
                       startkey, endkey, ...)

        Raises:
            UnknownView: view_name is not registered.
        """
        path = self.views.resolve(view_name)
        params.setdefault("include_docs", True)
        result = await self.store.query_view(path, key=key, **params)
        return [self.entity_from_row(row) for row in result["rows"]]

    async def find_one_by(self, view_name: str, key: Any = MISSING) -> Optional[Entity]:
        """First entity of a view for a key, or None when no row matches."""
        path = self.views.resolve(view_name)
        result = await self.store.query_view(path, key=key, limit=1, include_docs=True)
        rows = result["rows"]
        if not rows:
            return None
        return self.entity_from_row(rows[0])

    def __getattr__(self, name: str) -> Any:
        # Derived finders: find_one_<view>, find_<view>
        views = self.__dict__.get("views")
        if views is not None:
            if name.startswith("find_one_") and name[len("find_one_"):] in views:
                return functools.partial(self.find_one_by, name[len("find_one_"):])
            if name.startswith("find_") and name[len("find_"):] in views:
                return functools.partial(self.find_by, name[len("find_"):])
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")


def create_model(
    store: DocumentStore,
    views: Iterable[ViewOption] = (),
    restapi: Optional[Union[Dict[str, Any], RestApiOptions]] = None,
) -> CouchModel:
    """Build a model; see CouchModel for the arguments."""
    return CouchModel(store, views=views, restapi=restapi)
