"""
couchmodel — Test Configuration (conftest.py)
===============================================

What:  Shared pytest fixtures for the entire test suite.
How:   CouchDB is replaced by FakeCouchDB, an in-memory emulation of the
       parts of its HTTP API the store uses, served through
       httpx.MockTransport. Everything above the transport (CouchDBStore,
       CouchModel, RequestDispatcher, the FastAPI app) is the real code.

Fixture Hierarchy (all function-scoped):
    fake_couch ── couch_client ── store ── article_model
                                      └── make_model
    rest_client(app): HTTPX AsyncClient over ASGITransport for any ASGI app
"""

import json
import os
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

# Override settings BEFORE any couchmodel import reads them
os.environ["COUCHDB_URL"] = "http://couchdb.test"
os.environ["COUCHDB_DB_NAME"] = "couchmodel-test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("MODEL_RESTAPI", None)
os.environ.pop("MODEL_VIEWS", None)

from couchmodel.database import create_client  # noqa: E402
from couchmodel.services.couchdb_service import CouchDBStore  # noqa: E402
from couchmodel.services.model_service import CouchModel  # noqa: E402

DB_NAME = "couchmodel-test"

MapFunction = Callable[[Dict[str, Any]], Iterable[Tuple[Any, Any]]]


# ══════════════════════════════════════════════════════════════════════════
# In-memory CouchDB
# ══════════════════════════════════════════════════════════════════════════


def _collation_key(key: Any) -> Tuple[int, str]:
    # null < everything else, then a plain string comparison
    if key is None:
        return (0, "")
    return (1, json.dumps(key) if not isinstance(key, str) else key)


class FakeCouchDB:
    """
    Just enough of CouchDB for the store: database info, _all_docs,
    document CRUD with revisions, and map-only views.

    Attributes:
        docs:           id → stored document (with _id, _rev first)
        requests:       every request received, in order
        transport_error: when set, raised for every request
        fail_status:    when set, returned for every request
    """

    def __init__(self, db_name: str = DB_NAME):
        self.db_name = db_name
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.views: Dict[str, MapFunction] = {}
        self.requests: List[httpx.Request] = []
        self.transport_error: Optional[Exception] = None
        self.fail_status: Optional[int] = None

    # ── Test helpers ──────────────────────────────────────────────────────

    def define_view(self, path: str, map_fn: MapFunction) -> None:
        self.views[path] = map_fn

    def put_design_doc(self, doc_id: str) -> None:
        self.docs[doc_id] = {"_id": doc_id, "_rev": "1-" + uuid.uuid4().hex, "language": "javascript"}

    def count(self, fragment: str) -> int:
        """Number of requests whose path contains `fragment`."""
        return sum(1 for r in self.requests if fragment in r.url.path)

    # ── Transport entry point ─────────────────────────────────────────────

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.transport_error is not None:
            raise self.transport_error
        if self.fail_status is not None:
            return _error(self.fail_status, "unknown_error", "injected failure")

        parts = request.url.path.strip("/").split("/")
        if parts[0] != self.db_name:
            return _error(404, "not_found", "Database does not exist.")
        rest = parts[1:]
        method = request.method

        if not rest:
            if method == "GET":
                return httpx.Response(200, json={"db_name": self.db_name, "doc_count": len(self.docs)})
            if method == "POST":
                return self._write(uuid.uuid4().hex, json.loads(request.content))
        elif rest == ["_all_docs"] and method == "GET":
            return self._all_docs(request.url.params)
        elif len(rest) == 4 and rest[0] == "_design" and rest[2] == "_view" and method == "GET":
            return self._view("/".join(rest), request.url.params)
        else:
            doc_id = "/".join(rest)
            if method == "GET":
                doc = self.docs.get(doc_id)
                if doc is None:
                    return _error(404, "not_found", "missing")
                return httpx.Response(200, json=doc)
            if method == "PUT":
                return self._write(doc_id, json.loads(request.content))
            if method == "DELETE":
                return self._delete(doc_id, request.url.params.get("rev"))
        return _error(405, "method_not_allowed", "Only GET, PUT, POST, DELETE allowed")

    # ── Handlers ──────────────────────────────────────────────────────────

    def _write(self, doc_id: str, body: Dict[str, Any]) -> httpx.Response:
        current = self.docs.get(doc_id)
        sent_rev = body.pop("_rev", None)
        body.pop("_id", None)
        if current is not None and current["_rev"] != sent_rev:
            return _error(409, "conflict", "Document update conflict.")
        if current is None and sent_rev is not None:
            return _error(409, "conflict", "Document update conflict.")
        generation = int(current["_rev"].split("-")[0]) + 1 if current else 1
        rev = f"{generation}-{uuid.uuid4().hex}"
        self.docs[doc_id] = {"_id": doc_id, "_rev": rev, **body}
        return httpx.Response(201, json={"ok": True, "id": doc_id, "rev": rev})

    def _delete(self, doc_id: str, rev: Optional[str]) -> httpx.Response:
        current = self.docs.get(doc_id)
        if current is None:
            return _error(404, "not_found", "missing")
        if current["_rev"] != rev:
            return _error(409, "conflict", "Document update conflict.")
        del self.docs[doc_id]
        generation = int(rev.split("-")[0]) + 1
        return httpx.Response(
            200, json={"ok": True, "id": doc_id, "rev": f"{generation}-{uuid.uuid4().hex}"}
        )

    def _all_docs(self, params: httpx.QueryParams) -> httpx.Response:
        rows = []
        for doc_id in sorted(self.docs):
            doc = self.docs[doc_id]
            row = {"id": doc_id, "key": doc_id, "value": {"rev": doc["_rev"]}}
            if params.get("include_docs") == "true":
                row["doc"] = doc
            rows.append(row)
        return httpx.Response(200, json=_page(rows, params))

    def _view(self, path: str, params: httpx.QueryParams) -> httpx.Response:
        map_fn = self.views.get(path)
        if map_fn is None:
            return _error(404, "not_found", "missing_named_view")
        rows = []
        for doc_id, doc in self.docs.items():
            if doc_id.startswith("_design/"):
                continue
            for key, value in map_fn(doc):
                row = {"id": doc_id, "key": key, "value": value}
                if params.get("include_docs") == "true":
                    row["doc"] = doc
                rows.append(row)
        rows.sort(key=lambda r: (_collation_key(r["key"]), r["id"]))
        if "key" in params:
            wanted = json.loads(params["key"])
            rows = [r for r in rows if r["key"] == wanted]
        return httpx.Response(200, json=_page(rows, params))


def _page(rows: List[Dict[str, Any]], params: httpx.QueryParams) -> Dict[str, Any]:
    total = len(rows)
    if params.get("descending") == "true":
        rows = list(reversed(rows))
    skip = int(params.get("skip", 0))
    rows = rows[skip:]
    if "limit" in params:
        rows = rows[: int(params["limit"])]
    return {"total_rows": total, "offset": skip, "rows": rows}


def _error(status: int, error: str, reason: str) -> httpx.Response:
    return httpx.Response(status, json={"error": error, "reason": reason})


# ══════════════════════════════════════════════════════════════════════════
# Article fixtures (views and data of the REST scenarios)
# ══════════════════════════════════════════════════════════════════════════

ARTICLE_VIEWS = [
    "_design/article/_view/by_date",
    {"path": "_design/article/_view/by_tag", "name": "by_one_of_the_tags"},
    {"path": "_design/article/_view/by_slug"},
]

ARTICLES = [
    {"_id": "0", "date": "1970-01-01T00:00:00", "slug": "test_article_that_is_super_old", "tags": []},
    {"_id": "1", "date": "2013-03-24T05:22:31", "slug": "test_article_one_slug", "tags": ["one", "odd", "test"]},
    {"_id": "2", "date": "2014-03-24T05:00:00", "slug": "test_article_two_slug", "tags": ["two", "even", "test"]},
    {"_id": "3", "date": "2014-03-24T05:22:31", "slug": "test_article_three_slug", "tags": ["three", "odd", "test"]},
    {"_id": "4", "date": "2013-03-24T05:00:00", "slug": "test_article_four_slug", "tags": ["four", "even", "test"]},
]


def define_article_views(couch: FakeCouchDB) -> None:
    couch.put_design_doc("_design/article")
    couch.define_view("_design/article/_view/by_date", lambda doc: [(doc.get("date"), doc)])
    couch.define_view(
        "_design/article/_view/by_tag",
        lambda doc: [(tag, doc) for tag in doc.get("tags", [])] if isinstance(doc.get("tags"), list) else [],
    )
    couch.define_view("_design/article/_view/by_slug", lambda doc: [(doc.get("slug"), doc)])


@pytest.fixture
def fake_couch():
    return FakeCouchDB()


@pytest_asyncio.fixture
async def couch_client(fake_couch):
    client = create_client(
        base_url="http://couchdb.test",
        transport=httpx.MockTransport(fake_couch.handler),
    )
    async with client:
        yield client


@pytest.fixture
def store(couch_client):
    # No backoff: retry tests would otherwise sleep
    return CouchDBStore(couch_client, DB_NAME, retry_attempts=3, retry_min_wait=0, retry_max_wait=0)


@pytest.fixture
def make_model(store):
    """Factory: make_model(views=..., restapi=...) over the fake database."""

    def _make(views=(), restapi=None):
        return CouchModel(store, views=views, restapi=restapi)

    return _make


@pytest.fixture
def article_views(fake_couch):
    """Defines the article design document and views in the fake database."""
    define_article_views(fake_couch)
    return list(ARTICLE_VIEWS)


@pytest.fixture
def articles():
    return [dict(article) for article in ARTICLES]


@pytest_asyncio.fixture
async def article_model(article_views, articles, make_model):
    """
    Model with the three article views; only by_slug is enabled for REST.
    The five articles are saved before the test runs.
    """
    model = make_model(
        views=article_views,
        restapi={"views": {"byOneOfTheTags": False, "bySlug": True}},
    )
    for article in articles:
        await model.create(article).save()
    return model


@pytest.fixture
def rest_client():
    """Factory: HTTPX client talking to an ASGI app in-process."""

    def _client(app) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    return _client
