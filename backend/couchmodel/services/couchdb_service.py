"""
couchmodel — CouchDB Document Store
=====================================

What:  DocumentStore implementation over CouchDB's HTTP API.
How:   One shared httpx.AsyncClient; every call is a single HTTP request,
       retried on transport errors with tenacity, then mapped from HTTP
       status to the exception hierarchy.
Who:   Created by database.get_store() or directly by applications; used by
       CouchModel and the REST dispatcher.

Endpoint Mapping:
    list_all     → GET    /{db}/_all_docs
    get_by_id    → GET    /{db}/{id}
    query_view   → GET    /{db}/_design/{ddoc}/_view/{view}
    save         → PUT    /{db}/{id}        (id known)
                   POST   /{db}             (id assigned by CouchDB)
    remove       → DELETE /{db}/{id}?rev=...
    health_check → GET    /{db}

Resilience Strategy:
    - Transport errors (connect refused, timeouts, dropped connections) are
      retried with exponential backoff + jitter, bounded attempts.
    - HTTP statuses are answers, not failures of the transport: they are
      never retried. 404 → NotFoundInBackend, 409 → ConflictError,
      anything else ≥ 400 → BackendFailure.
"""

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from couchmodel.config import settings
from couchmodel.exceptions import BackendFailure, ConflictError, CouchModelError, NotFoundInBackend
from couchmodel.services.backend_base import MISSING, DocumentStore

logger = logging.getLogger(__name__)

# View/listing options whose values CouchDB expects as JSON
JSON_PARAMS = frozenset({"key", "keys", "startkey", "endkey", "start_key", "end_key"})


def encode_params(params: Dict[str, Any]) -> Dict[str, str]:
    """
    Encode query options the way CouchDB reads them.

    Keys are JSON ("slug" → '"slug"'), booleans are lowercase, None drops
    the option.
    """
    encoded: Dict[str, str] = {}
    for name, value in params.items():
        if value is None:
            continue
        if name in JSON_PARAMS:
            encoded[name] = json.dumps(value, separators=(",", ":"))
        elif isinstance(value, bool):
            encoded[name] = "true" if value else "false"
        else:
            encoded[name] = str(value)
    return encoded


def document_path(doc_id: str) -> str:
    """URL path of a document relative to the database."""
    if doc_id.startswith("_design/"):
        return "/_design/" + quote(doc_id[len("_design/"):], safe="")
    return "/" + quote(doc_id, safe="")


class CouchDBStore(DocumentStore):
    """
    CouchDB-backed document store for one database.

    Args:
        client:            Shared AsyncClient whose base_url is the server root
        db_name:           Database holding the model's documents
        retry_attempts:    Max transport attempts (default: settings)
        retry_min_wait:    Initial backoff and jitter in seconds (default: settings)
        retry_max_wait:    Backoff ceiling in seconds (default: settings)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        db_name: str,
        retry_attempts: Optional[int] = None,
        retry_min_wait: Optional[float] = None,
        retry_max_wait: Optional[float] = None,
    ):
        self.client = client
        self.db_name = db_name
        self.retry_attempts = retry_attempts or settings.retry_max_attempts
        self.retry_min_wait = (
            settings.retry_min_wait if retry_min_wait is None else retry_min_wait
        )
        self.retry_max_wait = (
            settings.retry_max_wait if retry_max_wait is None else retry_max_wait
        )
        self._db_path = "/" + quote(db_name, safe="")

    # ══════════════════════════════════════════════════════════════════════
    # Reads
    # ══════════════════════════════════════════════════════════════════════

    async def list_all(self, **params: Any) -> Dict[str, Any]:
        response = await self._request("GET", "/_all_docs", params=params)
        return self._parse(response, resource="database", resource_id=self.db_name)

    async def get_by_id(self, doc_id: str) -> Dict[str, Any]:
        response = await self._request("GET", document_path(doc_id))
        return self._parse(response, resource="document", resource_id=doc_id)

    async def query_view(self, path: str, key: Any = MISSING, **params: Any) -> Dict[str, Any]:
        if "/_view/" not in path:
            raise BackendFailure(
                message="Malformed view path",
                context={"view": path},
            )
        if key is not MISSING:
            params["key"] = key
        response = await self._request("GET", "/" + path.strip("/"), params=params)
        result = self._parse(response, resource="view", resource_id=path)
        if not isinstance(result.get("rows"), list):
            raise BackendFailure(
                message="View result has no rows",
                context={"view": path},
            )
        return result

    # ══════════════════════════════════════════════════════════════════════
    # Writes
    # ══════════════════════════════════════════════════════════════════════

    async def save(self, document: Dict[str, Any]) -> Dict[str, Any]:
        doc_id = document.get("_id")
        if doc_id:
            response = await self._request("PUT", document_path(doc_id), body=document)
        else:
            response = await self._request("POST", "", body=document)
        result = self._parse(response, resource="document", resource_id=doc_id)
        logger.debug("Saved document %s at rev %s", result.get("id"), result.get("rev"))
        return result

    async def remove(self, doc_id: str, rev: str) -> Dict[str, Any]:
        response = await self._request("DELETE", document_path(doc_id), params={"rev": rev})
        result = self._parse(response, resource="document", resource_id=doc_id)
        logger.debug("Removed document %s", doc_id)
        return result

    # ══════════════════════════════════════════════════════════════════════
    # Health
    # ══════════════════════════════════════════════════════════════════════

    async def health_check(self) -> bool:
        """
        Check that the database exists and answers.

        How:     GET /{db} (database info), no document is read.
        Returns: True if reachable, False otherwise.
        """
        try:
            response = await self._request("GET", "")
            self._parse(response, resource="database", resource_id=self.db_name)
            return True
        except CouchModelError as e:
            logger.warning("CouchDB health check failed: %s", e.message)
            return False

    async def close(self) -> None:
        await self.client.aclose()

    # ══════════════════════════════════════════════════════════════════════
    # Transport
    # ══════════════════════════════════════════════════════════════════════

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send one request, retrying transport errors only.

        Raises:
            BackendFailure: All attempts failed at the transport level.
        """
        url = self._db_path + path
        query = encode_params(params or {})
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential_jitter(
                    initial=self.retry_min_wait,
                    max=self.retry_max_wait,
                    jitter=self.retry_min_wait,
                ),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await self.client.request(method, url, params=query, json=body)
        except httpx.TransportError as e:
            logger.error(
                "CouchDB %s %s failed after %d attempts: %s",
                method,
                url,
                self.retry_attempts,
                str(e),
            )
            raise BackendFailure(
                message="The database could not be reached",
                context={
                    "method": method,
                    "url": url,
                    "attempts": self.retry_attempts,
                    "error_type": type(e).__name__,
                },
            ) from e

    @staticmethod
    def _parse(
        response: httpx.Response,
        resource: str,
        resource_id: Optional[str],
    ) -> Dict[str, Any]:
        """Map a CouchDB response to its JSON body or to an exception."""
        if response.status_code == 404:
            raise NotFoundInBackend(resource=resource, resource_id=resource_id)
        if response.status_code == 409:
            raise ConflictError(context={"resource": resource, "resource_id": resource_id})
        if response.status_code >= 400:
            raise BackendFailure(
                message=f"CouchDB answered {response.status_code}",
                status=response.status_code,
                context={"resource": resource, "resource_id": resource_id, "body": response.text[:200]},
            )
        try:
            body = response.json()
        except ValueError as e:
            raise BackendFailure(
                message="CouchDB returned a malformed body",
                status=response.status_code,
                context={"resource": resource, "resource_id": resource_id},
            ) from e
        if not isinstance(body, dict):
            raise BackendFailure(
                message="CouchDB returned an unexpected body",
                status=response.status_code,
                context={"resource": resource, "resource_id": resource_id},
            )
        return body
