"""
couchmodel — Abstract Document Store Interface
================================================

What:  Abstract base class defining the contract between the model layer
       and the database holding the documents.
How:   Concrete implementations inherit from DocumentStore; CouchDBStore
       speaks CouchDB's HTTP API.
Who:   Called by CouchModel (entity lifecycle, finders) and by the REST
       dispatcher (listing, fetch by id, view queries).

Shape contract:
    Read methods return the database's native JSON untouched (parsed into
    dicts, key order preserved). The REST dispatcher relies on this to
    answer with exactly what CouchDB would have answered.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

# Marks "no key filter" for view queries (None is a valid CouchDB key: null)
MISSING: Any = object()


class DocumentStore(ABC):
    """
    Abstract interface for document persistence and lookup.

    Contract:
        - Missing documents raise NotFoundInBackend
        - Stale revisions on writes raise ConflictError
        - Anything else that goes wrong raises BackendFailure
        - Implementations own retries and timeouts; callers never retry
    """

    @abstractmethod
    async def list_all(self, **params: Any) -> Dict[str, Any]:
        """
        Native "all documents" listing.

        Returns:
            {"total_rows": int, "offset": int, "rows": [{"id", "key", "value"}, ...]}
            exactly as the database emits it.
        """
        ...

    @abstractmethod
    async def get_by_id(self, doc_id: str) -> Dict[str, Any]:
        """
        Fetch one stored document.

        Raises:
            NotFoundInBackend: No document with this id (or it was deleted).
        """
        ...

    @abstractmethod
    async def query_view(self, path: str, key: Any = MISSING, **params: Any) -> Dict[str, Any]:
        """
        Query a view by its canonical path, optionally filtered by key.

        Args:
            path:   e.g. "_design/article/_view/by_slug"
            key:    Exact key filter; MISSING for no filter
            params: Other view options (limit, skip, descending, include_docs, ...)

        Returns:
            The native view result: {"total_rows", "offset", "rows": [...]}.
        """
        ...

    @abstractmethod
    async def save(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create or update a document.

        Returns:
            {"ok": true, "id": ..., "rev": ...}
        """
        ...

    @abstractmethod
    async def remove(self, doc_id: str, rev: str) -> Dict[str, Any]:
        """Delete a document at a given revision."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True if the database is reachable and exists."""
        ...

    async def close(self) -> None:
        """Release resources held by the store (no-op by default)."""
        return None
