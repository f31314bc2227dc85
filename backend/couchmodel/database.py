"""
couchmodel — CouchDB Connection Management
============================================

What:  Shared httpx.AsyncClient for talking to CouchDB, plus the default
       document store built on top of it.
How:   The client is created lazily on first use with base URL, timeout and
       auth from settings; its connection pool is shared by every request.
Who:   The application factory (main.py) and the health route.
When:  Client created on first access; disposed during app shutdown.

Connection Pooling:
    httpx keeps keep-alive connections per host. One client per process
    means one pool per process; CouchDB itself handles concurrent readers.
"""

from typing import Optional

import httpx

from couchmodel.config import settings
from couchmodel.services.couchdb_service import CouchDBStore

_client: Optional[httpx.AsyncClient] = None
_store: Optional[CouchDBStore] = None


def create_client(
    base_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Build an AsyncClient pointed at the CouchDB server root.

    Args:
        base_url:  Server URL; defaults to settings.couchdb_url
        transport: Optional transport (tests pass an httpx.MockTransport)
    """
    return httpx.AsyncClient(
        base_url=base_url or settings.couchdb_url,
        timeout=httpx.Timeout(settings.couchdb_timeout),
        auth=settings.couchdb_auth,
        headers={"Accept": "application/json"},
        transport=transport,
    )


def get_client() -> httpx.AsyncClient:
    """Process-wide client, created on first call."""
    global _client
    if _client is None or _client.is_closed:
        _client = create_client()
    return _client


def get_store() -> CouchDBStore:
    """Process-wide store for settings.couchdb_db_name."""
    global _store
    if _store is None:
        _store = CouchDBStore(get_client(), settings.couchdb_db_name)
    return _store


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_client() -> None:
    """
    What:  Closes the shared client and its pooled connections.
    When:  Called during application shutdown (lifespan handler).
    """
    global _client, _store
    if _store is not None:
        await _store.close()
    elif _client is not None:
        await _client.aclose()
    _client = None
    _store = None
