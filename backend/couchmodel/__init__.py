"""
couchmodel — Document Model Layer for CouchDB
===============================================

What: Entity/view model over a CouchDB database plus an optional embedded
      REST handler that mirrors CouchDB's own responses.
Who:  Imported by applications that keep documents in CouchDB and want
      view-backed finders and a gated read-only HTTP surface.

Architecture Note:

    ┌─────────────────────────────────────┐
    │   REST dispatcher (restapi/)        │  ← route table, gating, shaping
    ├─────────────────────────────────────┤
    │   Model (services/model_service)    │  ← entities, view finders
    ├─────────────────────────────────────┤
    │   Entity & view registry (models/)  │  ← value objects, name lookup
    ├─────────────────────────────────────┤
    │   Document store (services/couchdb) │  ← CouchDB HTTP API via httpx
    └─────────────────────────────────────┘

    The dispatcher only reads from the layers below it; documents are
    written through entities and the model.
"""

__version__ = "1.0.0"
