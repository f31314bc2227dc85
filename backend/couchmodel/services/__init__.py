# Services package init
"""
couchmodel — Services Layer
=============================

What:  Model logic between the REST/HTTP layer and the database.

Service Inventory:
    - DocumentStore (abstract): Interface for document persistence and lookup
    - CouchDBStore: Concrete store speaking CouchDB's HTTP API via httpx
    - CouchModel: Entities, view finders and the optional REST dispatcher

The REST dispatcher and the in-process finders go through the same store
and the same row → entity conversion, which is what keeps REST responses
and finder results identical.
"""
