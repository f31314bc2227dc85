# REST API package init
"""
couchmodel — Embedded REST API
================================

What:  Read-only HTTP surface mirroring part of CouchDB's own REST API for
       one model's database, with per-route enable/disable switches.

Module Inventory:
    - table.py:      RouteKind, RouteEntry, RouteTable, build_route_table()
    - dispatcher.py: RequestDispatcher — match → authorize → query → shape
    - shaper.py:     CouchDB-identical response bodies and rendering

Route Inventory (under the configured prefix):
    GET /                   → _all_docs listing          (index)
    GET /{id}               → the stored document        (byID)
    GET /{viewName}/{key}   → first matching entity      (views.<name>)
"""
