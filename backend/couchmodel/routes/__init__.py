# Routes package init
"""
couchmodel — Application Routes Package
=========================================

What:  FastAPI routes the served application adds next to the mirrored
       CouchDB routes.

Route Inventory:
    - health.py:  GET /health   (service and CouchDB health)

The mirrored routes (GET /, /{id}, /{view}/{key}) are not FastAPI routes:
they are answered by the model's RequestDispatcher (restapi/), mounted after
these so that /health is matched first.
"""
