"""
couchmodel — REST Response Shaper
===================================

What:  Turns store results into the bodies each route answers with, and
       renders them the way CouchDB writes JSON.
How:   Listings and documents pass through untouched; view lookups answer
       with the entity's value object. Rendering is compact JSON, UTF-8,
       newline-terminated.

Compatibility contract:
    GET /       body == CouchDB's GET /{db}/_all_docs body
    GET /{id}   body == CouchDB's GET /{db}/{id} body
    GET /v/k    body == model.find_one_<v>(k).to_value_object()

Error bodies use CouchDB's own envelope, with fixed reasons so no internal
detail leaks:

    {"error":"not_found","reason":"missing"}
"""

import json
from typing import Any, Dict

from starlette.responses import Response

from couchmodel.models.entity import Entity

ERROR_BODIES: Dict[int, Dict[str, str]] = {
    403: {"error": "forbidden", "reason": "This route is disabled."},
    404: {"error": "not_found", "reason": "missing"},
    500: {"error": "internal_server_error", "reason": "The request could not be completed."},
}


def render_json(body: Any) -> bytes:
    """Serialize like CouchDB: no spaces, raw UTF-8, trailing newline."""
    return (
        json.dumps(body, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
        + "\n"
    ).encode("utf-8")


class CouchJSONResponse(Response):
    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return render_json(content)


# ── Route bodies ──────────────────────────────────────────────────────────

def shape_listing(listing: Dict[str, Any]) -> Dict[str, Any]:
    """Index route: the native listing as-is (total_rows, offset, rows)."""
    return listing


def shape_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """By-id route: the stored document, no envelope."""
    return document


def shape_entity(entity: Entity) -> Dict[str, Any]:
    """View route: same projection the in-process finders hand out."""
    return entity.to_value_object()


def error_body(status_code: int) -> Dict[str, str]:
    return ERROR_BODIES.get(status_code, ERROR_BODIES[500])
