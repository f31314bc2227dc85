"""
couchmodel — Route Table
==========================

What:  The immutable set of addressable REST routes of one model, each
       tagged with whether it is enabled.
How:   build_route_table() reads the REST options once, while the model is
       constructed, and validates them against the view registry.
When:  Built before the first request; never rebuilt or mutated.

Route kinds:
    INDEX        GET /                 gated by `index`
    BY_ID        GET /{id}             gated by `byID`
    VIEW_QUERY   GET /{name}/{key}     gated by `views[name]`, one per view

Every registered view gets an entry, enabled or not, so the dispatcher can
tell "disabled view" (403) from "no such view" (404).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, List, Mapping, Optional

from couchmodel.exceptions import InvalidPrefix, UnknownView
from couchmodel.models.view import ViewRegistry
from couchmodel.schemas.options import RestApiOptions

logger = logging.getLogger(__name__)


class RouteKind(str, Enum):
    INDEX = "index"
    BY_ID = "by_id"
    VIEW_QUERY = "view_query"


@dataclass(frozen=True)
class RouteEntry:
    """
    One route. `path_segment` is the view's exposed name for VIEW_QUERY
    routes and None for the two static routes.
    """

    kind: RouteKind
    enabled: bool
    path_segment: Optional[str] = None

    @property
    def pattern(self) -> str:
        if self.kind is RouteKind.INDEX:
            return "/"
        if self.kind is RouteKind.BY_ID:
            return "/{id}"
        return f"/{self.path_segment}/{{key}}"


@dataclass(frozen=True)
class RouteTable:
    prefix: str
    index: RouteEntry
    by_id: RouteEntry
    views: Mapping[str, RouteEntry]

    def view(self, exposed_name: str) -> Optional[RouteEntry]:
        return self.views.get(exposed_name)

    def enabled_routes(self) -> List[RouteEntry]:
        entries = [self.index, self.by_id, *self.views.values()]
        return [entry for entry in entries if entry.enabled]

    def strip_prefix(self, path: str) -> Optional[str]:
        """
        Path relative to the prefix, or None when the path is outside it.

        "/testmodel/abc" → "/abc", "/testmodel" → "/", "/testmodelx" → None
        """
        if not self.prefix:
            return path or "/"
        if path == self.prefix:
            return "/"
        if path.startswith(self.prefix + "/"):
            return path[len(self.prefix):]
        return None


def validate_prefix(prefix: Optional[str]) -> str:
    """
    Normalize a REST prefix.

    Raises:
        InvalidPrefix: Non-empty prefix not starting with '/', or ending
                       with '/' (which includes "/" itself).
    """
    if not prefix:
        return ""
    if not prefix.startswith("/") or prefix.endswith("/"):
        raise InvalidPrefix(prefix)
    return prefix


def build_route_table(options: Any, registry: ViewRegistry) -> Optional[RouteTable]:
    """
    Build the route table for a model.

    Args:
        options:  RestApiOptions, an equivalent dict, or None
        registry: The model's populated view registry

    Returns:
        The route table, or None when options is None; the model then has
        no REST surface at all.

    Raises:
        InvalidPrefix: Malformed prefix.
        UnknownView:   A `views` key names no registered view.
    """
    options = RestApiOptions.coerce(options)
    if options is None:
        return None

    prefix = validate_prefix(options.prefix)

    # Resolve configured view switches to exposed names first so that an
    # unknown key fails the whole build.
    switches = {}
    for key, enabled in options.views.items():
        name = registry.lookup_config_key(key)
        if name is None:
            raise UnknownView(key)
        switches[name] = bool(enabled)

    views = {
        descriptor.exposed_name: RouteEntry(
            kind=RouteKind.VIEW_QUERY,
            enabled=switches.get(descriptor.exposed_name, False),
            path_segment=descriptor.exposed_name,
        )
        for descriptor in registry
    }

    table = RouteTable(
        prefix=prefix,
        index=RouteEntry(kind=RouteKind.INDEX, enabled=options.index),
        by_id=RouteEntry(kind=RouteKind.BY_ID, enabled=options.by_id),
        views=MappingProxyType(views),
    )
    logger.info(
        "REST routes built (prefix=%r): enabled %s",
        prefix or "/",
        ", ".join(entry.pattern for entry in table.enabled_routes()) or "none",
    )
    return table
