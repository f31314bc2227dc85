"""
couchmodel — View Descriptors and Registry
============================================

What:  The set of CouchDB views a model can query, each known by a canonical
       path and an exposed short name.
How:   A plain dict keyed by exposed name, filled while the model is built
       and only read afterwards (finders, route table, dispatcher).

Naming:
    "_design/article/_view/by_slug"                    → exposed as "by_slug"
    {"path": "_design/article/_view/by_tag",
     "name": "by_one_of_the_tags"}                     → exposed as "by_one_of_the_tags"

    REST options may spell a view key in camelCase ("bySlug",
    "byOneOfTheTags"); lookup_config_key() maps those back.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from couchmodel.exceptions import DuplicateViewName, UnknownView
from couchmodel.schemas.options import ViewRegistration

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def to_snake_case(name: str) -> str:
    """'byOneOfTheTags' → 'by_one_of_the_tags'; snake_case passes through."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


@dataclass(frozen=True)
class ViewDescriptor:
    """One queryable view."""

    canonical_path: str
    exposed_name: str

    @classmethod
    def from_registration(cls, registration: ViewRegistration) -> "ViewDescriptor":
        path = registration.path
        name = registration.name or path.rstrip("/").rsplit("/", 1)[-1]
        return cls(canonical_path=path, exposed_name=name)


class ViewRegistry:
    """
    Lookup table from exposed view name to view descriptor.

    Populated during model construction; read-only once the model is
    handed out, so concurrent requests can read it without locking.
    """

    def __init__(self) -> None:
        self._views: Dict[str, ViewDescriptor] = {}

    def register(self, descriptor: ViewDescriptor) -> ViewDescriptor:
        """
        Add a view.

        Raises:
            DuplicateViewName: The exposed name is already taken.
        """
        existing = self._views.get(descriptor.exposed_name)
        if existing is not None:
            raise DuplicateViewName(descriptor.exposed_name, existing.canonical_path)
        self._views[descriptor.exposed_name] = descriptor
        return descriptor

    def resolve(self, exposed_name: str) -> str:
        """
        Canonical path of a registered view.

        Raises:
            UnknownView: No view is exposed under this name.
        """
        return self.get(exposed_name).canonical_path

    def get(self, exposed_name: str) -> ViewDescriptor:
        try:
            return self._views[exposed_name]
        except KeyError:
            raise UnknownView(exposed_name) from None

    def lookup_config_key(self, key: str) -> Optional[str]:
        """Exposed name for a REST option key, or None if nothing matches."""
        if key in self._views:
            return key
        snake = to_snake_case(key)
        if snake in self._views:
            return snake
        return None

    def names(self) -> List[str]:
        return list(self._views)

    def __contains__(self, exposed_name: object) -> bool:
        return exposed_name in self._views

    def __iter__(self) -> Iterator[ViewDescriptor]:
        return iter(self._views.values())

    def __len__(self) -> int:
        return len(self._views)
