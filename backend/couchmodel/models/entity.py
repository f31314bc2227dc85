"""
couchmodel — Entity Value Object
==================================

What:  In-memory representation of one CouchDB document.
How:   CouchDB's reserved `_id` and `_rev` are lifted out of the document
       into `id` and `rev`; everything else lives in `fields`.
Who:   Created by CouchModel.create() and by the finders; handed to callers,
       who own it. The model never keeps a reference.

Lifecycle:
    1. NEW        — built in memory, no revision yet (id optional)
    2. PERSISTED  — saved; id and rev set by CouchDB, rev changes per save
    3. DELETED    — removed from the database; further writes fail

    Every update sends the current rev; CouchDB answers 409 (ConflictError)
    when someone else wrote in between.
"""

import copy
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from couchmodel.exceptions import EntityStateError


class EntityState(str, Enum):
    NEW = "new"
    PERSISTED = "persisted"
    DELETED = "deleted"


class Entity:
    """
    One document of a model.

    Fields are reachable as a dict (`entity.fields`) and through item
    access (`entity["slug"]`). `to_value_object()` is the plain-data form
    used for storage and for REST responses.
    """

    def __init__(self, model: Any, data: Optional[Dict[str, Any]] = None):
        data = dict(data or {})
        self._model = model
        self.id: Optional[str] = data.pop("_id", None)
        self.rev: Optional[str] = data.pop("_rev", None)
        self.fields: Dict[str, Any] = data
        self.state = EntityState.PERSISTED if self.rev else EntityState.NEW

    @classmethod
    def from_document(cls, model: Any, document: Dict[str, Any]) -> "Entity":
        """Wrap a document read from the database (deep-copied)."""
        return cls(model, copy.deepcopy(document))

    # ── Lifecycle ─────────────────────────────────────────────────────────

    @property
    def is_new(self) -> bool:
        return self.state is EntityState.NEW

    @property
    def is_deleted(self) -> bool:
        return self.state is EntityState.DELETED

    async def save(self) -> "Entity":
        """Persist through the owning model; returns self with the new rev."""
        await self._model.save(self)
        return self

    async def remove(self) -> None:
        """Delete through the owning model."""
        await self._model.remove(self)

    def mark_saved(self, doc_id: str, rev: str) -> None:
        if self.is_deleted:
            raise EntityStateError(
                message="A deleted entity cannot be saved",
                context={"id": self.id},
            )
        self.id = doc_id
        self.rev = rev
        self.state = EntityState.PERSISTED

    def mark_deleted(self, rev: Optional[str] = None) -> None:
        self.rev = rev or self.rev
        self.state = EntityState.DELETED

    # ── Projection ────────────────────────────────────────────────────────

    def to_value_object(self) -> Dict[str, Any]:
        """
        Plain document form: `_id` and `_rev` (when known) followed by the
        fields. Identical to what CouchDB stores for this entity.
        """
        vo: Dict[str, Any] = {}
        if self.id is not None:
            vo["_id"] = self.id
        if self.rev is not None:
            vo["_rev"] = self.rev
        vo.update(copy.deepcopy(self.fields))
        return vo

    # ── Field access ──────────────────────────────────────────────────────

    def __getitem__(self, name: str) -> Any:
        return self.fields[name]

    def __setitem__(self, name: str, value: Any) -> None:
        if name in ("_id", "_rev"):
            raise KeyError(f"'{name}' is managed by the entity; use .id / .rev")
        self.fields[name] = value

    def __delitem__(self, name: str) -> None:
        del self.fields[name]

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def __repr__(self) -> str:
        return f"<Entity id={self.id!r} rev={self.rev!r} state={self.state.value}>"
