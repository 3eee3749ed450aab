"""In-memory definition store.

Holds deep copies of documents so callers never share mutable state with
the store.  Used for embedding the engine and in tests.
"""

from __future__ import annotations

from typing import Any, Generic

from pydantic import BaseModel

from workshop.template_runtime.store.base import T, index_row, sort_newest_first


class MemoryDefinitionStore(Generic[T]):
    """Dict-backed implementation of the DefinitionStore protocol."""

    def __init__(self, *, index_fields: tuple[str, ...] = ("id", "name", "updated_at")) -> None:
        self._docs: dict[str, T] = {}
        self._index_fields = index_fields

    async def get(self, doc_id: str) -> T | None:
        doc = self._docs.get(doc_id)
        return doc.model_copy(deep=True) if doc is not None else None

    async def list(self) -> list[T]:
        return sort_newest_first([d.model_copy(deep=True) for d in self._docs.values()])

    async def put(self, doc: T) -> None:
        self._docs[doc.id] = doc.model_copy(deep=True)  # type: ignore[attr-defined]

    async def delete(self, doc_id: str) -> bool:
        return self._docs.pop(doc_id, None) is not None

    async def index(self) -> list[dict[str, Any]]:
        return [index_row(doc, self._index_fields) for doc in await self.list()]
