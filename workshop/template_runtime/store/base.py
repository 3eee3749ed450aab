"""Definition store interface for template and trigger documents.

The definition store persists whole JSON documents keyed by id, one store
per collection (templates, triggers).  The interface is async to support
both local filesystem and remote backends.

The listing index (id, name, category / template_id, updated_at) is a read
model derived from the records themselves.  Stores never maintain a side
index file in lockstep with writes, so an interrupted write cannot leave
record and index disagreeing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class Document(Protocol):
    """Shape every stored document must have."""

    id: str
    updated_at: datetime | None


@runtime_checkable
class DefinitionStore(Protocol[T]):
    """Async protocol for reading and writing definition documents.

    Storage layout (keyed by document id)::

        {root}/{collection}/{doc_id}.json
    """

    async def get(self, doc_id: str) -> T | None:
        """Return the document, or ``None`` if it does not exist."""
        ...

    async def list(self) -> list[T]:
        """Return all documents, most recently updated first."""
        ...

    async def put(self, doc: T) -> None:
        """Create or replace the document with ``doc.id``."""
        ...

    async def delete(self, doc_id: str) -> bool:
        """Delete a document.  Returns ``False`` if it did not exist."""
        ...

    async def index(self) -> list[dict[str, Any]]:
        """Return the denormalized listing rows, derived from the records."""
        ...


def index_row(doc: BaseModel, fields: tuple[str, ...]) -> dict[str, Any]:
    """Project a document onto the configured index fields."""
    data = doc.model_dump(mode="json", include=set(fields))
    return {name: data.get(name) for name in fields}


def sort_newest_first(docs: list[T]) -> list[T]:
    """Order documents by ``updated_at`` descending; undated ones last."""
    dated = [d for d in docs if getattr(d, "updated_at", None) is not None]
    undated = [d for d in docs if getattr(d, "updated_at", None) is None]
    dated.sort(key=lambda d: d.updated_at, reverse=True)  # type: ignore[attr-defined]
    return dated + undated


def check_doc_id(doc_id: str) -> str:
    """Reject ids that would escape the collection directory."""
    if not doc_id or "/" in doc_id or "\\" in doc_id or doc_id.startswith("."):
        msg = f"Invalid document id: {doc_id!r}"
        raise ValueError(msg)
    return doc_id
