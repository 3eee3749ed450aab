"""Snapshot sources: where the scheduler gets the current state of a watched entity.

Fetching external systems (ticket trackers, repositories) happens outside
the runtime; a source only hands back the latest state as a plain dict.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from workshop.template_runtime.catalog import ContextCatalog


@runtime_checkable
class SnapshotSource(Protocol):
    async def fetch(self, entity_id: str) -> dict[str, Any] | None:
        """Return the entity's current state, or ``None`` if it is unavailable."""
        ...


class CatalogSnapshotSource:
    """Read the watched entity from the context catalog.

    The state is the item's ``metadata`` with its ``content`` merged over it
    when the content is a mapping (an imported ticket keeps its fields
    there).  The item id, title and tags are exposed as well so conditions
    and variable mappings can reach them.
    """

    def __init__(self, catalog: ContextCatalog) -> None:
        self._catalog = catalog

    async def fetch(self, entity_id: str) -> dict[str, Any] | None:
        item = await self._catalog.lookup(entity_id)
        if item is None:
            return None
        state: dict[str, Any] = {"id": item.id, "title": item.title, "tags": list(item.tags)}
        state.update(item.metadata)
        if isinstance(item.content, dict):
            state.update(item.content)
        elif item.content is not None:
            state["content"] = item.content
        return state


class StaticSnapshotSource:
    """Serve states pushed in by the caller (webhook receivers, tests)."""

    def __init__(self, states: dict[str, dict[str, Any]] | None = None) -> None:
        self._states: dict[str, dict[str, Any]] = dict(states or {})

    def push(self, entity_id: str, state: dict[str, Any]) -> None:
        self._states[entity_id] = state

    async def fetch(self, entity_id: str) -> dict[str, Any] | None:
        return self._states.get(entity_id)
