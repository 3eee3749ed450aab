"""Context catalog access.

The catalog is the pool of importable reference material (tickets,
repositories, documents).  The runtime needs two things from it: exact
lookup by id for explicit requirements, and category queries for wildcard
requirements.

Category mapping (concrete item -> semantic wildcard category):

- ``generic_ticket``     : type ``jira_ticket``, source ``jira``, or a tag containing "ticket"
- ``generic_repository`` : type ``git_repository``, source ``git``, or a tag containing "repo"
- ``generic_document``   : type ``document`` / ``file``, or a tag containing "doc"
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from functools import partial
from pathlib import Path
from typing import Protocol, runtime_checkable

from anyio import to_thread
from loguru import logger
from pydantic import ValidationError

from workshop.template_runtime.models.catalog import ContextItem
from workshop.template_runtime.models.enums import WildcardType

ItemPredicate = Callable[[ContextItem], bool]


@runtime_checkable
class ContextCatalog(Protocol):
    async def lookup(self, item_id: str) -> ContextItem | None:
        """Return the item, or ``None`` if it is not in the catalog."""
        ...

    async def query(self, predicate: ItemPredicate) -> list[ContextItem]:
        """Return all items satisfying *predicate*, in catalog order."""
        ...


# ---------------------------------------------------------------------------
# Category mapping
# ---------------------------------------------------------------------------


def _has_tag_containing(item: ContextItem, fragment: str) -> bool:
    return any(fragment in tag for tag in item.tags)


_CATEGORY_RULES: dict[WildcardType, tuple[frozenset[str], frozenset[str], str]] = {
    # category: (item types, item sources, tag fragment)
    WildcardType.GENERIC_TICKET: (frozenset({"jira_ticket"}), frozenset({"jira"}), "ticket"),
    WildcardType.GENERIC_REPOSITORY: (frozenset({"git_repository"}), frozenset({"git"}), "repo"),
    WildcardType.GENERIC_DOCUMENT: (frozenset({"document", "file"}), frozenset(), "doc"),
}


def matches_category(item: ContextItem, wildcard_type: WildcardType | str) -> bool:
    """Whether *item* belongs to the semantic category *wildcard_type*."""
    try:
        types, sources, fragment = _CATEGORY_RULES[WildcardType(wildcard_type)]
    except ValueError:
        return False
    return item.type in types or item.source in sources or _has_tag_containing(item, fragment)


def category_predicate(wildcard_type: WildcardType | str) -> ItemPredicate:
    return partial(matches_category, wildcard_type=wildcard_type)


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------


class MemoryContextCatalog:
    """Catalog over a fixed, ordered list of items."""

    def __init__(self, items: Iterable[ContextItem] = ()) -> None:
        self._items: dict[str, ContextItem] = {item.id: item for item in items}

    def add(self, item: ContextItem) -> None:
        self._items[item.id] = item

    async def lookup(self, item_id: str) -> ContextItem | None:
        return self._items.get(item_id)

    async def query(self, predicate: ItemPredicate) -> list[ContextItem]:
        return [item for item in self._items.values() if predicate(item)]


class LocalContextCatalog:
    """Read-only catalog backed by a directory of item JSON files.

    Layout::

        {data_root}/{prefix}/catalog/{item_id}.json

    Items are returned in file-name order, which is the order the
    ``first_match`` ranking sees.
    """

    def __init__(self, data_root: str | Path, prefix: str | None = None) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._base = base / "catalog"

    async def lookup(self, item_id: str) -> ContextItem | None:
        path = self._base / f"{item_id}.json"
        if path.parent != self._base:
            return None
        try:
            raw = await to_thread.run_sync(path.read_text)
        except FileNotFoundError:
            return None
        return ContextItem.model_validate_json(raw)

    async def query(self, predicate: ItemPredicate) -> list[ContextItem]:
        items = await to_thread.run_sync(partial(_load_items, self._base))
        return [item for item in items if predicate(item)]


def _load_items(directory: Path) -> list[ContextItem]:
    if not directory.is_dir():
        return []
    items: list[ContextItem] = []
    for path in sorted(directory.glob("*.json")):
        try:
            items.append(ContextItem.model_validate_json(path.read_text(encoding="utf-8")))
        except ValidationError:
            logger.warning("Skipping malformed catalog item {}", path)
    return items
