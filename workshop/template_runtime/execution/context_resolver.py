"""Context requirement resolver -- binds each template requirement to a
concrete catalog item.

Resolution order:

1. **explicit**: look the ``context_item_id`` up in the catalog.
2. **wildcard**:
   - A caller override for the requirement's ``wildcard_type`` wins
     outright when the overridden item exists.
   - Otherwise query the catalog by the semantic category, narrow by the
     requirement's ``wildcard_filters`` and let the configured ranker pick.
3. Nothing found -> ``None``.  Whether that is an error or a warning is the
   orchestrator's call (it depends on ``required``).

The tie-break between several wildcard candidates is an explicit ranking
function rather than whatever order the catalog happens to return.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from loguru import logger

from workshop.template_runtime.catalog import category_predicate
from workshop.template_runtime.models.enums import (
    AuditCategory,
    AuditLevel,
    RequirementType,
    ResolutionType,
    WildcardType,
)
from workshop.template_runtime.models.results import AppliedContextItem

if TYPE_CHECKING:
    from workshop.template_runtime.audit import Auditor
    from workshop.template_runtime.catalog import ContextCatalog
    from workshop.template_runtime.models.catalog import ContextItem
    from workshop.template_runtime.models.template import ContextRequirement, WildcardFilters

# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------

Ranker = Callable[[list["ContextItem"]], list["ContextItem"]]
"""Orders wildcard candidates best-first; the resolver takes the head."""


def first_match(candidates: list[ContextItem]) -> list[ContextItem]:
    """Keep catalog order: the first surviving candidate wins."""
    return list(candidates)


def most_recent(candidates: list[ContextItem]) -> list[ContextItem]:
    """Newest ``added_at`` first; undated items keep catalog order at the end."""
    dated = [c for c in candidates if c.added_at is not None]
    undated = [c for c in candidates if c.added_at is None]
    dated.sort(key=lambda c: c.added_at, reverse=True)  # type: ignore[arg-type,return-value]
    return dated + undated


RANKERS: dict[str, Ranker] = {
    "first_match": first_match,
    "most_recent": most_recent,
}


def get_ranker(name: str) -> Ranker:
    """Look a ranker up by name.  Raises ``ValueError`` for unknown names."""
    try:
        return RANKERS[name]
    except KeyError:
        msg = f"Unknown wildcard ranking '{name}' (expected one of: {', '.join(sorted(RANKERS))})"
        raise ValueError(msg) from None


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def apply_filters(candidates: list[ContextItem], filters: WildcardFilters | None) -> list[ContextItem]:
    """Narrow candidates by tag intersection, source and content-type membership."""
    if filters is None:
        return candidates
    if filters.tags:
        wanted = set(filters.tags)
        candidates = [c for c in candidates if wanted.intersection(c.tags)]
    if filters.source:
        candidates = [c for c in candidates if c.source in filters.source]
    if filters.content_type:
        candidates = [c for c in candidates if c.type in filters.content_type]
    return candidates


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ContextRequirementResolver:
    """Resolves ``ContextRequirement`` -> ``AppliedContextItem``.

    Stateless beyond its references to the catalog, the audit log and the
    ranking function, so one instance serves all applications.
    """

    def __init__(self, catalog: ContextCatalog, auditor: Auditor, ranker: Ranker = first_match) -> None:
        self._catalog = catalog
        self._auditor = auditor
        self._ranker = ranker

    async def resolve(
        self,
        requirement: ContextRequirement,
        overrides: Mapping[str, str] | None = None,
        *,
        template_id: str | None = None,
    ) -> AppliedContextItem | None:
        """Bind *requirement* to a catalog item, or return ``None``.

        Parameters
        ----------
        requirement:
            The template requirement to resolve.
        overrides:
            ``wildcard_type -> item id`` chosen by the caller.  Only consulted
            for wildcard requirements.
        template_id:
            Used to key audit events.
        """
        if requirement.type == RequirementType.EXPLICIT:
            return await self._resolve_explicit(requirement)
        return await self._resolve_wildcard(requirement, overrides or {}, template_id)

    async def candidates(self, wildcard_type: WildcardType, filters: WildcardFilters | None = None) -> list[ContextItem]:
        """Ranked wildcard candidates, best first."""
        items = await self._catalog.query(category_predicate(wildcard_type))
        return self._ranker(apply_filters(items, filters))

    # -- Internal --------------------------------------------------------------

    async def _resolve_explicit(self, requirement: ContextRequirement) -> AppliedContextItem | None:
        item_id = requirement.context_item_id
        if not item_id:
            return None
        item = await self._catalog.lookup(item_id)
        if item is None:
            logger.warning("Explicit context item not found: {} (requirement={})", item_id, requirement.id)
            return None
        return AppliedContextItem(
            requirement_id=requirement.id,
            context_item_id=item.id,
            resolution_type=ResolutionType.EXPLICIT,
            metadata={"title": item.title, "source": item.source},
        )

    async def _resolve_wildcard(
        self,
        requirement: ContextRequirement,
        overrides: Mapping[str, str],
        template_id: str | None,
    ) -> AppliedContextItem | None:
        wildcard_type = requirement.wildcard_type
        if wildcard_type is None:
            return None

        # Level 1: caller override
        override_id = overrides.get(wildcard_type.value)
        if override_id:
            item = await self._catalog.lookup(override_id)
            if item is not None:
                await self._audit_resolved(requirement, item.id, template_id, via="override")
                return _wildcard_item(requirement, item, wildcard_type)
            await self._audit_failed(requirement, template_id, "Override item not found", override_id=override_id)

        # Level 2: category match + filters + ranking
        ranked = await self.candidates(wildcard_type, requirement.wildcard_filters)
        if ranked:
            item = ranked[0]
            await self._audit_resolved(requirement, item.id, template_id, via="category", candidates=len(ranked))
            return _wildcard_item(requirement, item, wildcard_type)

        await self._audit_failed(requirement, template_id, "No matching items found")
        return None

    async def _audit_resolved(
        self, requirement: ContextRequirement, item_id: str, template_id: str | None, **details: object
    ) -> None:
        await self._auditor.emit(
            AuditCategory.APPLICATION,
            f"Wildcard resolved: {requirement.wildcard_type} -> {item_id}",
            template_id=template_id,
            requirement_id=requirement.id,
            context_item_id=item_id,
            **details,
        )

    async def _audit_failed(
        self, requirement: ContextRequirement, template_id: str | None, reason: str, **details: object
    ) -> None:
        await self._auditor.emit(
            AuditCategory.APPLICATION,
            f"Wildcard resolution failed: {requirement.wildcard_type} ({reason})",
            level=AuditLevel.WARN,
            template_id=template_id,
            requirement_id=requirement.id,
            **details,
        )


def _wildcard_item(requirement: ContextRequirement, item: ContextItem, wildcard_type: WildcardType) -> AppliedContextItem:
    return AppliedContextItem(
        requirement_id=requirement.id,
        context_item_id=item.id,
        resolution_type=ResolutionType.WILDCARD_RESOLVED,
        metadata={"wildcard_type": wildcard_type.value, "title": item.title, "source": item.source},
    )
