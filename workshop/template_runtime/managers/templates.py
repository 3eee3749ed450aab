"""Template CRUD operations.

Encapsulates all template data access: create, list, get, update, delete
and the listing index.  ``usage_stats`` belong to the stats tracker; updates
here take the same per-template lock so an edit never overwrites a counter
bump that landed in between.
"""

from __future__ import annotations

import uuid
from contextlib import nullcontext
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from workshop.template_runtime.models.api import TemplateCreate, TemplateIndexEntry, TemplateUpdate
from workshop.template_runtime.models.template import WorkspaceTemplate
from workshop.template_runtime.store.base import check_doc_id

if TYPE_CHECKING:
    from workshop.template_runtime.execution.stats import StatsTracker
    from workshop.template_runtime.models.enums import TemplateCategory
    from workshop.template_runtime.store.base import DefinitionStore

TEMPLATE_INDEX_FIELDS = ("id", "name", "category", "updated_at")


class DuplicateTemplateError(ValueError):
    """Raised when a template with the given ID already exists."""


class TemplateNotFoundError(LookupError):
    """Raised when a template is not found."""


async def create_template(store: DefinitionStore[WorkspaceTemplate], body: TemplateCreate) -> WorkspaceTemplate:
    """Create a new workspace template.

    Raises ``DuplicateTemplateError`` if the ID already exists.
    """
    template_id = check_doc_id(body.id or f"tpl_{uuid.uuid4().hex[:12]}")
    if await store.get(template_id) is not None:
        raise DuplicateTemplateError(template_id)

    now = datetime.now(tz=UTC)
    template = WorkspaceTemplate(id=template_id, created_at=now, updated_at=now, **body.model_dump(exclude={"id"}))
    await store.put(template)
    return template


async def list_templates(
    store: DefinitionStore[WorkspaceTemplate],
    category: TemplateCategory | None = None,
) -> list[WorkspaceTemplate]:
    """List templates, most recently updated first, optionally by category."""
    templates = await store.list()
    if category is not None:
        templates = [t for t in templates if t.category == category]
    return templates


async def template_index(store: DefinitionStore[WorkspaceTemplate]) -> list[TemplateIndexEntry]:
    return [TemplateIndexEntry.model_validate(row) for row in await store.index()]


async def get_template(store: DefinitionStore[WorkspaceTemplate], template_id: str) -> WorkspaceTemplate:
    """Get a template by ID.  Raises ``TemplateNotFoundError`` if missing."""
    template = await store.get(template_id)
    if template is None:
        raise TemplateNotFoundError(template_id)
    return template


async def update_template(
    store: DefinitionStore[WorkspaceTemplate],
    template_id: str,
    body: TemplateUpdate,
    *,
    stats: StatsTracker | None = None,
) -> WorkspaceTemplate:
    """Partially update a template.  Raises ``TemplateNotFoundError`` if missing."""
    async with stats.template_lock(template_id) if stats is not None else nullcontext():
        template = await get_template(store, template_id)
        changes = body.model_dump(exclude_unset=True)
        if not changes:
            return template

        merged = template.model_dump()
        merged.update(body.model_dump(include=set(changes)))
        merged["updated_at"] = datetime.now(tz=UTC)
        updated = WorkspaceTemplate.model_validate(merged)
        await store.put(updated)
        return updated


async def delete_template(store: DefinitionStore[WorkspaceTemplate], template_id: str) -> None:
    """Delete a template.  Raises ``TemplateNotFoundError`` if missing."""
    if not await store.delete(template_id):
        raise TemplateNotFoundError(template_id)
