"""Trigger CRUD operations.

Encapsulates all trigger data access: create (the referenced template must
exist), list with filters, get, update, pause / resume and delete.
Counters belong to the stats tracker; updates share its per-trigger lock.
"""

from __future__ import annotations

import uuid
from contextlib import nullcontext
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from workshop.template_runtime.managers.templates import TemplateNotFoundError
from workshop.template_runtime.models.api import TriggerCreate, TriggerIndexEntry, TriggerUpdate
from workshop.template_runtime.models.enums import TriggerStatus
from workshop.template_runtime.models.trigger import WorkspaceTrigger
from workshop.template_runtime.store.base import check_doc_id

if TYPE_CHECKING:
    from workshop.template_runtime.execution.stats import StatsTracker
    from workshop.template_runtime.models.template import WorkspaceTemplate
    from workshop.template_runtime.store.base import DefinitionStore

TRIGGER_INDEX_FIELDS = ("id", "name", "template_id", "status", "updated_at")


class DuplicateTriggerError(ValueError):
    """Raised when a trigger with the given ID already exists."""


class TriggerNotFoundError(LookupError):
    """Raised when a trigger is not found."""


async def create_trigger(
    store: DefinitionStore[WorkspaceTrigger],
    templates: DefinitionStore[WorkspaceTemplate],
    body: TriggerCreate,
) -> WorkspaceTrigger:
    """Create a new trigger.

    Raises ``TemplateNotFoundError`` if the referenced template is missing,
    ``DuplicateTriggerError`` if the ID already exists.
    """
    if await templates.get(body.template_id) is None:
        raise TemplateNotFoundError(body.template_id)

    trigger_id = check_doc_id(body.id or f"trig_{uuid.uuid4().hex[:12]}")
    if await store.get(trigger_id) is not None:
        raise DuplicateTriggerError(trigger_id)

    now = datetime.now(tz=UTC)
    trigger = WorkspaceTrigger(id=trigger_id, created_at=now, updated_at=now, **body.model_dump(exclude={"id"}))
    await store.put(trigger)
    return trigger


async def list_triggers(
    store: DefinitionStore[WorkspaceTrigger],
    *,
    template_id: str | None = None,
    status: TriggerStatus | None = None,
) -> list[WorkspaceTrigger]:
    """List triggers, most recently updated first, optionally filtered."""
    triggers = await store.list()
    if template_id is not None:
        triggers = [t for t in triggers if t.template_id == template_id]
    if status is not None:
        triggers = [t for t in triggers if t.status == status]
    return triggers


async def trigger_index(store: DefinitionStore[WorkspaceTrigger]) -> list[TriggerIndexEntry]:
    return [TriggerIndexEntry.model_validate(row) for row in await store.index()]


async def get_trigger(store: DefinitionStore[WorkspaceTrigger], trigger_id: str) -> WorkspaceTrigger:
    """Get a trigger by ID.  Raises ``TriggerNotFoundError`` if missing."""
    trigger = await store.get(trigger_id)
    if trigger is None:
        raise TriggerNotFoundError(trigger_id)
    return trigger


async def update_trigger(
    store: DefinitionStore[WorkspaceTrigger],
    trigger_id: str,
    body: TriggerUpdate,
    *,
    stats: StatsTracker | None = None,
) -> WorkspaceTrigger:
    """Partially update a trigger.  Raises ``TriggerNotFoundError`` if missing."""
    async with stats.trigger_lock(trigger_id) if stats is not None else nullcontext():
        trigger = await get_trigger(store, trigger_id)
        changes = body.model_dump(exclude_unset=True)
        if not changes:
            return trigger

        merged = trigger.model_dump()
        merged.update(body.model_dump(include=set(changes)))
        merged["updated_at"] = datetime.now(tz=UTC)
        updated = WorkspaceTrigger.model_validate(merged)
        await store.put(updated)
        return updated


async def set_trigger_status(
    store: DefinitionStore[WorkspaceTrigger],
    trigger_id: str,
    status: TriggerStatus,
    *,
    stats: StatsTracker | None = None,
) -> WorkspaceTrigger:
    """Pause, resume or disable a trigger."""
    return await update_trigger(store, trigger_id, TriggerUpdate(status=status), stats=stats)


async def delete_trigger(store: DefinitionStore[WorkspaceTrigger], trigger_id: str) -> None:
    """Delete a trigger.  Raises ``TriggerNotFoundError`` if missing."""
    if not await store.delete(trigger_id):
        raise TriggerNotFoundError(trigger_id)
