"""Usage and trigger counters.

Every update is a read-modify-write of a stored document, serialized per
document id with an ``asyncio.Lock`` so two applications of the same
template (or executions of the same trigger) never lose an increment.
The lock only covers this process; a store shared between processes needs
its own compare-and-swap.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from workshop.template_runtime.models.template import UsageStats, WorkspaceTemplate
    from workshop.template_runtime.models.trigger import WorkspaceTrigger
    from workshop.template_runtime.store.base import DefinitionStore


def record_attempt(stats: UsageStats, *, success: bool, duration_ms: float, automated: bool) -> UsageStats:
    """Return *stats* with one more attempt folded in.

    ``average_creation_time`` is a two-sample blend ``(old + new) / 2`` that
    leans toward recent applications; ``success_rate`` is derived from the
    counters on read.
    """
    updated = stats.model_copy()
    updated.total_uses += 1
    if automated:
        updated.automated_uses += 1
    else:
        updated.manual_uses += 1

    if success:
        updated.success_count += 1
        updated.last_used = datetime.now(tz=UTC)
        updated.average_creation_time = (stats.average_creation_time + duration_ms) / 2
    else:
        updated.failure_count += 1
    return updated


class StatsTracker:
    """Applies counter updates to templates and triggers atomically."""

    def __init__(
        self,
        templates: DefinitionStore[WorkspaceTemplate],
        triggers: DefinitionStore[WorkspaceTrigger],
    ) -> None:
        self._templates = templates
        self._triggers = triggers
        self._template_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._trigger_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def template_lock(self, template_id: str) -> asyncio.Lock:
        """Lock guarding read-modify-write of one template document."""
        return self._template_locks[template_id]

    def trigger_lock(self, trigger_id: str) -> asyncio.Lock:
        return self._trigger_locks[trigger_id]

    async def record_template_attempt(
        self,
        template_id: str,
        *,
        success: bool,
        duration_ms: float,
        automated: bool,
    ) -> UsageStats | None:
        """Fold one application attempt into the template's usage stats.

        Returns the new stats, or ``None`` if the template vanished or the
        write failed.  Never raises.
        """
        async with self._template_locks[template_id]:
            try:
                template = await self._templates.get(template_id)
                if template is None:
                    return None
                template.usage_stats = record_attempt(
                    template.usage_stats, success=success, duration_ms=duration_ms, automated=automated
                )
                template.updated_at = datetime.now(tz=UTC)
                await self._templates.put(template)
            except Exception:
                logger.exception("Failed to update usage stats for template {}", template_id)
                return None
            return template.usage_stats

    async def record_trigger_execution(self, trigger_id: str, *, success: bool) -> WorkspaceTrigger | None:
        """Bump the trigger's running totals.  Never raises."""
        async with self._trigger_locks[trigger_id]:
            try:
                trigger = await self._triggers.get(trigger_id)
                if trigger is None:
                    return None
                now = datetime.now(tz=UTC)
                trigger.execution_count += 1
                trigger.last_triggered = now
                trigger.updated_at = now
                if success:
                    trigger.success_count += 1
                else:
                    trigger.failure_count += 1
                await self._triggers.put(trigger)
            except Exception:
                logger.exception("Failed to update counters for trigger {}", trigger_id)
                return None
            return trigger
