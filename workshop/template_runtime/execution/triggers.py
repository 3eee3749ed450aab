"""Trigger executor -- fires one trigger against a state snapshot.

Wraps the orchestrator: the watched context item is pinned as the
override for the template's first wildcard requirement, the trigger's
variable mapping is evaluated against the snapshot, and the trigger's own
overrides and timeout are passed through.  The result is collapsed into
``{success, workspace_id, error}`` and the trigger counters are bumped.
``execute`` never raises.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from workshop.template_runtime.models.enums import AuditCategory, AuditLevel, RequirementType, TriggerStatus
from workshop.template_runtime.models.results import TriggerExecutionResult
from workshop.template_runtime.registry import ShuttingDownError

if TYPE_CHECKING:
    from workshop.template_runtime.audit import Auditor
    from workshop.template_runtime.execution.orchestrator import TemplateApplicationOrchestrator
    from workshop.template_runtime.execution.stats import StatsTracker
    from workshop.template_runtime.execution.variables import VariableResolver
    from workshop.template_runtime.models.template import WorkspaceTemplate
    from workshop.template_runtime.models.trigger import WorkspaceTrigger
    from workshop.template_runtime.registry import ApplicationRegistry
    from workshop.template_runtime.store.base import DefinitionStore

SAMPLE_TRIGGER_CONTEXT: dict[str, Any] = {
    "key": "TEST-123",
    "fields": {
        "summary": "Test ticket for trigger execution",
        "description": "Mock ticket used to dry-run a trigger",
        "status": {"name": "In Progress"},
        "priority": {"name": "Medium"},
        "assignee": {"name": "Test User"},
    },
    "comments": [{"author": "Test User", "body": "Initial comment"}],
}
"""Ticket-shaped context used by ``TriggerExecutor.test``."""


def wildcard_overrides(template: WorkspaceTemplate | None, context_item_id: str | None) -> dict[str, str]:
    """Pin the watched item to the first wildcard requirement's category."""
    if template is None or not context_item_id:
        return {}
    for requirement in template.context_requirements:
        if requirement.type == RequirementType.WILDCARD and requirement.wildcard_type is not None:
            return {requirement.wildcard_type.value: context_item_id}
    return {}


class TriggerExecutor:
    def __init__(
        self,
        triggers: DefinitionStore[WorkspaceTrigger],
        templates: DefinitionStore[WorkspaceTemplate],
        orchestrator: TemplateApplicationOrchestrator,
        variable_resolver: VariableResolver,
        stats: StatsTracker,
        auditor: Auditor,
        registry: ApplicationRegistry,
    ) -> None:
        self._triggers = triggers
        self._templates = templates
        self._orchestrator = orchestrator
        self._variable_resolver = variable_resolver
        self._stats = stats
        self._auditor = auditor
        self._registry = registry

    async def execute(
        self,
        trigger_id: str,
        trigger_context: Mapping[str, Any] | None = None,
        *,
        reason: str = "manual_execution",
    ) -> TriggerExecutionResult:
        """Fire *trigger_id* with *trigger_context* as the observed state.

        Unknown and non-active triggers are refused without touching
        counters.  Every attempted application bumps ``execution_count``
        and exactly one of ``success_count`` / ``failure_count``.
        """
        context = dict(trigger_context or {})
        try:
            trigger = await self._triggers.get(trigger_id)
        except Exception as exc:
            logger.exception("Failed to load trigger {}", trigger_id)
            return await self._refuse(trigger_id, f"Failed to load trigger: {exc}")

        if trigger is None:
            return await self._refuse(trigger_id, f"Trigger not found: {trigger_id}")
        if trigger.status != TriggerStatus.ACTIVE:
            return await self._refuse(trigger_id, f"Trigger is not active: {trigger.status}")

        await self._auditor.emit(
            AuditCategory.TRIGGER,
            f"Trigger activated: {trigger.name} ({reason})",
            template_id=trigger.template_id,
            trigger_id=trigger_id,
            reason=reason,
        )

        try:
            async with self._registry.track(trigger.template_id, trigger_id):
                result = await self._fire(trigger, context)
        except ShuttingDownError:
            return await self._refuse(trigger_id, "Service is shutting down", template_id=trigger.template_id)
        except Exception as exc:
            logger.exception("Trigger execution crashed: {}", trigger_id)
            result = TriggerExecutionResult(success=False, error=str(exc) or type(exc).__name__)

        await self._stats.record_trigger_execution(trigger_id, success=result.success)
        if result.success:
            logger.info("Trigger {} created workspace {}", trigger_id, result.workspace_id)
        else:
            await self._auditor.emit(
                AuditCategory.TRIGGER,
                f"Trigger failed: {trigger.name} ({result.error})",
                level=AuditLevel.ERROR,
                template_id=trigger.template_id,
                trigger_id=trigger_id,
            )
        return result

    async def test(self, trigger_id: str, mock_context: Mapping[str, Any] | None = None) -> TriggerExecutionResult:
        """Execute against ``SAMPLE_TRIGGER_CONTEXT`` shallow-merged with *mock_context*."""
        context = {**SAMPLE_TRIGGER_CONTEXT, **(mock_context or {})}
        logger.info("Testing trigger execution: {}", trigger_id)
        return await self.execute(trigger_id, context, reason="test_execution")

    # -- Internal --------------------------------------------------------------

    async def _fire(self, trigger: WorkspaceTrigger, context: dict[str, Any]) -> TriggerExecutionResult:
        template = await self._templates.get(trigger.template_id)
        overrides = wildcard_overrides(template, trigger.context_listener.context_item_id)
        values = await self._variable_resolver.resolve_mapped_values(
            trigger.variable_mapping, context, template_id=trigger.template_id, trigger_id=trigger.id
        )
        application = await self._orchestrator.apply(
            trigger.template_id,
            trigger_id=trigger.id,
            context_overrides=overrides,
            variable_values=values,
            trigger_context=context,
            template_overrides=trigger.template_overrides,
            timeout_ms=trigger.resource_limits.timeout_ms,
        )
        if application.success:
            return TriggerExecutionResult(success=True, workspace_id=application.workspace_id)
        return TriggerExecutionResult(success=False, error="; ".join(e.message for e in application.errors))

    async def _refuse(self, trigger_id: str, error: str, *, template_id: str | None = None) -> TriggerExecutionResult:
        await self._auditor.emit(
            AuditCategory.TRIGGER,
            f"Trigger failed: {trigger_id} ({error})",
            level=AuditLevel.ERROR,
            template_id=template_id,
            trigger_id=trigger_id,
        )
        return TriggerExecutionResult(success=False, error=error)
