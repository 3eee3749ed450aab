"""Template application orchestrator.

Drives one application end to end::

    load template -> resolve context requirements -> resolve variables
                  -> apply overrides -> provision workspace -> record stats

Stages gate each other: context errors are accumulated over all
requirements but stop the pipeline before variables; a variable failure
stops it before provisioning.  ``apply`` never raises -- every outcome is
a ``TemplateApplicationResult``.

A provisioner call that exceeds ``timeout_ms`` is reported as a
``workspace_creation`` failure but is left to finish in the background so a
workspace is never left half-materialized.  Callers that own the event loop
(the lifespan, the CLI, the scheduler's concurrency slots) wait for such
calls with ``wait_for_detached``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from workshop.template_runtime.execution.overrides import effective_blueprint
from workshop.template_runtime.execution.variables import VariableResolutionError
from workshop.template_runtime.models.enums import AuditCategory, AuditLevel, ErrorType
from workshop.template_runtime.models.results import (
    AppliedContextItem,
    TemplateApplicationError,
    TemplateApplicationResult,
)

if TYPE_CHECKING:
    from workshop.template_runtime.audit import Auditor
    from workshop.template_runtime.execution.context_resolver import ContextRequirementResolver
    from workshop.template_runtime.execution.stats import StatsTracker
    from workshop.template_runtime.execution.variables import VariableResolver
    from workshop.template_runtime.models.template import WorkspaceTemplate
    from workshop.template_runtime.models.trigger import TemplateOverrides
    from workshop.template_runtime.provisioner import WorkspaceProvisioner
    from workshop.template_runtime.store.base import DefinitionStore


class TemplateApplicationOrchestrator:
    """Applies stored templates through the resolution pipeline."""

    def __init__(
        self,
        templates: DefinitionStore[WorkspaceTemplate],
        context_resolver: ContextRequirementResolver,
        variable_resolver: VariableResolver,
        provisioner: WorkspaceProvisioner,
        stats: StatsTracker,
        auditor: Auditor,
    ) -> None:
        self._templates = templates
        self._context_resolver = context_resolver
        self._variable_resolver = variable_resolver
        self._provisioner = provisioner
        self._stats = stats
        self._auditor = auditor
        # Provisioner calls that outlived their timeout, keyed to the firing trigger (None for manual).
        self._detached: dict[asyncio.Task[str], str | None] = {}

    async def apply(
        self,
        template_id: str,
        *,
        trigger_id: str | None = None,
        context_overrides: Mapping[str, str] | None = None,
        variable_values: Mapping[str, Any] | None = None,
        trigger_context: Mapping[str, Any] | None = None,
        template_overrides: TemplateOverrides | None = None,
        timeout_ms: int | None = None,
    ) -> TemplateApplicationResult:
        """Apply *template_id* and report the outcome.

        Parameters
        ----------
        trigger_id:
            Set when a trigger fired the application; counts as automated use.
        context_overrides:
            ``wildcard_type -> context item id`` pinned by the caller.
        variable_values:
            Explicit variable values; they win over the trigger context.
        trigger_context:
            State snapshot of the entity that fired the trigger.
        template_overrides:
            Per-trigger adjustments applied to a copy of the template.
        timeout_ms:
            Upper bound for the provisioner call.
        """
        started = time.perf_counter()
        try:
            return await self._apply(
                template_id,
                started,
                trigger_id=trigger_id,
                context_overrides=context_overrides,
                variable_values=variable_values,
                trigger_context=trigger_context,
                template_overrides=template_overrides,
                timeout_ms=timeout_ms,
            )
        except Exception as exc:
            logger.exception("Template application crashed: {}", template_id)
            return TemplateApplicationResult(
                success=False,
                errors=[TemplateApplicationError(type=ErrorType.VALIDATION, message=f"Unexpected error: {exc}")],
                execution_time_ms=_elapsed_ms(started),
            )

    async def _apply(
        self,
        template_id: str,
        started: float,
        *,
        trigger_id: str | None,
        context_overrides: Mapping[str, str] | None,
        variable_values: Mapping[str, Any] | None,
        trigger_context: Mapping[str, Any] | None,
        template_overrides: TemplateOverrides | None,
        timeout_ms: int | None,
    ) -> TemplateApplicationResult:
        template = await self._templates.get(template_id)
        if template is None:
            await self._auditor.emit(
                AuditCategory.APPLICATION,
                f"Template application failed: template {template_id} not found",
                level=AuditLevel.ERROR,
                template_id=template_id,
                trigger_id=trigger_id,
            )
            return TemplateApplicationResult(
                success=False,
                errors=[
                    TemplateApplicationError(
                        type=ErrorType.VALIDATION,
                        message=f"Template {template_id} not found",
                        details={"template_id": template_id},
                    )
                ],
                execution_time_ms=_elapsed_ms(started),
            )

        errors: list[TemplateApplicationError] = []
        warnings: list[str] = []

        # -- Context requirements ----------------------------------------------
        await self._auditor.emit(
            AuditCategory.APPLICATION,
            f"Context resolution started: {len(template.context_requirements)} requirement(s)",
            template_id=template_id,
            trigger_id=trigger_id,
        )
        applied = await self._resolve_requirements(template, context_overrides, errors, warnings)

        # -- Variables ---------------------------------------------------------
        resolved: dict[str, Any] = {}
        if not errors:
            try:
                resolved = await self._variable_resolver.resolve_all(
                    template.variables, variable_values, trigger_context, template_id=template_id
                )
            except VariableResolutionError as exc:
                errors.append(
                    TemplateApplicationError(
                        type=ErrorType.VARIABLE_RESOLUTION,
                        message=str(exc),
                        details={"variable": exc.name, "reason": exc.reason},
                    )
                )

        # -- Provisioning ------------------------------------------------------
        workspace_id: str | None = None
        if not errors:
            workspace_id = await self._provision(
                template, applied, resolved, template_overrides, timeout_ms, errors, trigger_id=trigger_id
            )

        success = workspace_id is not None
        elapsed = _elapsed_ms(started)
        await self._stats.record_template_attempt(
            template_id, success=success, duration_ms=elapsed, automated=trigger_id is not None
        )

        if success:
            await self._auditor.emit(
                AuditCategory.APPLICATION,
                f"Template application completed: {template.name} -> {workspace_id}",
                template_id=template_id,
                trigger_id=trigger_id,
                workspace_id=workspace_id,
                execution_time_ms=elapsed,
            )
        else:
            await self._auditor.emit(
                AuditCategory.APPLICATION,
                f"Template application failed: {template.name} ({len(errors)} error(s))",
                level=AuditLevel.ERROR,
                template_id=template_id,
                trigger_id=trigger_id,
                errors=[e.message for e in errors],
            )

        return TemplateApplicationResult(
            success=success,
            workspace_id=workspace_id,
            errors=errors,
            warnings=warnings,
            resolved_variables=resolved if success else {},
            applied_context_items=applied,
            execution_time_ms=elapsed,
        )

    # -- Stages ------------------------------------------------------------------

    async def _resolve_requirements(
        self,
        template: WorkspaceTemplate,
        overrides: Mapping[str, str] | None,
        errors: list[TemplateApplicationError],
        warnings: list[str],
    ) -> list[AppliedContextItem]:
        applied: list[AppliedContextItem] = []
        for requirement in template.context_requirements:
            try:
                item = await self._context_resolver.resolve(requirement, overrides, template_id=template.id)
            except Exception:
                logger.exception("Context lookup failed for requirement {} of {}", requirement.id, template.id)
                item = None

            if item is not None:
                applied.append(item)
            elif requirement.required:
                errors.append(
                    TemplateApplicationError(
                        type=ErrorType.CONTEXT_RESOLUTION,
                        message=f"Required context requirement not resolved: {requirement.label}",
                        details={"requirement_id": requirement.id},
                    )
                )
            else:
                warnings.append(f"Optional context requirement not resolved: {requirement.label}")
        return applied

    async def _provision(
        self,
        template: WorkspaceTemplate,
        applied: list[AppliedContextItem],
        variables: dict[str, Any],
        overrides: TemplateOverrides | None,
        timeout_ms: int | None,
        errors: list[TemplateApplicationError],
        *,
        trigger_id: str | None,
    ) -> str | None:
        config, agents = effective_blueprint(template, overrides)
        task = asyncio.ensure_future(
            self._provisioner.create(config, applied, variables, template_id=template.id, agents=agents)
        )
        try:
            if timeout_ms is None:
                return await asyncio.shield(task)
            return await asyncio.wait_for(asyncio.shield(task), timeout_ms / 1000)
        except TimeoutError:
            self._detached[task] = trigger_id
            task.add_done_callback(self._on_detached_done)
            errors.append(
                TemplateApplicationError(
                    type=ErrorType.WORKSPACE_CREATION,
                    message=f"Workspace creation timed out after {timeout_ms} ms",
                    details={"timeout_ms": timeout_ms},
                )
            )
        except Exception as exc:
            logger.warning("Workspace creation failed for template {}: {}", template.id, exc)
            errors.append(
                TemplateApplicationError(
                    type=ErrorType.WORKSPACE_CREATION,
                    message=f"Failed to create workspace: {exc}",
                )
            )
        return None

    def _on_detached_done(self, task: asyncio.Task[str]) -> None:
        self._detached.pop(task, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Timed-out workspace creation failed later: {}", exc)
        else:
            logger.warning("Timed-out workspace creation finished late: {}", task.result())

    @property
    def detached_count(self) -> int:
        return len(self._detached)

    async def wait_for_detached(self, *, trigger_id: str | None = None, timeout: float | None = None) -> bool:
        """Wait for provisioner calls that outlived their timeout.

        With *trigger_id*, only calls made for that trigger are awaited.  The
        calls are never cancelled here; returns ``False`` if *timeout*
        expired with some of them still running.
        """
        tasks = {t for t, owner in self._detached.items() if trigger_id is None or owner == trigger_id}
        if not tasks:
            return True
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        if still_running:
            logger.warning("{} timed-out workspace creation(s) still running after {}s", len(still_running), timeout)
            return False
        return True


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
