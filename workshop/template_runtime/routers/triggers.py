"""Trigger CRUD, execution and approval endpoints (RPC-style).

All write operations use POST; reads use GET.  Mutations that change
whether a trigger should be polled re-sync the scheduler.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from workshop.template_runtime.deps import AppServices
from workshop.template_runtime.managers import triggers as mgr
from workshop.template_runtime.managers.templates import TemplateNotFoundError
from workshop.template_runtime.models.api import (
    ExecuteRequest,
    TriggerCreate,
    TriggerIndexEntry,
    TriggerUpdate,
)
from workshop.template_runtime.models.enums import TriggerStatus
from workshop.template_runtime.models.results import TriggerExecutionResult
from workshop.template_runtime.models.snapshot import PendingApproval
from workshop.template_runtime.models.trigger import WorkspaceTrigger
from workshop.template_runtime.services import Services

router = APIRouter(prefix="/triggers", tags=["triggers"])


def _not_found(trigger_id: str) -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Trigger '{trigger_id}' not found.")


async def _resync(services: Services, trigger: WorkspaceTrigger) -> None:
    """Start or stop the poll loop to match the trigger's status (only while the scheduler runs)."""
    if not services.scheduler.running:
        return
    if trigger.status == TriggerStatus.ACTIVE:
        services.scheduler.start_trigger(trigger.id)
    else:
        services.scheduler.stop_trigger(trigger.id)


@router.post("/create", response_model=WorkspaceTrigger, status_code=status.HTTP_201_CREATED)
async def create_trigger(body: TriggerCreate, services: AppServices) -> WorkspaceTrigger:
    """Create a new trigger for an existing template."""
    try:
        trigger = await mgr.create_trigger(services.triggers, services.templates, body)
    except TemplateNotFoundError:
        raise HTTPException(
            status.HTTP_404_NOT_FOUND, detail=f"Template '{body.template_id}' not found."
        ) from None
    except mgr.DuplicateTriggerError:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=f"Trigger '{body.id}' already exists.") from None
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from None
    await _resync(services, trigger)
    return trigger


@router.get("/list", response_model=list[WorkspaceTrigger])
async def list_triggers(
    services: AppServices,
    template_id: str | None = None,
    status: TriggerStatus | None = None,
) -> list[WorkspaceTrigger]:
    """List triggers, optionally filtered by template and status."""
    return await mgr.list_triggers(services.triggers, template_id=template_id, status=status)


@router.get("/index", response_model=list[TriggerIndexEntry])
async def trigger_index(services: AppServices) -> list[TriggerIndexEntry]:
    """Lightweight listing rows (id, name, template_id, status, updated_at)."""
    return await mgr.trigger_index(services.triggers)


@router.get("/approvals", response_model=list[PendingApproval])
async def pending_approvals(services: AppServices) -> list[PendingApproval]:
    """Matches waiting for approval, oldest first."""
    return services.scheduler.pending_approvals()


@router.get("/{trigger_id}/get", response_model=WorkspaceTrigger)
async def get_trigger(trigger_id: str, services: AppServices) -> WorkspaceTrigger:
    """Get a single trigger by ID."""
    try:
        return await mgr.get_trigger(services.triggers, trigger_id)
    except mgr.TriggerNotFoundError:
        raise _not_found(trigger_id) from None


@router.post("/{trigger_id}/update", response_model=WorkspaceTrigger)
async def update_trigger(trigger_id: str, body: TriggerUpdate, services: AppServices) -> WorkspaceTrigger:
    """Partially update an existing trigger."""
    try:
        trigger = await mgr.update_trigger(services.triggers, trigger_id, body, stats=services.stats)
    except mgr.TriggerNotFoundError:
        raise _not_found(trigger_id) from None
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from None
    await _resync(services, trigger)
    return trigger


@router.post("/{trigger_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trigger(trigger_id: str, services: AppServices) -> None:
    """Delete a trigger and its scheduler state."""
    try:
        await mgr.delete_trigger(services.triggers, trigger_id)
    except mgr.TriggerNotFoundError:
        raise _not_found(trigger_id) from None
    await services.scheduler.forget(trigger_id)


@router.post("/{trigger_id}/pause", response_model=WorkspaceTrigger)
async def pause_trigger(trigger_id: str, services: AppServices) -> WorkspaceTrigger:
    """Stop future poll cycles.  Running applications are not interrupted."""
    try:
        trigger = await mgr.set_trigger_status(services.triggers, trigger_id, TriggerStatus.PAUSED, stats=services.stats)
    except mgr.TriggerNotFoundError:
        raise _not_found(trigger_id) from None
    await _resync(services, trigger)
    return trigger


@router.post("/{trigger_id}/resume", response_model=WorkspaceTrigger)
async def resume_trigger(trigger_id: str, services: AppServices) -> WorkspaceTrigger:
    try:
        trigger = await mgr.set_trigger_status(services.triggers, trigger_id, TriggerStatus.ACTIVE, stats=services.stats)
    except mgr.TriggerNotFoundError:
        raise _not_found(trigger_id) from None
    await _resync(services, trigger)
    return trigger


@router.post("/{trigger_id}/execute", response_model=TriggerExecutionResult)
async def execute_trigger(trigger_id: str, body: ExecuteRequest, services: AppServices) -> TriggerExecutionResult:
    """Fire a trigger now with the given state as trigger context.

    Failures (including unknown or inactive triggers) are reported in the
    result body.
    """
    return await services.executor.execute(trigger_id, body.trigger_context)


@router.post("/{trigger_id}/test", response_model=TriggerExecutionResult)
async def test_trigger(trigger_id: str, body: ExecuteRequest, services: AppServices) -> TriggerExecutionResult:
    """Fire a trigger against a sample ticket context, overlaid with the request's context."""
    return await services.executor.test(trigger_id, body.trigger_context)


@router.post("/{trigger_id}/approve", status_code=status.HTTP_202_ACCEPTED)
async def approve_trigger(trigger_id: str, services: AppServices) -> dict[str, str]:
    """Dispatch a pending approval."""
    if not await services.scheduler.approve(trigger_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"No pending approval for trigger '{trigger_id}'.")
    return {"status": "dispatched"}
