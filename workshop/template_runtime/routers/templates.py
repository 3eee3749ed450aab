"""Template CRUD and application endpoints (RPC-style).

All write operations use POST; reads use GET.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from workshop.template_runtime.deps import AppServices
from workshop.template_runtime.managers import templates as mgr
from workshop.template_runtime.models.api import ApplyRequest, TemplateCreate, TemplateIndexEntry, TemplateUpdate
from workshop.template_runtime.models.enums import TemplateCategory
from workshop.template_runtime.models.results import TemplateApplicationResult
from workshop.template_runtime.models.template import WorkspaceTemplate
from workshop.template_runtime.registry import ShuttingDownError

router = APIRouter(prefix="/templates", tags=["templates"])


@router.post("/create", response_model=WorkspaceTemplate, status_code=status.HTTP_201_CREATED)
async def create_template(body: TemplateCreate, services: AppServices) -> WorkspaceTemplate:
    """Create a new workspace template."""
    try:
        return await mgr.create_template(services.templates, body)
    except mgr.DuplicateTemplateError:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=f"Template '{body.id}' already exists.") from None
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from None


@router.get("/list", response_model=list[WorkspaceTemplate])
async def list_templates(services: AppServices, category: TemplateCategory | None = None) -> list[WorkspaceTemplate]:
    """List templates, most recently updated first."""
    return await mgr.list_templates(services.templates, category)


@router.get("/index", response_model=list[TemplateIndexEntry])
async def template_index(services: AppServices) -> list[TemplateIndexEntry]:
    """Lightweight listing rows (id, name, category, updated_at)."""
    return await mgr.template_index(services.templates)


@router.get("/{template_id}/get", response_model=WorkspaceTemplate)
async def get_template(template_id: str, services: AppServices) -> WorkspaceTemplate:
    """Get a single template by ID."""
    try:
        return await mgr.get_template(services.templates, template_id)
    except mgr.TemplateNotFoundError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Template '{template_id}' not found.") from None


@router.post("/{template_id}/update", response_model=WorkspaceTemplate)
async def update_template(template_id: str, body: TemplateUpdate, services: AppServices) -> WorkspaceTemplate:
    """Partially update an existing template."""
    try:
        return await mgr.update_template(services.templates, template_id, body, stats=services.stats)
    except mgr.TemplateNotFoundError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Template '{template_id}' not found.") from None
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from None


@router.post("/{template_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(template_id: str, services: AppServices) -> None:
    """Delete a template by ID."""
    try:
        await mgr.delete_template(services.templates, template_id)
    except mgr.TemplateNotFoundError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Template '{template_id}' not found.") from None


@router.post("/{template_id}/apply", response_model=TemplateApplicationResult)
async def apply_template(template_id: str, body: ApplyRequest, services: AppServices) -> TemplateApplicationResult:
    """Apply a template manually.

    Application failures are reported in the result body, not as HTTP
    errors; only a shutdown in progress is refused with 503.
    """
    try:
        async with services.registry.track(template_id):
            return await services.orchestrator.apply(
                template_id,
                context_overrides=body.context_overrides,
                variable_values=body.variable_values,
                trigger_context=body.trigger_context,
            )
    except ShuttingDownError:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is shutting down.") from None
