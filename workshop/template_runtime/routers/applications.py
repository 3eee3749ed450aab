"""Read-only view of template applications that are currently running."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from workshop.template_runtime.context import InFlightApplication
from workshop.template_runtime.deps import AppServices
from workshop.template_runtime.models.api import ApplicationInfo

router = APIRouter(prefix="/applications", tags=["applications"])


def _info(application: InFlightApplication) -> ApplicationInfo:
    return ApplicationInfo(
        application_id=application.application_id,
        template_id=application.template_id,
        trigger_id=application.trigger_id,
        started_at=application.started_at,
        automated=application.automated,
    )


@router.get("/list", response_model=list[ApplicationInfo])
async def list_applications(services: AppServices, trigger_id: str | None = None) -> list[ApplicationInfo]:
    """Running applications, optionally only those fired by *trigger_id*, oldest first."""
    if trigger_id is None:
        applications = services.registry.all_applications()
    else:
        applications = services.registry.by_trigger(trigger_id)
    return [_info(a) for a in sorted(applications, key=lambda a: a.started_at)]


@router.get("/{application_id}/get", response_model=ApplicationInfo)
async def get_application(application_id: str, services: AppServices) -> ApplicationInfo:
    """Get a running application by ID."""
    application = services.registry.get(application_id)
    if application is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Application '{application_id}' not found.")
    return _info(application)
