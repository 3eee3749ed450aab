"""FastAPI dependency injection for the shared service graph.

Usage in route handlers::

    @router.post("/things")
    async def create_thing(services: AppServices, thing: ThingCreate) -> Thing:
        ...

The dependency raises HTTP 503 if the lifespan has not wired the services
(or has already torn them down).
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from workshop.template_runtime.services import Services


async def get_services(request: Request) -> Services:
    """Return the services assembled during application startup."""
    services: Services | None = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Template runtime not initialised.",
        )
    return services


# -- Annotated type aliases for concise route signatures ---------------------

AppServices = Annotated[Services, Depends(get_services)]
"""Annotated dependency: the shared service graph."""
