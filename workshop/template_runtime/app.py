from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import APIRouter
from loguru import logger

from workshop.template_runtime.log import setup_logging
from workshop.template_runtime.services import build_services
from workshop.template_runtime.settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level)

    logger.info("Template Runtime starting (host={}, port={})", settings.host, settings.port)
    prefix_info = f", prefix={settings.data_prefix}" if settings.data_prefix else ""
    logger.info("Data root: {} (ranking={}{})", settings.data_root, settings.wildcard_ranking, prefix_info)

    services = build_services(settings)
    _app.state.services = services

    # -- Scheduler -------------------------------------------------------------
    if settings.scheduler_enabled:
        await services.scheduler.start()
    else:
        logger.warning("WORKSHOP_SCHEDULER_ENABLED is false -- triggers only fire via the API")

    yield

    # -- Shutdown --------------------------------------------------------------
    registry = services.registry
    logger.info("Template Runtime shutting down (in_flight={})", registry.active_count)

    # 1. Stop polling; dispatched executions keep running.
    await services.scheduler.stop()

    # 2. Wait for running applications to complete naturally.
    timeout = settings.graceful_shutdown_timeout
    drained = await services.scheduler.wait_until_drained(timeout=timeout)

    # 3. Stop accepting new applications, then wait for the manual ones.
    registry.begin_shutdown()
    if registry.active_count > 0:
        logger.info("Waiting for {} in-flight applications (timeout={}s)...", registry.active_count, timeout)
        drained = await registry.wait_until_drained(timeout=timeout) and drained

    # 4. Timed-out provisioner calls still materializing workspaces.
    if services.orchestrator.detached_count > 0:
        logger.info("Waiting for {} late workspace creation(s)...", services.orchestrator.detached_count)
        drained = await services.orchestrator.wait_for_detached(timeout=timeout) and drained
    if not drained:
        logger.warning("Shutdown proceeding with applications still running")

    _app.state.services = None


app = FastAPI(title="Workshop Template Runtime", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


# -- CRUD routers ------------------------------------------------------------
from workshop.template_runtime.routers.applications import router as applications_router  # noqa: E402
from workshop.template_runtime.routers.templates import router as templates_router  # noqa: E402
from workshop.template_runtime.routers.triggers import router as triggers_router  # noqa: E402

api.include_router(templates_router)
api.include_router(triggers_router)
api.include_router(applications_router)

app.include_router(api)
