"""In-process application registry.

Tracks template applications that are currently running.  Ephemeral --
empty on process restart.  All durable state lives in the definition store.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger

from workshop.template_runtime.context import InFlightApplication


class ShuttingDownError(RuntimeError):
    """Raised when attempting to register an application during shutdown."""


class ApplicationRegistry:
    """Registry of currently executing template applications.

    The registry also provides a drain mechanism for graceful shutdown:
    ``wait_until_drained`` blocks until all applications have been
    unregistered.
    """

    def __init__(self) -> None:
        self._applications: dict[str, InFlightApplication] = {}
        self._drain_event = asyncio.Event()
        self._drain_event.set()  # Starts "drained" (no applications).
        self._shutting_down = False

    # -- Mutation --------------------------------------------------------------

    def register(self, application: InFlightApplication) -> None:
        """Register an application.  Raises ``ShuttingDownError`` if shutting down."""
        if self._shutting_down:
            raise ShuttingDownError
        logger.debug(
            "Registry: register application {} (template={}, trigger={})",
            application.application_id,
            application.template_id,
            application.trigger_id,
        )
        self._applications[application.application_id] = application
        self._drain_event.clear()

    def unregister(self, application_id: str) -> InFlightApplication | None:
        application = self._applications.pop(application_id, None)
        if application:
            logger.debug("Registry: unregister application {}", application_id)
        if not self._applications:
            self._drain_event.set()
        return application

    @asynccontextmanager
    async def track(self, template_id: str, trigger_id: str | None = None) -> AsyncIterator[InFlightApplication]:
        """Register an application for the duration of the ``async with`` block."""
        application = InFlightApplication(template_id=template_id, trigger_id=trigger_id)
        self.register(application)
        try:
            yield application
        finally:
            self.unregister(application.application_id)

    # -- Query -----------------------------------------------------------------

    def get(self, application_id: str) -> InFlightApplication | None:
        return self._applications.get(application_id)

    def by_trigger(self, trigger_id: str) -> list[InFlightApplication]:
        """Return all running applications fired by a trigger."""
        return [a for a in self._applications.values() if a.trigger_id == trigger_id]

    def all_applications(self) -> list[InFlightApplication]:
        return list(self._applications.values())

    @property
    def active_count(self) -> int:
        return len(self._applications)

    # -- Lifecycle -------------------------------------------------------------

    def begin_shutdown(self) -> None:
        """Mark the registry as shutting down.  New registrations are refused."""
        self._shutting_down = True
        logger.info("Registry: shutdown initiated, refusing new applications")
        if not self._applications:
            self._drain_event.set()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    async def wait_until_drained(self, timeout: float | None = None) -> bool:
        """Wait until all applications have been unregistered (drained).

        Returns ``True`` if the registry is empty, ``False`` if *timeout*
        expired with applications still running.
        """
        if not self._applications:
            return True
        try:
            await asyncio.wait_for(self._drain_event.wait(), timeout=timeout)
        except TimeoutError:
            logger.warning(
                "Registry: drain timed out after {}s with {} applications still running",
                timeout,
                len(self._applications),
            )
            return False
        else:
            return True
