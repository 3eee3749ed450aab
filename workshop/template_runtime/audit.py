"""Audit log: append-only structured events for every pipeline stage.

The audit trail is separate from diagnostic logging but flows through loguru
as well, with the event keys bound so sinks can filter on them.
``JsonlAuditLog`` additionally appends each event to a JSON-lines file.
"""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from anyio import Lock, to_thread
from loguru import logger

from workshop.template_runtime.models.enums import AuditCategory, AuditLevel
from workshop.template_runtime.models.events import AuditEvent

_LOGURU_LEVELS = {
    AuditLevel.DEBUG: "DEBUG",
    AuditLevel.INFO: "INFO",
    AuditLevel.WARN: "WARNING",
    AuditLevel.ERROR: "ERROR",
}


@runtime_checkable
class AuditLog(Protocol):
    async def record(self, event: AuditEvent) -> None: ...


class LoguruAuditLog:
    """Emit audit events through loguru with bound event keys."""

    async def record(self, event: AuditEvent) -> None:
        _emit(event)


class JsonlAuditLog:
    """Append audit events to ``{path}`` (one JSON object per line) and emit via loguru."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def record(self, event: AuditEvent) -> None:
        _emit(event)
        line = event.model_dump_json() + "\n"
        async with self._lock:
            await to_thread.run_sync(partial(_append_line, self._path, line))


class MemoryAuditLog:
    """Keeps events in a list; handy for tests and introspection."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def messages(self, category: AuditCategory | None = None) -> list[str]:
        return [e.message for e in self.events if category is None or e.category == category]


class Auditor:
    """Convenience front for an ``AuditLog``.

    Recording an audit event must never break the pipeline that emits it,
    so sink failures are logged and dropped here.
    """

    def __init__(self, log: AuditLog) -> None:
        self._log = log

    async def emit(
        self,
        category: AuditCategory,
        message: str,
        *,
        level: AuditLevel = AuditLevel.INFO,
        template_id: str | None = None,
        trigger_id: str | None = None,
        workspace_id: str | None = None,
        **details: Any,
    ) -> None:
        event = AuditEvent(
            level=level,
            category=category,
            message=message,
            template_id=template_id,
            trigger_id=trigger_id,
            workspace_id=workspace_id,
            details=details,
        )
        try:
            await self._log.record(event)
        except Exception:
            logger.exception("Audit sink failed for event: {}", message)


def _emit(event: AuditEvent) -> None:
    logger.bind(
        audit=True,
        category=event.category.value,
        template_id=event.template_id,
        trigger_id=event.trigger_id,
        workspace_id=event.workspace_id,
    ).log(_LOGURU_LEVELS[event.level], "[{}] {}", event.category.value, event.message)


def _append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(line)
