"""Audit event model.

One event is appended per pipeline-stage transition (resolution start,
wildcard resolved / failed, variable resolved / failed, application
completed / failed, trigger activated / failed).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from workshop.template_runtime.models.enums import AuditCategory, AuditLevel


class AuditEvent(BaseModel):
    """Append-only structured audit record."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    level: AuditLevel = AuditLevel.INFO
    category: AuditCategory
    message: str
    template_id: str | None = None
    trigger_id: str | None = None
    workspace_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
