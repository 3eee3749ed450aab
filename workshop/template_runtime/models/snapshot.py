"""Persisted differencing state for trigger polling."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class PendingApproval(BaseModel):
    """A condition match waiting for approval before it fires."""

    trigger_id: str
    template_id: str
    queued_at: datetime
    state: dict[str, Any] = Field(default_factory=dict)


class ObservedSnapshot(BaseModel):
    """Last state observed for a trigger's watched entity.

    Persisted after every poll so a restart resumes diffing against the
    last observation instead of re-establishing a baseline.  A queued
    approval rides along until it is approved or the trigger is deleted.
    """

    trigger_id: str
    entity_id: str
    state: dict[str, Any] = Field(default_factory=dict)
    observed_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    pending_approval: PendingApproval | None = None
