"""Outcome models of template application and trigger execution."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from workshop.template_runtime.models.enums import ErrorType, ResolutionType


class AppliedContextItem(BaseModel):
    """A context requirement bound to a concrete catalog item."""

    requirement_id: str
    context_item_id: str
    resolution_type: ResolutionType
    metadata: dict[str, Any] = Field(default_factory=dict)


class TemplateApplicationError(BaseModel):
    type: ErrorType
    message: str
    details: dict[str, Any] | None = None


class TemplateApplicationResult(BaseModel):
    success: bool
    workspace_id: str | None = None
    errors: list[TemplateApplicationError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    resolved_variables: dict[str, Any] = Field(default_factory=dict)
    applied_context_items: list[AppliedContextItem] = Field(default_factory=list)
    execution_time_ms: int = 0

    def errors_of(self, error_type: ErrorType) -> list[TemplateApplicationError]:
        return [e for e in self.errors if e.type == error_type]


class TriggerExecutionResult(BaseModel):
    success: bool
    workspace_id: str | None = None
    error: str | None = None
