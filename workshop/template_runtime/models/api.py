"""API request / response schemas for CRUD and execution endpoints.

These thin schemas sit between HTTP and the managers.  They are separate
from the domain models in ``template.py`` / ``trigger.py`` because they
serve a different purpose:

- **Create** schemas validate user input and provide defaults.  Identity,
  timestamps and counters are assigned by the managers.
- **Update** schemas allow partial updates via ``exclude_unset``.
- **Index** entries are the denormalized listing rows derived by the store.

Nested structured types (``ContextRequirement``, ``VariableMapping``, ...)
are reused from the domain models for validation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from workshop.template_runtime.models.enums import TemplateCategory, TriggerStatus
from workshop.template_runtime.models.template import (
    AgentTemplate,
    ContextRequirement,
    TemplateVariable,
    WorkspaceConfig,
)
from workshop.template_runtime.models.trigger import (
    ContextListener,
    ResourceLimits,
    TemplateOverrides,
    VariableMapping,
)

# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


class TemplateCreate(BaseModel):
    """Input for creating a new workspace template."""

    id: str | None = Field(default=None, description="Optional; auto-generated if omitted.")
    name: str
    description: str = ""
    category: TemplateCategory = TemplateCategory.CUSTOM
    version: str = "1.0.0"
    created_by: str = "system"
    context_requirements: list[ContextRequirement] = Field(default_factory=list)
    variables: list[TemplateVariable] = Field(default_factory=list)
    workspace_config: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    agent_templates: list[AgentTemplate] = Field(default_factory=list)


class TemplateUpdate(BaseModel):
    """Partial update -- only fields explicitly set by the caller are applied.

    ``id``, ``created_at`` and ``usage_stats`` are not updatable.
    """

    name: str | None = None
    description: str | None = None
    category: TemplateCategory | None = None
    version: str | None = None
    context_requirements: list[ContextRequirement] | None = None
    variables: list[TemplateVariable] | None = None
    workspace_config: WorkspaceConfig | None = None
    agent_templates: list[AgentTemplate] | None = None


class TemplateIndexEntry(BaseModel):
    id: str
    name: str
    category: TemplateCategory
    updated_at: datetime | None = None


class ApplyRequest(BaseModel):
    """Manual template application."""

    context_overrides: dict[str, str] = Field(
        default_factory=dict, description="wildcard_type -> catalog item id; always wins over automatic matching"
    )
    variable_values: dict[str, Any] = Field(default_factory=dict)
    trigger_context: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Trigger
# ---------------------------------------------------------------------------


class TriggerCreate(BaseModel):
    """Input for creating a new trigger.  The referenced template must exist."""

    id: str | None = Field(default=None, description="Optional; auto-generated if omitted.")
    name: str
    description: str = ""
    created_by: str = "system"
    template_id: str
    template_overrides: TemplateOverrides = Field(default_factory=TemplateOverrides)
    context_listener: ContextListener
    variable_mapping: dict[str, VariableMapping] = Field(default_factory=dict)
    status: TriggerStatus = TriggerStatus.ACTIVE
    auto_deploy: bool = False
    requires_approval: bool = False
    resource_limits: ResourceLimits = Field(default_factory=ResourceLimits)


class TriggerUpdate(BaseModel):
    """Partial update.  Counters and ``template_id`` are not updatable."""

    name: str | None = None
    description: str | None = None
    template_overrides: TemplateOverrides | None = None
    context_listener: ContextListener | None = None
    variable_mapping: dict[str, VariableMapping] | None = None
    status: TriggerStatus | None = None
    auto_deploy: bool | None = None
    requires_approval: bool | None = None
    resource_limits: ResourceLimits | None = None


class TriggerIndexEntry(BaseModel):
    id: str
    name: str
    template_id: str
    status: TriggerStatus
    updated_at: datetime | None = None


class ExecuteRequest(BaseModel):
    trigger_context: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# In-flight applications
# ---------------------------------------------------------------------------


class ApplicationInfo(BaseModel):
    """A template application that is currently running."""

    application_id: str
    template_id: str
    trigger_id: str | None = None
    started_at: datetime
    automated: bool
