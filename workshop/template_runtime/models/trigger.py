"""Workspace trigger data models.

A trigger binds a template to a watched context item: when the item's
state changes in a way that satisfies all of the trigger's conditions, the
template is applied with variables mapped out of the new state.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from workshop.template_runtime.models.enums import (
    AgentModel,
    ConditionType,
    ListenerType,
    MappingSource,
    PermissionAction,
    Transform,
    TriggerStatus,
)

# -- Conditions --------------------------------------------------------------


class ConditionConfig(BaseModel):
    """Type-specific knobs; only the ones relevant to the condition type are read."""

    from_status: str | None = None
    to_status: str | None = None
    search_string: str | None = None
    case_sensitive: bool = False
    new_assignee: str | None = None
    from_priority: str | None = None
    to_priority: str | None = None
    field_path: str | None = None


class TriggerCondition(BaseModel):
    id: str
    type: ConditionType
    config: ConditionConfig = Field(default_factory=ConditionConfig)


class ContextListener(BaseModel):
    context_item_id: str = Field(description="Catalog item whose state is watched")
    listener_type: ListenerType = ListenerType.JIRA
    trigger_conditions: list[TriggerCondition] = Field(default_factory=list)
    polling_interval_ms: int = Field(default=60_000, gt=0)


# -- Variable mapping --------------------------------------------------------


class VariableMapping(BaseModel):
    source: MappingSource
    field_path: str | None = Field(default=None, description="Dotted path, e.g. 'fields.summary'")
    default_value: Any = None
    transform: Transform | None = None


# -- Overrides ---------------------------------------------------------------


class AgentOverride(BaseModel):
    name: str
    model: AgentModel | None = None
    commands: list[str] | None = None
    permissions: list[str] | None = None
    replace_existing: bool = False


class PermissionOverride(BaseModel):
    action: PermissionAction
    permissions: list[str] = Field(default_factory=list)


class FileTemplateOverride(BaseModel):
    template_name: str
    content_override: str | None = None
    path_override: str | None = None


class TemplateOverrides(BaseModel):
    naming_pattern: str | None = None
    agent_configs: list[AgentOverride] = Field(default_factory=list)
    additional_commands: list[str] = Field(default_factory=list)
    permissions_overrides: list[PermissionOverride] = Field(default_factory=list)
    file_template_overrides: list[FileTemplateOverride] = Field(default_factory=list)


# -- Limits ------------------------------------------------------------------


class ResourceLimits(BaseModel):
    max_concurrent_workspaces: int = Field(default=5, ge=1)
    max_concurrent_agents: int = Field(default=3, ge=1, description="Stored for clients; not enforced by the runtime")
    min_trigger_interval_ms: int = Field(default=30_000, ge=0)
    timeout_ms: int = Field(default=300_000, gt=0)


# -- Top-level trigger -------------------------------------------------------


class WorkspaceTrigger(BaseModel):
    """Full trigger definition as stored in the definition store."""

    id: str
    name: str
    description: str = ""
    created_by: str = "system"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    template_id: str
    template_overrides: TemplateOverrides = Field(default_factory=TemplateOverrides)
    context_listener: ContextListener
    variable_mapping: dict[str, VariableMapping] = Field(default_factory=dict)

    status: TriggerStatus = TriggerStatus.ACTIVE
    auto_deploy: bool = Field(default=False, description="Stored for clients; the runtime never deploys agents")
    requires_approval: bool = False
    resource_limits: ResourceLimits = Field(default_factory=ResourceLimits)

    last_triggered: datetime | None = None
    execution_count: int = 0
    success_count: int = 0
    failure_count: int = 0
