"""Workspace template data models.

A template is a reusable, parameterized description of a workspace: which
context items it pulls in (by fixed id or by semantic wildcard), which
variables it needs, what files and directories to lay down, and which
agents to deploy.  Templates are persisted as JSON documents in the
definition store; only the stats tracker mutates them after creation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, computed_field, model_validator

from workshop.template_runtime.models.enums import (
    AgentModel,
    RequirementType,
    TemplateCategory,
    VariableType,
    WildcardType,
)

# -- Context requirements ----------------------------------------------------


class WildcardFilters(BaseModel):
    """Optional narrowing applied after the semantic category match."""

    tags: list[str] = Field(default_factory=list)
    source: list[str] = Field(default_factory=list)
    content_type: list[str] = Field(default_factory=list)


class ContextRequirement(BaseModel):
    """A context item the template needs, named explicitly or by category."""

    id: str
    type: RequirementType
    required: bool = True
    display_name: str = ""
    description: str | None = None

    # explicit
    context_item_id: str | None = None

    # wildcard
    wildcard_type: WildcardType | None = None
    wildcard_filters: WildcardFilters | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> ContextRequirement:
        if self.type == RequirementType.EXPLICIT:
            if not self.context_item_id or self.wildcard_type is not None:
                msg = f"Explicit requirement '{self.id}' needs context_item_id and no wildcard_type"
                raise ValueError(msg)
        elif self.wildcard_type is None or self.context_item_id is not None:
            msg = f"Wildcard requirement '{self.id}' needs wildcard_type and no context_item_id"
            raise ValueError(msg)
        return self

    @property
    def label(self) -> str:
        return self.display_name or self.id


# -- Variables ---------------------------------------------------------------


class ValidationRule(BaseModel):
    pattern: str | None = Field(default=None, description="Regex searched in string values")
    min_length: int | None = None
    max_length: int | None = None


class TemplateVariable(BaseModel):
    name: str
    type: VariableType = VariableType.STRING
    description: str = ""
    default_value: Any = None
    required: bool = False
    options: list[str] | None = Field(default=None, description="Allowed values for select / multiselect")
    validation: ValidationRule | None = None


# -- Workspace layout --------------------------------------------------------


class FileTemplate(BaseModel):
    name: str
    path: str
    content: str = Field(default="", description="Jinja2 template rendered with resolved variables")
    overwrite_existing: bool = False


class WorkspaceConfig(BaseModel):
    naming_pattern: str = Field(default="{{ name }}", description="e.g. '{{ jira.key }} - {{ jira.summary }}'")
    file_templates: list[FileTemplate] = Field(default_factory=list)
    directory_structure: list[str] = Field(default_factory=list)
    permissions_template: str = "default"
    auto_archive_days: int | None = None
    allow_concurrent_sessions: bool | None = None


class AgentTemplate(BaseModel):
    name: str
    model: AgentModel = AgentModel.CLAUDE
    commands: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    auto_deploy: bool = Field(default=False, description="Stored for clients; the runtime never deploys agents")
    description: str | None = None


# -- Usage stats -------------------------------------------------------------


class UsageStats(BaseModel):
    """Per-template usage counters.

    ``success_rate`` is derived from the raw counters on every read rather
    than being stored and updated incrementally.
    """

    total_uses: int = 0
    manual_uses: int = 0
    automated_uses: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_used: datetime | None = None
    average_creation_time: float = 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success_rate(self) -> float:
        if self.total_uses == 0:
            return 1.0
        return self.success_count / self.total_uses


# -- Top-level template ------------------------------------------------------


class WorkspaceTemplate(BaseModel):
    """Full workspace template as stored in the definition store."""

    id: str
    name: str
    description: str = ""
    category: TemplateCategory = TemplateCategory.CUSTOM
    version: str = "1.0.0"
    created_by: str = "system"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    context_requirements: list[ContextRequirement] = Field(default_factory=list)
    variables: list[TemplateVariable] = Field(default_factory=list)
    workspace_config: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    agent_templates: list[AgentTemplate] = Field(default_factory=list)
    usage_stats: UsageStats = Field(default_factory=UsageStats)
