"""Data models for the template runtime."""

from workshop.template_runtime.models.api import (
    ApplyRequest,
    ApplicationInfo,
    ExecuteRequest,
    TemplateCreate,
    TemplateIndexEntry,
    TemplateUpdate,
    TriggerCreate,
    TriggerIndexEntry,
    TriggerUpdate,
)
from workshop.template_runtime.models.catalog import ContextItem
from workshop.template_runtime.models.enums import (
    AuditCategory,
    AuditLevel,
    ConditionType,
    ErrorType,
    MappingSource,
    RequirementType,
    ResolutionType,
    TemplateCategory,
    Transform,
    TriggerStatus,
    VariableType,
    WildcardType,
)
from workshop.template_runtime.models.events import AuditEvent
from workshop.template_runtime.models.results import (
    AppliedContextItem,
    TemplateApplicationError,
    TemplateApplicationResult,
    TriggerExecutionResult,
)
from workshop.template_runtime.models.snapshot import ObservedSnapshot, PendingApproval
from workshop.template_runtime.models.template import (
    AgentTemplate,
    ContextRequirement,
    FileTemplate,
    TemplateVariable,
    UsageStats,
    ValidationRule,
    WildcardFilters,
    WorkspaceConfig,
    WorkspaceTemplate,
)
from workshop.template_runtime.models.trigger import (
    ConditionConfig,
    ContextListener,
    ResourceLimits,
    TemplateOverrides,
    TriggerCondition,
    VariableMapping,
    WorkspaceTrigger,
)

__all__ = [
    # Template
    "AgentTemplate",
    # Results
    "AppliedContextItem",
    # API schemas
    "ApplyRequest",
    # Events
    "AuditCategory",
    "AuditEvent",
    "AuditLevel",
    # Trigger
    "ConditionConfig",
    "ConditionType",
    "ContextItem",
    "ContextListener",
    "ContextRequirement",
    "ErrorType",
    "ApplicationInfo",
    "ExecuteRequest",
    "FileTemplate",
    "MappingSource",
    "ObservedSnapshot",
    "PendingApproval",
    "RequirementType",
    "ResolutionType",
    "ResourceLimits",
    "TemplateApplicationError",
    "TemplateApplicationResult",
    "TemplateCategory",
    "TemplateCreate",
    "TemplateIndexEntry",
    "TemplateOverrides",
    "TemplateUpdate",
    "TemplateVariable",
    "Transform",
    "TriggerCondition",
    "TriggerCreate",
    "TriggerExecutionResult",
    "TriggerIndexEntry",
    "TriggerStatus",
    "TriggerUpdate",
    "UsageStats",
    "ValidationRule",
    "VariableMapping",
    "VariableType",
    "WildcardFilters",
    "WildcardType",
    "WorkspaceConfig",
    "WorkspaceTemplate",
    "WorkspaceTrigger",
]
