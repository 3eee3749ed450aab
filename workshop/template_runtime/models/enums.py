"""Shared enumerations used across the template runtime."""

from __future__ import annotations

from enum import StrEnum

# -- Template ----------------------------------------------------------------


class TemplateCategory(StrEnum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    DEPLOYMENT = "deployment"
    DOCUMENTATION = "documentation"
    BUSINESS = "business"
    CUSTOM = "custom"


class RequirementType(StrEnum):
    """How a context requirement names its item."""

    EXPLICIT = "explicit"
    WILDCARD = "wildcard"


class WildcardType(StrEnum):
    """Semantic categories a wildcard requirement can ask for."""

    GENERIC_TICKET = "generic_ticket"
    GENERIC_REPOSITORY = "generic_repository"
    GENERIC_DOCUMENT = "generic_document"


class ResolutionType(StrEnum):
    EXPLICIT = "explicit"
    WILDCARD_RESOLVED = "wildcard_resolved"


class VariableType(StrEnum):
    STRING = "string"
    BOOLEAN = "boolean"
    NUMBER = "number"
    SELECT = "select"
    MULTISELECT = "multiselect"


class AgentModel(StrEnum):
    CLAUDE = "claude"
    GEMINI = "gemini"


# -- Trigger -----------------------------------------------------------------


class TriggerStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    DISABLED = "disabled"


class ListenerType(StrEnum):
    JIRA = "jira"
    GIT = "git"
    EMAIL = "email"
    SLACK = "slack"


class ConditionType(StrEnum):
    STATUS_CHANGE = "status_change"
    NEW_COMMENT = "new_comment"
    ASSIGNEE_CHANGE = "assignee_change"
    PRIORITY_CHANGE = "priority_change"
    STRING_MATCH = "string_match"


class MappingSource(StrEnum):
    """Where a trigger's variable mapping reads its value from."""

    JIRA_FIELD = "jira_field"
    GIT_CONTEXT = "git_context"
    STATIC = "static"
    USER_INPUT = "user_input"
    LIBRARY_METADATA = "library_metadata"


class Transform(StrEnum):
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    TRIM = "trim"
    DATE_FORMAT = "date_format"


class PermissionAction(StrEnum):
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"


# -- Application -------------------------------------------------------------


class ErrorType(StrEnum):
    """Failure taxonomy of a template application."""

    VALIDATION = "validation"
    CONTEXT_RESOLUTION = "context_resolution"
    VARIABLE_RESOLUTION = "variable_resolution"
    WORKSPACE_CREATION = "workspace_creation"


# -- Audit -------------------------------------------------------------------


class AuditCategory(StrEnum):
    TEMPLATE = "template"
    TRIGGER = "trigger"
    APPLICATION = "application"
    SYSTEM = "system"


class AuditLevel(StrEnum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
