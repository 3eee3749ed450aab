"""Variable resolver -- computes the name -> value map for a template.

Resolution order, per variable (first hit wins):

1. Explicitly provided value (``variable_values`` / trigger mapping output).
2. A value probed from the trigger context at ``<name>``, ``jira.<name>``,
   ``git.<name>`` or ``fields.<name>``.
3. The variable's static ``default_value``.
4. Still unresolved: required -> ``VariableResolutionError``; optional ->
   left out of the result.

The batch is all-or-nothing: the first failure aborts ``resolve_all``
immediately, later variables are not attempted and no partial map escapes.
Validation rules run on every chosen value and a violation fails the batch
whether or not the variable is required.

Trigger variable mappings (``resolve_mapped_values``) are a separate path:
per-source extraction followed by an optional transform.  Their output is
fed in as provided values, so it goes through validation like anything else.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from workshop.template_runtime.execution.paths import get_path
from workshop.template_runtime.models.enums import (
    AuditCategory,
    AuditLevel,
    MappingSource,
    Transform,
    VariableType,
)

if TYPE_CHECKING:
    from workshop.template_runtime.audit import Auditor
    from workshop.template_runtime.models.template import TemplateVariable
    from workshop.template_runtime.models.trigger import VariableMapping

CONTEXT_PREFIXES: tuple[str, ...] = ("", "jira.", "git.", "fields.")
"""Candidate prefixes probed in the trigger context, in priority order."""


class VariableResolutionError(ValueError):
    """A variable could not be resolved or failed validation."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Variable '{name}': {reason}")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def probe_trigger_context(name: str, context: Mapping[str, Any] | None) -> Any:
    """Return the first non-``None`` value found for *name* in the trigger context."""
    if not context:
        return None
    for prefix in CONTEXT_PREFIXES:
        value = get_path(context, f"{prefix}{name}")
        if value is None and prefix == "":
            # Dotted variable names ("jira.key") may also be stored flat.
            value = context.get(name)
        if value is not None:
            return value
    return None


def validate_value(variable: TemplateVariable, value: Any) -> str | None:
    """Check *value* against the variable's rules.  Returns an error message or ``None``."""
    rule = variable.validation
    if rule is not None and isinstance(value, str):
        if rule.min_length is not None and len(value) < rule.min_length:
            return f"minimum length {rule.min_length} required"
        if rule.max_length is not None and len(value) > rule.max_length:
            return f"maximum length {rule.max_length} exceeded"
        if rule.pattern is not None and re.search(rule.pattern, value) is None:
            return f"value does not match pattern {rule.pattern!r}"

    if variable.options:
        if variable.type == VariableType.SELECT and value not in variable.options:
            return f"{value!r} is not one of {variable.options}"
        if variable.type == VariableType.MULTISELECT:
            values = value if isinstance(value, list) else [value]
            invalid = [v for v in values if v not in variable.options]
            if invalid:
                return f"{invalid!r} not in {variable.options}"
    return None


def apply_transform(value: Any, transform: Transform | None) -> Any:
    """Apply a mapping transform.  Raises ``ValueError`` for unparseable dates."""
    match transform:
        case None:
            return value
        case Transform.UPPERCASE:
            return str(value).upper()
        case Transform.LOWERCASE:
            return str(value).lower()
        case Transform.TRIM:
            return str(value).strip()
        case Transform.DATE_FORMAT:
            return _to_date(value).isoformat()
    return value


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, int | float):
        # Epoch milliseconds, as emitted by most tracker APIs.
        return datetime.fromtimestamp(value / 1000, tz=UTC).date()
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).date()


def extract_mapped_value(name: str, mapping: VariableMapping, context: Mapping[str, Any] | None) -> Any:
    """Extract one mapped variable from the trigger context (before transform)."""
    context = context or {}
    match mapping.source:
        case MappingSource.JIRA_FIELD | MappingSource.GIT_CONTEXT:
            return get_path(context, mapping.field_path or name)
        case MappingSource.LIBRARY_METADATA:
            return get_path(context.get("library_metadata"), mapping.field_path or name)
        case MappingSource.STATIC | MappingSource.USER_INPUT:
            return mapping.default_value
    return mapping.default_value


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class VariableResolver:
    """Resolves template variables with auditing of every decision."""

    def __init__(self, auditor: Auditor) -> None:
        self._auditor = auditor

    async def resolve_all(
        self,
        variables: Sequence[TemplateVariable],
        provided_values: Mapping[str, Any] | None = None,
        trigger_context: Mapping[str, Any] | None = None,
        *,
        template_id: str | None = None,
    ) -> dict[str, Any]:
        """Resolve every variable or raise on the first failure.

        Raises
        ------
        VariableResolutionError:
            A required variable has no value, or any chosen value fails
            validation.  Nothing resolved so far is returned.
        """
        provided = provided_values or {}
        resolved: dict[str, Any] = {}

        for variable in variables:
            value, source = self._pick(variable, provided, trigger_context)

            if source is None:
                if variable.required:
                    await self._fail(template_id, variable.name, "required variable not provided")
                    raise VariableResolutionError(variable.name, "required variable not provided")
                await self._auditor.emit(
                    AuditCategory.APPLICATION,
                    f"Optional variable not resolved: {variable.name}",
                    level=AuditLevel.DEBUG,
                    template_id=template_id,
                    variable=variable.name,
                )
                continue

            problem = validate_value(variable, value)
            if problem is not None:
                await self._fail(template_id, variable.name, problem)
                raise VariableResolutionError(variable.name, problem)

            resolved[variable.name] = value
            await self._auditor.emit(
                AuditCategory.APPLICATION,
                f"Variable resolved: {variable.name} (from {source})",
                level=AuditLevel.DEBUG,
                template_id=template_id,
                variable=variable.name,
                source=source,
            )

        return resolved

    async def resolve_mapped_values(
        self,
        mapping: Mapping[str, VariableMapping],
        trigger_context: Mapping[str, Any] | None,
        *,
        template_id: str | None = None,
        trigger_id: str | None = None,
    ) -> dict[str, Any]:
        """Build provided values from a trigger's variable mapping.

        Extraction or transform errors fall back to the mapping's
        ``default_value``; mappings that yield nothing are omitted.
        """
        values: dict[str, Any] = {}
        for name, entry in mapping.items():
            try:
                value = extract_mapped_value(name, entry, trigger_context)
                if value is None:
                    value = entry.default_value
                if value is not None:
                    value = apply_transform(value, entry.transform)
            except (ValueError, TypeError, OverflowError) as exc:
                await self._fail(template_id, name, f"mapping failed: {exc}", trigger_id=trigger_id)
                value = entry.default_value

            if value is not None:
                values[name] = value
                await self._auditor.emit(
                    AuditCategory.TRIGGER,
                    f"Variable resolved: {name} (from {entry.source.value})",
                    level=AuditLevel.DEBUG,
                    template_id=template_id,
                    trigger_id=trigger_id,
                    variable=name,
                )
        return values

    # -- Internal --------------------------------------------------------------

    @staticmethod
    def _pick(
        variable: TemplateVariable,
        provided: Mapping[str, Any],
        trigger_context: Mapping[str, Any] | None,
    ) -> tuple[Any, str | None]:
        if provided.get(variable.name) is not None:
            return provided[variable.name], "provided_values"
        probed = probe_trigger_context(variable.name, trigger_context)
        if probed is not None:
            return probed, "trigger_context"
        if variable.default_value is not None:
            return variable.default_value, "default_value"
        return None, None

    async def _fail(self, template_id: str | None, name: str, reason: str, *, trigger_id: str | None = None) -> None:
        await self._auditor.emit(
            AuditCategory.APPLICATION,
            f"Variable resolution failed: {name} ({reason})",
            level=AuditLevel.WARN,
            template_id=template_id,
            trigger_id=trigger_id,
            variable=name,
        )
