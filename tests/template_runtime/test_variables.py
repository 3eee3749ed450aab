"""Tests for variable resolution, validation and trigger variable mappings."""

from __future__ import annotations

import pytest

from workshop.template_runtime.audit import Auditor, MemoryAuditLog
from workshop.template_runtime.execution.variables import (
    VariableResolutionError,
    VariableResolver,
    apply_transform,
    probe_trigger_context,
)
from workshop.template_runtime.models.template import TemplateVariable
from workshop.template_runtime.models.trigger import VariableMapping


@pytest.fixture
def resolver(audit_log: MemoryAuditLog) -> VariableResolver:
    return VariableResolver(Auditor(audit_log))


async def test_default_value_used_when_nothing_else(resolver: VariableResolver) -> None:
    variables = [TemplateVariable(name="priority", default_value="Medium")]
    assert await resolver.resolve_all(variables, {}, {"unrelated": 1}) == {"priority": "Medium"}


async def test_provided_beats_context_beats_default(resolver: VariableResolver) -> None:
    variables = [
        TemplateVariable(name="a", default_value="default"),
        TemplateVariable(name="b", default_value="default"),
        TemplateVariable(name="c", default_value="default"),
    ]
    result = await resolver.resolve_all(variables, {"a": "provided"}, {"a": "ctx", "b": "ctx"})
    assert result == {"a": "provided", "b": "ctx", "c": "default"}


@pytest.mark.parametrize(
    "context",
    [
        {"summary": "found"},
        {"jira": {"summary": "found"}},
        {"git": {"summary": "found"}},
        {"fields": {"summary": "found"}},
    ],
)
def test_probe_prefixes(context: dict) -> None:
    assert probe_trigger_context("summary", context) == "found"


def test_probe_order_prefers_bare_name() -> None:
    assert probe_trigger_context("key", {"key": "bare", "jira": {"key": "nested"}}) == "bare"


def test_probe_dotted_name_stored_flat() -> None:
    assert probe_trigger_context("jira.key", {"jira.key": "PROJ-9"}) == "PROJ-9"


async def test_none_counts_as_absent(resolver: VariableResolver) -> None:
    variables = [TemplateVariable(name="env", default_value="staging")]
    assert await resolver.resolve_all(variables, {"env": None}, {"env": None}) == {"env": "staging"}


async def test_missing_required_fails_whole_batch(resolver: VariableResolver, audit_log: MemoryAuditLog) -> None:
    variables = [
        TemplateVariable(name="first", default_value="ok"),
        TemplateVariable(name="needed", required=True),
        TemplateVariable(name="later", default_value="never"),
    ]
    with pytest.raises(VariableResolutionError) as exc_info:
        await resolver.resolve_all(variables, {}, {})

    assert exc_info.value.name == "needed"
    assert any("Variable resolution failed: needed" in m for m in audit_log.messages())
    # Resolution aborted before reaching the later variable.
    assert not any("later" in m for m in audit_log.messages())


async def test_optional_without_value_is_omitted(resolver: VariableResolver) -> None:
    variables = [TemplateVariable(name="maybe"), TemplateVariable(name="env", default_value="prod")]
    assert await resolver.resolve_all(variables) == {"env": "prod"}


@pytest.mark.parametrize(
    ("variable", "value"),
    [
        (TemplateVariable(name="v", validation={"min_length": 3}), "ab"),
        (TemplateVariable(name="v", validation={"max_length": 3}), "abcd"),
        (TemplateVariable(name="v", validation={"pattern": r"^[A-Z]+-\d+$"}), "proj-1"),
        (TemplateVariable(name="v", type="select", options=["a", "b"]), "c"),
        (TemplateVariable(name="v", type="multiselect", options=["a", "b"]), ["a", "c"]),
    ],
)
async def test_validation_failures(resolver: VariableResolver, variable: TemplateVariable, value) -> None:
    with pytest.raises(VariableResolutionError):
        await resolver.resolve_all([variable], {"v": value})


async def test_validation_applies_to_optional_defaults(resolver: VariableResolver) -> None:
    variable = TemplateVariable(name="v", default_value="x", validation={"min_length": 2})
    with pytest.raises(VariableResolutionError):
        await resolver.resolve_all([variable])


async def test_valid_values_pass(resolver: VariableResolver) -> None:
    variables = [
        TemplateVariable(name="key", validation={"pattern": r"^[A-Z]+-\d+$", "min_length": 3}),
        TemplateVariable(name="tags", type="multiselect", options=["a", "b"]),
    ]
    result = await resolver.resolve_all(variables, {"key": "PROJ-12", "tags": ["a", "b"]})
    assert result == {"key": "PROJ-12", "tags": ["a", "b"]}


# -- Transforms and mappings ---------------------------------------------------


@pytest.mark.parametrize(
    ("value", "transform", "expected"),
    [
        ("Hello", "uppercase", "HELLO"),
        ("Hello", "lowercase", "hello"),
        ("  padded  ", "trim", "padded"),
        ("2026-03-04T10:20:30Z", "date_format", "2026-03-04"),
        (1_772_582_400_000, "date_format", "2026-03-04"),
        ("kept", None, "kept"),
    ],
)
def test_apply_transform(value, transform, expected) -> None:
    assert apply_transform(value, transform) == expected


async def test_mapped_values(resolver: VariableResolver) -> None:
    context = {
        "key": "PROJ-7",
        "fields": {"summary": "  Fix login  ", "created": "2026-01-02T03:04:05+00:00"},
        "library_metadata": {"owner": "ana"},
    }
    mapping = {
        "jira.key": VariableMapping(source="jira_field", field_path="key"),
        "title": VariableMapping(source="jira_field", field_path="fields.summary", transform="trim"),
        "created": VariableMapping(source="jira_field", field_path="fields.created", transform="date_format"),
        "owner": VariableMapping(source="library_metadata", field_path="owner", transform="uppercase"),
        "env": VariableMapping(source="static", default_value="staging"),
        "branch": VariableMapping(source="git_context", field_path="git.branch", default_value="main"),
        "absent": VariableMapping(source="user_input"),
    }

    values = await resolver.resolve_mapped_values(mapping, context, template_id="tpl", trigger_id="trig")

    assert values == {
        "jira.key": "PROJ-7",
        "title": "Fix login",
        "created": "2026-01-02",
        "owner": "ANA",
        "env": "staging",
        "branch": "main",
    }


async def test_mapping_transform_error_falls_back_to_default(resolver: VariableResolver) -> None:
    mapping = {"due": VariableMapping(source="jira_field", field_path="due", transform="date_format", default_value="n/a")}
    assert await resolver.resolve_mapped_values(mapping, {"due": "not a date"}) == {"due": "n/a"}
