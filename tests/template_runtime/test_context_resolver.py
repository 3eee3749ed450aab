"""Tests for context requirement resolution and wildcard ranking."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from workshop.template_runtime.audit import Auditor, MemoryAuditLog
from workshop.template_runtime.catalog import MemoryContextCatalog
from workshop.template_runtime.execution.context_resolver import (
    ContextRequirementResolver,
    apply_filters,
    first_match,
    get_ranker,
    most_recent,
)
from workshop.template_runtime.models.catalog import ContextItem
from workshop.template_runtime.models.enums import ResolutionType
from workshop.template_runtime.models.template import ContextRequirement, WildcardFilters


@pytest.fixture
def resolver(catalog: MemoryContextCatalog, audit_log: MemoryAuditLog) -> ContextRequirementResolver:
    return ContextRequirementResolver(catalog, Auditor(audit_log))


def _wildcard(wildcard_type: str = "generic_ticket", **extra) -> ContextRequirement:
    return ContextRequirement(id="req", type="wildcard", wildcard_type=wildcard_type, **extra)


async def test_explicit_resolves_to_that_id(resolver: ContextRequirementResolver) -> None:
    requirement = ContextRequirement(id="runbook", type="explicit", context_item_id="lib_1")

    item = await resolver.resolve(requirement)

    assert item is not None
    assert item.context_item_id == "lib_1"
    assert item.requirement_id == "runbook"
    assert item.resolution_type == ResolutionType.EXPLICIT
    assert item.metadata == {"title": "Runbook", "source": "file"}


async def test_explicit_missing_returns_none(resolver: ContextRequirementResolver) -> None:
    requirement = ContextRequirement(id="gone", type="explicit", context_item_id="does_not_exist")
    assert await resolver.resolve(requirement) is None


async def test_explicit_ignores_overrides(resolver: ContextRequirementResolver) -> None:
    requirement = ContextRequirement(id="runbook", type="explicit", context_item_id="lib_1")
    item = await resolver.resolve(requirement, {"generic_document": "ticket_old"})
    assert item is not None
    assert item.context_item_id == "lib_1"


async def test_wildcard_first_match(resolver: ContextRequirementResolver, audit_log: MemoryAuditLog) -> None:
    item = await resolver.resolve(_wildcard(), template_id="tpl_1")

    assert item is not None
    assert item.context_item_id == "ticket_old"
    assert item.resolution_type == ResolutionType.WILDCARD_RESOLVED
    assert item.metadata["wildcard_type"] == "generic_ticket"
    assert any(m.startswith("Wildcard resolved") for m in audit_log.messages())


async def test_override_wins_over_category_match(resolver: ContextRequirementResolver) -> None:
    # The override does not even belong to the category; it still wins.
    item = await resolver.resolve(_wildcard(), {"generic_ticket": "repo_api"})

    assert item is not None
    assert item.context_item_id == "repo_api"
    assert item.resolution_type == ResolutionType.WILDCARD_RESOLVED


async def test_missing_override_falls_back(resolver: ContextRequirementResolver, audit_log: MemoryAuditLog) -> None:
    item = await resolver.resolve(_wildcard(), {"generic_ticket": "ghost"})

    assert item is not None
    assert item.context_item_id == "ticket_old"
    assert any("Override item not found" in m for m in audit_log.messages())


async def test_override_for_other_category_is_ignored(resolver: ContextRequirementResolver) -> None:
    item = await resolver.resolve(_wildcard(), {"generic_repository": "repo_api"})
    assert item is not None
    assert item.context_item_id == "ticket_old"


async def test_filters_narrow_candidates(resolver: ContextRequirementResolver) -> None:
    requirement = _wildcard(wildcard_filters=WildcardFilters(tags=["frontend"]))
    item = await resolver.resolve(requirement)
    assert item is not None
    assert item.context_item_id == "ticket_new"


async def test_no_candidates(resolver: ContextRequirementResolver, audit_log: MemoryAuditLog) -> None:
    requirement = _wildcard(wildcard_filters=WildcardFilters(source=["linear"]))

    assert await resolver.resolve(requirement) is None
    assert any("No matching items found" in m for m in audit_log.messages())


async def test_most_recent_ranker(catalog: MemoryContextCatalog, audit_log: MemoryAuditLog) -> None:
    resolver = ContextRequirementResolver(catalog, Auditor(audit_log), ranker=most_recent)
    item = await resolver.resolve(_wildcard())
    assert item is not None
    assert item.context_item_id == "ticket_new"


# -- Rankers and filters -------------------------------------------------------


def _items() -> list[ContextItem]:
    return [
        ContextItem(id="undated"),
        ContextItem(id="old", added_at=datetime(2025, 1, 1, tzinfo=UTC)),
        ContextItem(id="new", added_at=datetime(2026, 1, 1, tzinfo=UTC)),
    ]


def test_first_match_keeps_order() -> None:
    assert [i.id for i in first_match(_items())] == ["undated", "old", "new"]


def test_most_recent_puts_undated_last() -> None:
    assert [i.id for i in most_recent(_items())] == ["new", "old", "undated"]


def test_get_ranker() -> None:
    assert get_ranker("most_recent") is most_recent
    with pytest.raises(ValueError, match="Unknown wildcard ranking"):
        get_ranker("random")


def test_apply_filters_combines_all_criteria() -> None:
    items = [
        ContextItem(id="a", type="jira_ticket", source="jira", tags=["x"]),
        ContextItem(id="b", type="jira_ticket", source="jira", tags=["y"]),
        ContextItem(id="c", type="document", source="jira", tags=["x"]),
    ]
    filters = WildcardFilters(tags=["x", "z"], source=["jira"], content_type=["jira_ticket"])
    assert [i.id for i in apply_filters(items, filters)] == ["a"]
    assert apply_filters(items, None) == items


def test_requirement_shape_is_validated() -> None:
    with pytest.raises(ValueError, match="needs context_item_id"):
        ContextRequirement(id="r", type="explicit")
    with pytest.raises(ValueError, match="needs wildcard_type"):
        ContextRequirement(id="r", type="wildcard", context_item_id="lib_1")
