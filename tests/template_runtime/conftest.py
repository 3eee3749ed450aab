"""Shared fixtures for template-runtime tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from datetime import UTC, datetime
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from workshop.template_runtime.app import app
from workshop.template_runtime.audit import MemoryAuditLog
from workshop.template_runtime.catalog import MemoryContextCatalog
from workshop.template_runtime.managers.templates import TEMPLATE_INDEX_FIELDS
from workshop.template_runtime.managers.triggers import TRIGGER_INDEX_FIELDS
from workshop.template_runtime.models.catalog import ContextItem
from workshop.template_runtime.models.results import AppliedContextItem
from workshop.template_runtime.models.template import AgentTemplate, WorkspaceConfig, WorkspaceTemplate
from workshop.template_runtime.models.trigger import WorkspaceTrigger
from workshop.template_runtime.services import Services, assemble
from workshop.template_runtime.sources import StaticSnapshotSource
from workshop.template_runtime.store.memory import MemoryDefinitionStore
from workshop.template_runtime.store.snapshots import MemorySnapshotStore


class FakeProvisioner:
    """Records every create call; can be told to fail or to block."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_with: Exception | None = None
        self.delay: float = 0.0
        self._counter = 0

    async def create(
        self,
        config: WorkspaceConfig,
        context_items: Sequence[AppliedContextItem],
        variables: dict[str, Any],
        *,
        template_id: str | None = None,
        agents: Sequence[AgentTemplate] = (),
    ) -> str:
        self.calls.append(
            {
                "config": config,
                "context_items": list(context_items),
                "variables": dict(variables),
                "template_id": template_id,
                "agents": list(agents),
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        self._counter += 1
        return f"ws_test_{self._counter}"


def catalog_items() -> list[ContextItem]:
    return [
        ContextItem(id="lib_1", title="Runbook", type="document", source="file", tags=["docs"]),
        ContextItem(
            id="ticket_old",
            title="PROJ-1",
            type="jira_ticket",
            source="jira",
            tags=["backend"],
            added_at=datetime(2026, 1, 1, tzinfo=UTC),
        ),
        ContextItem(
            id="ticket_new",
            title="PROJ-2",
            type="jira_ticket",
            source="jira",
            tags=["frontend"],
            added_at=datetime(2026, 6, 1, tzinfo=UTC),
        ),
        ContextItem(id="repo_api", title="api", type="git_repository", source="git", tags=["backend"]),
    ]


@pytest.fixture
def catalog() -> MemoryContextCatalog:
    return MemoryContextCatalog(catalog_items())


@pytest.fixture
def audit_log() -> MemoryAuditLog:
    return MemoryAuditLog()


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def source() -> StaticSnapshotSource:
    return StaticSnapshotSource()


@pytest.fixture
def services(
    catalog: MemoryContextCatalog,
    audit_log: MemoryAuditLog,
    provisioner: FakeProvisioner,
    source: StaticSnapshotSource,
) -> Services:
    """Full service graph over in-memory adapters."""
    return assemble(
        templates=MemoryDefinitionStore[WorkspaceTemplate](index_fields=TEMPLATE_INDEX_FIELDS),
        triggers=MemoryDefinitionStore[WorkspaceTrigger](index_fields=TRIGGER_INDEX_FIELDS),
        catalog=catalog,
        provisioner=provisioner,
        audit_log=audit_log,
        snapshots=MemorySnapshotStore(),
        source=source,
    )


@pytest.fixture
async def client(services: Services) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with in-memory services.

    The app lifespan does NOT run under ``ASGITransport``, so the service
    graph is pre-set on ``app.state``.
    """
    app.state.services = services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.services = None


# -- Builders ------------------------------------------------------------------


def build_template(template_id: str = "tpl_1", **overrides: Any) -> WorkspaceTemplate:
    now = datetime.now(tz=UTC)
    data: dict[str, Any] = {
        "id": template_id,
        "name": "Bugfix",
        "created_at": now,
        "updated_at": now,
        "context_requirements": [
            {"id": "runbook", "type": "explicit", "context_item_id": "lib_1", "required": True},
        ],
        "variables": [{"name": "env", "default_value": "staging", "required": False}],
    }
    data.update(overrides)
    return WorkspaceTemplate.model_validate(data)


def build_trigger(trigger_id: str = "trig_1", template_id: str = "tpl_1", **overrides: Any) -> WorkspaceTrigger:
    data: dict[str, Any] = {
        "id": trigger_id,
        "name": "On in progress",
        "template_id": template_id,
        "context_listener": {
            "context_item_id": "ticket_new",
            "trigger_conditions": [{"id": "c1", "type": "status_change", "config": {"to_status": "In Progress"}}],
            "polling_interval_ms": 1000,
        },
        "resource_limits": {"min_trigger_interval_ms": 0},
    }
    data.update(overrides)
    return WorkspaceTrigger.model_validate(data)


@pytest.fixture
def make_template():
    return build_template


@pytest.fixture
def make_trigger():
    return build_trigger
