"""Tests for trigger execution."""

from __future__ import annotations

from workshop.template_runtime.audit import MemoryAuditLog
from workshop.template_runtime.execution.triggers import wildcard_overrides
from workshop.template_runtime.models.enums import AuditCategory
from workshop.template_runtime.services import Services


def _wildcard_template(make_template):
    return make_template(
        context_requirements=[
            {"id": "runbook", "type": "explicit", "context_item_id": "lib_1"},
            {"id": "ticket", "type": "wildcard", "wildcard_type": "generic_ticket"},
            {"id": "repo", "type": "wildcard", "wildcard_type": "generic_repository"},
        ],
        variables=[{"name": "jira.key", "required": True}, {"name": "env", "default_value": "staging"}],
    )


async def test_execute_success(services: Services, provisioner, make_template, make_trigger) -> None:
    await services.templates.put(_wildcard_template(make_template))
    await services.triggers.put(
        make_trigger(variable_mapping={"jira.key": {"source": "jira_field", "field_path": "key"}})
    )

    result = await services.executor.execute("trig_1", {"key": "PROJ-2", "status": "In Progress"})

    assert result.success is True
    assert result.workspace_id == "ws_test_1"
    assert result.error is None

    call = provisioner.calls[0]
    applied = {i.requirement_id: i.context_item_id for i in call["context_items"]}
    # The watched item is pinned to the first wildcard requirement only.
    assert applied == {"runbook": "lib_1", "ticket": "ticket_new", "repo": "repo_api"}
    assert call["variables"] == {"jira.key": "PROJ-2", "env": "staging"}

    trigger = await services.triggers.get("trig_1")
    assert (trigger.execution_count, trigger.success_count, trigger.failure_count) == (1, 1, 0)
    template = await services.templates.get("tpl_1")
    assert template.usage_stats.automated_uses == 1
    assert services.registry.active_count == 0


async def test_execute_failure_bumps_failure_count(
    services: Services, audit_log: MemoryAuditLog, make_template, make_trigger
) -> None:
    await services.templates.put(_wildcard_template(make_template))
    await services.triggers.put(make_trigger())

    result = await services.executor.execute("trig_1", {})

    assert result.success is False
    assert "jira.key" in result.error
    trigger = await services.triggers.get("trig_1")
    assert (trigger.execution_count, trigger.success_count, trigger.failure_count) == (1, 0, 1)
    assert any(m.startswith("Trigger failed") for m in audit_log.messages(AuditCategory.TRIGGER))


async def test_unknown_trigger(services: Services) -> None:
    result = await services.executor.execute("ghost")
    assert result.success is False
    assert result.error == "Trigger not found: ghost"


async def test_inactive_trigger_is_refused(services: Services, provisioner, make_template, make_trigger) -> None:
    await services.templates.put(make_template())
    await services.triggers.put(make_trigger(status="paused"))

    result = await services.executor.execute("trig_1")

    assert result.success is False
    assert result.error == "Trigger is not active: paused"
    assert provisioner.calls == []
    trigger = await services.triggers.get("trig_1")
    assert trigger.execution_count == 0


async def test_missing_template_reported(services: Services, make_trigger) -> None:
    await services.triggers.put(make_trigger(template_id="gone"))

    result = await services.executor.execute("trig_1")

    assert result.success is False
    assert "gone" in result.error
    trigger = await services.triggers.get("trig_1")
    assert trigger.failure_count == 1


async def test_refused_during_shutdown(services: Services, make_template, make_trigger) -> None:
    await services.templates.put(make_template())
    await services.triggers.put(make_trigger())
    services.registry.begin_shutdown()

    result = await services.executor.execute("trig_1")

    assert result.success is False
    assert result.error == "Service is shutting down"


async def test_trigger_overrides_and_timeout(services: Services, provisioner, make_template, make_trigger) -> None:
    await services.templates.put(make_template(agent_templates=[{"name": "coder"}]))
    await services.triggers.put(
        make_trigger(
            template_overrides={"naming_pattern": "{{ key }}", "additional_commands": ["/triage"]},
            resource_limits={"min_trigger_interval_ms": 0, "timeout_ms": 20},
        )
    )
    provisioner.delay = 0.2

    result = await services.executor.execute("trig_1")

    assert result.success is False
    assert "timed out" in result.error
    assert provisioner.calls[0]["config"].naming_pattern == "{{ key }}"
    assert provisioner.calls[0]["agents"][0].commands == ["/triage"]
    await services.orchestrator.wait_for_detached()


async def test_test_execution_uses_sample_context(services: Services, provisioner, make_template, make_trigger) -> None:
    await services.templates.put(make_template(variables=[{"name": "summary", "required": True}]))
    await services.triggers.put(make_trigger())

    result = await services.executor.test("trig_1", {"key": "OVERRIDE-1"})

    assert result.success is True
    assert provisioner.calls[0]["variables"] == {"summary": "Test ticket for trigger execution"}


def test_wildcard_overrides_helper(make_template) -> None:
    assert wildcard_overrides(None, "x") == {}
    assert wildcard_overrides(make_template(), "x") == {}
    assert wildcard_overrides(_wildcard_template(make_template), "x") == {"generic_ticket": "x"}
    assert wildcard_overrides(_wildcard_template(make_template), None) == {}


async def test_client_only_flags_do_not_change_execution(
    services: Services, provisioner, make_template, make_trigger
) -> None:
    agents = [{"name": "fixer", "auto_deploy": True}, {"name": "reviewer", "auto_deploy": True}]
    await services.templates.put(make_template(agent_templates=agents))
    await services.triggers.put(
        make_trigger(auto_deploy=True, resource_limits={"min_trigger_interval_ms": 0, "max_concurrent_agents": 1})
    )

    result = await services.executor.execute("trig_1")

    assert result.success is True
    # Every agent reaches the provisioner untouched; nothing is deployed or capped.
    assert [(a.name, a.auto_deploy) for a in provisioner.calls[0]["agents"]] == [
        ("fixer", True),
        ("reviewer", True),
    ]
    trigger = await services.triggers.get("trig_1")
    assert trigger.auto_deploy is True
    assert trigger.resource_limits.max_concurrent_agents == 1
