"""Tests for applying trigger template overrides."""

from __future__ import annotations

from workshop.template_runtime.execution.overrides import effective_blueprint
from workshop.template_runtime.models.template import WorkspaceTemplate
from workshop.template_runtime.models.trigger import TemplateOverrides


def _template() -> WorkspaceTemplate:
    return WorkspaceTemplate.model_validate(
        {
            "id": "tpl",
            "name": "T",
            "workspace_config": {
                "naming_pattern": "{{ name }}",
                "file_templates": [
                    {"name": "readme", "path": "README.md", "content": "hello"},
                    {"name": "notes", "path": "NOTES.md", "content": "notes"},
                ],
            },
            "agent_templates": [
                {"name": "coder", "commands": ["/build"], "permissions": ["read", "write"]},
                {"name": "reviewer", "model": "gemini", "permissions": ["read"]},
            ],
        }
    )


def test_no_overrides_returns_copies() -> None:
    template = _template()
    config, agents = effective_blueprint(template)

    config.naming_pattern = "changed"
    agents[0].commands.append("/oops")
    assert template.workspace_config.naming_pattern == "{{ name }}"
    assert template.agent_templates[0].commands == ["/build"]


def test_naming_and_file_overrides() -> None:
    overrides = TemplateOverrides.model_validate(
        {
            "naming_pattern": "{{ jira.key }}",
            "file_template_overrides": [
                {"template_name": "readme", "content_override": "override", "path_override": "docs/README.md"},
                {"template_name": "unknown", "content_override": "ignored"},
            ],
        }
    )
    template = _template()
    config, _ = effective_blueprint(template, overrides)

    assert config.naming_pattern == "{{ jira.key }}"
    readme, notes = config.file_templates
    assert (readme.path, readme.content) == ("docs/README.md", "override")
    assert (notes.path, notes.content) == ("NOTES.md", "notes")
    assert template.workspace_config.file_templates[0].content == "hello"


def test_agent_overrides() -> None:
    overrides = TemplateOverrides.model_validate(
        {
            "agent_configs": [
                {"name": "coder", "model": "gemini", "replace_existing": True},
                {"name": "tester", "commands": ["/test"]},
            ],
            "additional_commands": ["/lint"],
        }
    )
    _, agents = effective_blueprint(_template(), overrides)

    assert [a.name for a in agents] == ["coder", "reviewer", "tester"]
    coder, reviewer, tester = agents
    assert coder.model == "gemini"
    assert coder.commands == ["/build", "/lint"]
    assert reviewer.commands == ["/lint"]
    assert tester.commands == ["/test", "/lint"]


def test_permission_overrides_apply_in_order() -> None:
    overrides = TemplateOverrides.model_validate(
        {
            "permissions_overrides": [
                {"action": "add", "permissions": ["deploy", "read"]},
                {"action": "remove", "permissions": ["write"]},
            ]
        }
    )
    _, agents = effective_blueprint(_template(), overrides)
    assert agents[0].permissions == ["read", "deploy"]
    assert agents[1].permissions == ["read", "deploy"]

    replace = TemplateOverrides.model_validate({"permissions_overrides": [{"action": "replace", "permissions": ["none"]}]})
    _, agents = effective_blueprint(_template(), replace)
    assert all(a.permissions == ["none"] for a in agents)
