"""Apply trigger-level template overrides to an effective workspace blueprint.

The stored template is never modified; overrides produce copies of its
``workspace_config`` and ``agent_templates`` for one application.
"""

from __future__ import annotations

from workshop.template_runtime.models.enums import PermissionAction
from workshop.template_runtime.models.template import AgentTemplate, WorkspaceConfig, WorkspaceTemplate
from workshop.template_runtime.models.trigger import AgentOverride, TemplateOverrides


def effective_blueprint(
    template: WorkspaceTemplate,
    overrides: TemplateOverrides | None = None,
) -> tuple[WorkspaceConfig, list[AgentTemplate]]:
    """Return ``(workspace_config, agents)`` with *overrides* applied."""
    config = template.workspace_config.model_copy(deep=True)
    agents = [a.model_copy(deep=True) for a in template.agent_templates]
    if overrides is None:
        return config, agents

    if overrides.naming_pattern:
        config.naming_pattern = overrides.naming_pattern

    for file_override in overrides.file_template_overrides:
        for file_template in config.file_templates:
            if file_template.name != file_override.template_name:
                continue
            if file_override.content_override is not None:
                file_template.content = file_override.content_override
            if file_override.path_override is not None:
                file_template.path = file_override.path_override

    for agent_override in overrides.agent_configs:
        agents = _merge_agent(agents, agent_override)

    if overrides.additional_commands:
        for agent in agents:
            agent.commands.extend(c for c in overrides.additional_commands if c not in agent.commands)

    for permission_override in overrides.permissions_overrides:
        for agent in agents:
            match permission_override.action:
                case PermissionAction.ADD:
                    agent.permissions.extend(p for p in permission_override.permissions if p not in agent.permissions)
                case PermissionAction.REMOVE:
                    agent.permissions = [p for p in agent.permissions if p not in permission_override.permissions]
                case PermissionAction.REPLACE:
                    agent.permissions = list(permission_override.permissions)

    return config, agents


def _merge_agent(agents: list[AgentTemplate], override: AgentOverride) -> list[AgentTemplate]:
    """Replace the same-named agent when ``replace_existing``, otherwise append."""
    replacement = AgentTemplate(
        name=override.name,
        commands=override.commands or [],
        permissions=override.permissions or [],
    )
    if override.model is not None:
        replacement.model = override.model

    if override.replace_existing:
        for index, agent in enumerate(agents):
            if agent.name == override.name:
                merged = agent.model_copy(
                    update={k: v for k, v in override.model_dump(exclude={"name", "replace_existing"}).items() if v is not None}
                )
                return [*agents[:index], merged, *agents[index + 1 :]]
    return [*agents, replacement]
