"""Workspace provisioning.

The provisioner materializes a resolved template application: it receives
the effective workspace config, the bound context items and the resolved
variables, and returns the id of the workspace it created.

``LocalWorkspaceProvisioner`` lays workspaces out on the local filesystem::

    {data_root}/{prefix}/workspaces/{workspace_id}/
        workspace.json            -> manifest (name, template, context, variables, agents)
        {directory_structure}/    -> empty directories from the config
        {file_templates}          -> rendered file templates

Paths from the config are always relative to the workspace root; absolute
paths and ``..`` segments are rejected.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from functools import partial
from pathlib import Path, PurePosixPath
from typing import Any, Protocol, runtime_checkable

import jinja2
from anyio import to_thread
from loguru import logger

from workshop.template_runtime.execution.rendering import render_string
from workshop.template_runtime.models.results import AppliedContextItem
from workshop.template_runtime.models.template import AgentTemplate, WorkspaceConfig

MANIFEST_NAME = "workspace.json"


class ProvisioningError(RuntimeError):
    """The workspace could not be created."""


@runtime_checkable
class WorkspaceProvisioner(Protocol):
    async def create(
        self,
        config: WorkspaceConfig,
        context_items: Sequence[AppliedContextItem],
        variables: dict[str, Any],
        *,
        template_id: str | None = None,
        agents: Sequence[AgentTemplate] = (),
    ) -> str:
        """Create a workspace and return its id.  Raises ``ProvisioningError``."""
        ...


class LocalWorkspaceProvisioner:
    """Local filesystem implementation of the WorkspaceProvisioner protocol."""

    def __init__(self, data_root: str | Path, prefix: str | None = None) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._base = base / "workspaces"

    def workspace_path(self, workspace_id: str) -> Path:
        return self._base / workspace_id

    async def create(
        self,
        config: WorkspaceConfig,
        context_items: Sequence[AppliedContextItem],
        variables: dict[str, Any],
        *,
        template_id: str | None = None,
        agents: Sequence[AgentTemplate] = (),
    ) -> str:
        workspace_id = f"ws_{uuid.uuid4().hex[:16]}"
        root = self.workspace_path(workspace_id)

        try:
            name = render_string(config.naming_pattern, variables)
            files = [
                (_safe_relative(render_string(ft.path, variables)), render_string(ft.content, variables), ft)
                for ft in config.file_templates
            ]
        except (jinja2.TemplateError, ValueError) as exc:
            msg = f"Failed to render workspace templates: {exc}"
            raise ProvisioningError(msg) from exc

        manifest = {
            "workspace_id": workspace_id,
            "name": name,
            "template_id": template_id,
            "created_at": datetime.now(tz=UTC).isoformat(),
            "permissions_template": config.permissions_template,
            "auto_archive_days": config.auto_archive_days,
            "context_items": [item.model_dump(mode="json") for item in context_items],
            "variables": variables,
            "agents": [agent.model_dump(mode="json") for agent in agents],
        }

        try:
            directories = [_safe_relative(d) for d in config.directory_structure]
            await to_thread.run_sync(partial(_materialize, root, directories, files, manifest))
        except (OSError, ValueError, TypeError) as exc:
            msg = f"Failed to materialize workspace {workspace_id}: {exc}"
            raise ProvisioningError(msg) from exc

        logger.info("Workspace created: {} ({!r}, template={})", workspace_id, name, template_id)
        return workspace_id


# -- Sync helpers (run in thread pool) -----------------------------------------


def _safe_relative(raw: str) -> PurePosixPath:
    path = PurePosixPath(raw.strip())
    if not path.parts or path.is_absolute() or ".." in path.parts:
        msg = f"Workspace path must be relative and inside the workspace: {raw!r}"
        raise ValueError(msg)
    return path


def _materialize(
    root: Path,
    directories: list[PurePosixPath],
    files: list[tuple[PurePosixPath, str, Any]],
    manifest: dict[str, Any],
) -> None:
    root.mkdir(parents=True, exist_ok=False)
    for directory in directories:
        (root / directory).mkdir(parents=True, exist_ok=True)
    for rel_path, content, file_template in files:
        target = root / rel_path
        if target.exists() and not file_template.overwrite_existing:
            logger.debug("Keeping existing file {} ({})", target, file_template.name)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    (root / MANIFEST_NAME).write_text(json.dumps(manifest, indent=2, default=str), encoding="utf-8")
