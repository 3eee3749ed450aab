"""Service wiring.

``build_services`` assembles the stores, adapters and pipeline components
from settings.  The FastAPI lifespan and the CLI both go through it, so
the server and one-shot commands run the exact same pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass

from workshop.template_runtime.audit import AuditLog, Auditor, JsonlAuditLog, LoguruAuditLog
from workshop.template_runtime.catalog import ContextCatalog, LocalContextCatalog
from workshop.template_runtime.execution.context_resolver import ContextRequirementResolver, get_ranker
from workshop.template_runtime.execution.orchestrator import TemplateApplicationOrchestrator
from workshop.template_runtime.execution.scheduler import TriggerScheduler
from workshop.template_runtime.execution.stats import StatsTracker
from workshop.template_runtime.execution.triggers import TriggerExecutor
from workshop.template_runtime.execution.variables import VariableResolver
from workshop.template_runtime.managers.templates import TEMPLATE_INDEX_FIELDS
from workshop.template_runtime.managers.triggers import TRIGGER_INDEX_FIELDS
from workshop.template_runtime.models.template import WorkspaceTemplate
from workshop.template_runtime.models.trigger import WorkspaceTrigger
from workshop.template_runtime.provisioner import LocalWorkspaceProvisioner, WorkspaceProvisioner
from workshop.template_runtime.registry import ApplicationRegistry
from workshop.template_runtime.settings import WorkshopSettings
from workshop.template_runtime.sources import CatalogSnapshotSource, SnapshotSource
from workshop.template_runtime.store.base import DefinitionStore
from workshop.template_runtime.store.local import LocalDefinitionStore
from workshop.template_runtime.store.snapshots import LocalSnapshotStore, SnapshotStore


@dataclass
class Services:
    """Everything a request handler or CLI command needs."""

    templates: DefinitionStore[WorkspaceTemplate]
    triggers: DefinitionStore[WorkspaceTrigger]
    catalog: ContextCatalog
    auditor: Auditor
    stats: StatsTracker
    registry: ApplicationRegistry
    context_resolver: ContextRequirementResolver
    variable_resolver: VariableResolver
    orchestrator: TemplateApplicationOrchestrator
    executor: TriggerExecutor
    scheduler: TriggerScheduler


def assemble(
    *,
    templates: DefinitionStore[WorkspaceTemplate],
    triggers: DefinitionStore[WorkspaceTrigger],
    catalog: ContextCatalog,
    provisioner: WorkspaceProvisioner,
    audit_log: AuditLog,
    snapshots: SnapshotStore,
    source: SnapshotSource | None = None,
    wildcard_ranking: str = "first_match",
    max_concurrent_applications: int = 10,
    scheduler_sync_interval: float = 30.0,
) -> Services:
    """Wire the pipeline from explicit adapters (tests and embedding use this directly)."""
    auditor = Auditor(audit_log)
    stats = StatsTracker(templates, triggers)
    registry = ApplicationRegistry()
    context_resolver = ContextRequirementResolver(catalog, auditor, get_ranker(wildcard_ranking))
    variable_resolver = VariableResolver(auditor)
    orchestrator = TemplateApplicationOrchestrator(
        templates, context_resolver, variable_resolver, provisioner, stats, auditor
    )
    executor = TriggerExecutor(triggers, templates, orchestrator, variable_resolver, stats, auditor, registry)
    scheduler = TriggerScheduler(
        triggers,
        executor,
        orchestrator,
        source or CatalogSnapshotSource(catalog),
        snapshots,
        auditor,
        max_concurrent_applications=max_concurrent_applications,
        sync_interval=scheduler_sync_interval,
    )
    return Services(
        templates=templates,
        triggers=triggers,
        catalog=catalog,
        auditor=auditor,
        stats=stats,
        registry=registry,
        context_resolver=context_resolver,
        variable_resolver=variable_resolver,
        orchestrator=orchestrator,
        executor=executor,
        scheduler=scheduler,
    )


def build_services(settings: WorkshopSettings) -> Services:
    """Create the local-filesystem service graph described by *settings*."""
    root, prefix = settings.data_root, settings.data_prefix
    audit_file = settings.resolve_audit_log_file()
    return assemble(
        templates=LocalDefinitionStore(
            root, "templates", WorkspaceTemplate, index_fields=TEMPLATE_INDEX_FIELDS, prefix=prefix
        ),
        triggers=LocalDefinitionStore(root, "triggers", WorkspaceTrigger, index_fields=TRIGGER_INDEX_FIELDS, prefix=prefix),
        catalog=LocalContextCatalog(root, prefix=prefix),
        provisioner=LocalWorkspaceProvisioner(root, prefix=prefix),
        audit_log=JsonlAuditLog(audit_file) if audit_file is not None else LoguruAuditLog(),
        snapshots=LocalSnapshotStore(root, prefix=prefix),
        wildcard_ranking=settings.wildcard_ranking,
        max_concurrent_applications=settings.max_concurrent_applications,
        scheduler_sync_interval=settings.scheduler_sync_interval,
    )
