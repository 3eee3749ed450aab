"""Definition and snapshot store implementations."""

from workshop.template_runtime.store.base import DefinitionStore
from workshop.template_runtime.store.local import LocalDefinitionStore
from workshop.template_runtime.store.memory import MemoryDefinitionStore
from workshop.template_runtime.store.snapshots import LocalSnapshotStore, MemorySnapshotStore, SnapshotStore

__all__ = [
    "DefinitionStore",
    "LocalDefinitionStore",
    "LocalSnapshotStore",
    "MemoryDefinitionStore",
    "MemorySnapshotStore",
    "SnapshotStore",
]
