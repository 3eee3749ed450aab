"""Snapshot store: last observed state per trigger.

Layout::

    {data_root}/{prefix}/snapshots/{trigger_id}.json
"""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Protocol, runtime_checkable

from anyio import to_thread

from workshop.template_runtime.models.snapshot import ObservedSnapshot
from workshop.template_runtime.store.base import check_doc_id
from workshop.template_runtime.store.local import _atomic_write, _read_file, _unlink


@runtime_checkable
class SnapshotStore(Protocol):
    async def read(self, trigger_id: str) -> ObservedSnapshot | None:
        """Return the last persisted snapshot, or ``None`` if never observed."""
        ...

    async def write(self, snapshot: ObservedSnapshot) -> None: ...

    async def delete(self, trigger_id: str) -> None:
        """Forget the snapshot.  No-op if not found."""
        ...


class LocalSnapshotStore:
    def __init__(self, data_root: str | Path, prefix: str | None = None) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._base = base / "snapshots"

    def _path(self, trigger_id: str) -> Path:
        return self._base / f"{check_doc_id(trigger_id)}.json"

    async def read(self, trigger_id: str) -> ObservedSnapshot | None:
        try:
            raw = await to_thread.run_sync(partial(_read_file, self._path(trigger_id)))
        except FileNotFoundError:
            return None
        return ObservedSnapshot.model_validate_json(raw)

    async def write(self, snapshot: ObservedSnapshot) -> None:
        data = snapshot.model_dump_json(indent=2)
        await to_thread.run_sync(partial(_atomic_write, self._path(snapshot.trigger_id), data))

    async def delete(self, trigger_id: str) -> None:
        await to_thread.run_sync(partial(_unlink, self._path(trigger_id)))


class MemorySnapshotStore:
    def __init__(self) -> None:
        self._snapshots: dict[str, ObservedSnapshot] = {}

    async def read(self, trigger_id: str) -> ObservedSnapshot | None:
        return self._snapshots.get(trigger_id)

    async def write(self, snapshot: ObservedSnapshot) -> None:
        self._snapshots[snapshot.trigger_id] = snapshot

    async def delete(self, trigger_id: str) -> None:
        self._snapshots.pop(trigger_id, None)
