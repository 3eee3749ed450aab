"""Unit tests for the definition and snapshot stores.

No external services required -- uses a temporary directory.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from workshop.template_runtime.managers.templates import TEMPLATE_INDEX_FIELDS
from workshop.template_runtime.models.snapshot import ObservedSnapshot
from workshop.template_runtime.models.template import WorkspaceTemplate
from workshop.template_runtime.store.local import LocalDefinitionStore
from workshop.template_runtime.store.memory import MemoryDefinitionStore
from workshop.template_runtime.store.snapshots import LocalSnapshotStore


def _template(template_id: str, name: str = "T", *, age_days: int = 0) -> WorkspaceTemplate:
    stamp = datetime(2026, 6, 1, tzinfo=UTC) - timedelta(days=age_days)
    return WorkspaceTemplate(id=template_id, name=name, created_at=stamp, updated_at=stamp)


@pytest.fixture
def store(tmp_path) -> LocalDefinitionStore[WorkspaceTemplate]:
    return LocalDefinitionStore(tmp_path, "templates", WorkspaceTemplate, index_fields=TEMPLATE_INDEX_FIELDS)


async def test_put_and_get(store: LocalDefinitionStore[WorkspaceTemplate]) -> None:
    await store.put(_template("tpl_a", "Alpha"))

    result = await store.get("tpl_a")
    assert result is not None
    assert result.name == "Alpha"
    assert (store.directory / "tpl_a.json").is_file()


async def test_get_missing_returns_none(store: LocalDefinitionStore[WorkspaceTemplate]) -> None:
    assert await store.get("nope") is None


async def test_put_replaces(store: LocalDefinitionStore[WorkspaceTemplate]) -> None:
    await store.put(_template("tpl_a", "Alpha"))
    await store.put(_template("tpl_a", "Beta"))

    result = await store.get("tpl_a")
    assert result is not None
    assert result.name == "Beta"
    assert len(await store.list()) == 1


async def test_no_temp_files_left_behind(store: LocalDefinitionStore[WorkspaceTemplate]) -> None:
    await store.put(_template("tpl_a"))
    assert [p.name for p in store.directory.iterdir()] == ["tpl_a.json"]


async def test_list_newest_first(store: LocalDefinitionStore[WorkspaceTemplate]) -> None:
    await store.put(_template("old", age_days=10))
    await store.put(_template("new", age_days=0))
    await store.put(_template("mid", age_days=5))

    assert [t.id for t in await store.list()] == ["new", "mid", "old"]


async def test_list_skips_malformed_files(store: LocalDefinitionStore[WorkspaceTemplate]) -> None:
    await store.put(_template("good"))
    (store.directory / "broken.json").write_text("{not json", encoding="utf-8")

    assert [t.id for t in await store.list()] == ["good"]


async def test_delete(store: LocalDefinitionStore[WorkspaceTemplate]) -> None:
    await store.put(_template("tpl_a"))

    assert await store.delete("tpl_a") is True
    assert await store.get("tpl_a") is None
    assert await store.delete("tpl_a") is False


async def test_index_is_derived_from_records(store: LocalDefinitionStore[WorkspaceTemplate]) -> None:
    await store.put(_template("tpl_a", "Alpha"))
    rows = await store.index()
    assert rows == [{"id": "tpl_a", "name": "Alpha", "category": "custom", "updated_at": rows[0]["updated_at"]}]

    await store.put(_template("tpl_b", "Beta", age_days=1))
    await store.delete("tpl_a")
    assert [r["id"] for r in await store.index()] == ["tpl_b"]


async def test_index_sees_records_written_by_another_store(tmp_path) -> None:
    """No side index: a second writer's records show up in the listing."""
    reader = LocalDefinitionStore(tmp_path, "templates", WorkspaceTemplate)
    writer = LocalDefinitionStore(tmp_path, "templates", WorkspaceTemplate)
    assert await reader.index() == []

    await writer.put(_template("tpl_a"))
    assert [r["id"] for r in await reader.index()] == ["tpl_a"]


async def test_prefix_layout(tmp_path) -> None:
    store = LocalDefinitionStore(tmp_path, "templates", WorkspaceTemplate, prefix="alice")
    await store.put(_template("tpl_a"))
    assert (tmp_path / "alice" / "templates" / "tpl_a.json").is_file()


@pytest.mark.parametrize("bad_id", ["../escape", "a/b", ".hidden", ""])
async def test_rejects_path_like_ids(store: LocalDefinitionStore[WorkspaceTemplate], bad_id: str) -> None:
    with pytest.raises(ValueError, match="Invalid document id"):
        await store.get(bad_id)


async def test_memory_store_isolates_copies() -> None:
    store = MemoryDefinitionStore[WorkspaceTemplate]()
    template = _template("tpl_a", "Alpha")
    await store.put(template)

    template.name = "mutated"
    fetched = await store.get("tpl_a")
    assert fetched is not None
    assert fetched.name == "Alpha"

    fetched.name = "mutated again"
    again = await store.get("tpl_a")
    assert again is not None
    assert again.name == "Alpha"


# -- Snapshots -----------------------------------------------------------------


async def test_snapshot_store_roundtrip(tmp_path) -> None:
    store = LocalSnapshotStore(tmp_path)
    assert await store.read("trig_1") is None

    await store.write(ObservedSnapshot(trigger_id="trig_1", entity_id="ticket_1", state={"status": "Open"}))
    snapshot = await store.read("trig_1")
    assert snapshot is not None
    assert snapshot.state == {"status": "Open"}
    assert (tmp_path / "snapshots" / "trig_1.json").is_file()

    await store.delete("trig_1")
    assert await store.read("trig_1") is None
    # Delete non-existent is a no-op.
    await store.delete("trig_1")
