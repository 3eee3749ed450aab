"""Local filesystem definition store.

Stores each document as a JSON file under a unified data root with optional
namespace prefix::

    {data_root}/{prefix}/{collection}/{doc_id}.json

When prefix is None, the path collapses to::

    {data_root}/{collection}/{doc_id}.json

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.

Writes are atomic: data is written to a temporary file in the same directory,
then renamed to the target path.  This prevents corrupt reads if the process
crashes mid-write.

The listing index is rebuilt lazily from the records and cached against the
collection directory's modification time, so writes from another process
invalidate it too.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from functools import partial
from pathlib import Path
from typing import Any, Generic

from anyio import to_thread
from loguru import logger
from pydantic import BaseModel, ValidationError

from workshop.template_runtime.store.base import T, check_doc_id, index_row, sort_newest_first


class LocalDefinitionStore(Generic[T]):
    """Local filesystem implementation of the DefinitionStore protocol.

    Layout::

        {base}/{collection}/{doc_id}.json

    Where ``base`` is ``data_root / prefix`` (or just ``data_root`` if no prefix).
    """

    def __init__(
        self,
        data_root: str | Path,
        collection: str,
        model: type[T],
        *,
        index_fields: tuple[str, ...] = ("id", "name", "updated_at"),
        prefix: str | None = None,
    ) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._base = base / collection
        self._model = model
        self._index_fields = index_fields
        self._index_cache: tuple[int, list[dict[str, Any]]] | None = None

    @property
    def directory(self) -> Path:
        return self._base

    def _doc_path(self, doc_id: str) -> Path:
        return self._base / f"{check_doc_id(doc_id)}.json"

    # -- Write -----------------------------------------------------------------

    async def put(self, doc: T) -> None:
        doc_id: str = doc.id  # type: ignore[attr-defined]
        data = doc.model_dump_json(indent=2)
        await to_thread.run_sync(partial(_atomic_write, self._doc_path(doc_id), data))
        self._index_cache = None

    async def delete(self, doc_id: str) -> bool:
        removed = await to_thread.run_sync(partial(_unlink, self._doc_path(doc_id)))
        self._index_cache = None
        return removed

    # -- Read ------------------------------------------------------------------

    async def get(self, doc_id: str) -> T | None:
        path = self._doc_path(doc_id)
        try:
            raw = await to_thread.run_sync(partial(_read_file, path))
        except FileNotFoundError:
            return None
        return self._model.model_validate_json(raw)

    async def list(self) -> list[T]:
        raws = await to_thread.run_sync(partial(_read_all, self._base))
        docs: list[T] = []
        for path, raw in raws:
            try:
                docs.append(self._model.model_validate_json(raw))
            except ValidationError:
                logger.warning("Skipping malformed document {}", path)
        return sort_newest_first(docs)

    async def index(self) -> list[dict[str, Any]]:
        stamp = await to_thread.run_sync(partial(_dir_stamp, self._base))
        if self._index_cache is not None and self._index_cache[0] == stamp:
            return list(self._index_cache[1])
        rows = [index_row(doc, self._index_fields) for doc in await self.list()]
        self._index_cache = (stamp, rows)
        return list(rows)


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename.

    Ensures readers never see a partially-written file.  The temp file is
    created in the same directory so ``os.replace`` is atomic on POSIX.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on any failure.
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _read_file(path: Path) -> str:
    """Read file contents.  Raises ``FileNotFoundError`` if missing."""
    return path.read_text(encoding="utf-8")


def _read_all(directory: Path) -> list[tuple[Path, str]]:
    if not directory.is_dir():
        return []
    return [(p, p.read_text(encoding="utf-8")) for p in sorted(directory.glob("*.json"))]


def _unlink(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


def _dir_stamp(directory: Path) -> int:
    """Modification stamp of the collection directory (0 if absent)."""
    try:
        return directory.stat().st_mtime_ns
    except FileNotFoundError:
        return 0
