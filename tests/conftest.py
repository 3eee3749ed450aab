"""Shared test fixtures.

No external services are needed: stores use ``tmp_path`` or memory, the
catalog, provisioner and audit log have in-memory fakes.  Settings are
read from ``WORKSHOP_*`` env vars; ``workshop_env`` points them at a
temporary data root and invalidates the settings cache.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from workshop.template_runtime.settings import _get_settings_cached


@pytest.fixture
def workshop_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point WORKSHOP_DATA_ROOT at a temp dir; clear the settings cache around the test."""
    data_root = tmp_path / "data"
    monkeypatch.setenv("WORKSHOP_DATA_ROOT", str(data_root))
    monkeypatch.setenv("WORKSHOP_SCHEDULER_ENABLED", "false")
    _get_settings_cached.cache_clear()
    yield data_root
    _get_settings_cached.cache_clear()
