"""Shared fixtures.

Every test gets its own view-cache root (``MI_CACHE_DIR``) because imports
write and delete derived-view snapshots on disk, and starts without the
import/personnel env toggles a developer shell may export.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

_TOGGLES = ("MI_ALLOW_CONCEPT_CREATE", "MI_PERSONNEL_MAX_WORKERS")


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache_root = tmp_path / "cache"
    cache_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("MI_CACHE_DIR", os.fspath(cache_root))
    for name in _TOGGLES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _dispose_engines():
    """Close pooled connections to the test's temporary database afterwards."""

    yield
    from db.client import dispose_engines

    dispose_engines()
