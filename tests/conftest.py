"""Pytest configuration for import paths and test isolation.

The workspace keeps the engine under ``packages/`` and the shared database
library under ``libs/db/src``. Both are put on ``sys.path`` here so the suite
runs from a plain checkout as well as from an editable install.

Every test also starts from a clean environment: ``DATABASE_URL`` and the
``RF_*`` threshold overrides are removed so a developer's shell (or ``.env``)
cannot change engine behavior under test, and cached engines are disposed
after each test so per-test SQLite files are released.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in [str(_ROOT / "packages"), str(_ROOT / "libs/db/src"), str(_ROOT)]
    if p not in sys.path
]


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop database and threshold overrides inherited from the host shell."""

    for name in list(os.environ):
        if name == "DATABASE_URL" or name.startswith("RF_"):
            monkeypatch.delenv(name, raising=False)
    yield

    from db.client import dispose_engines

    dispose_engines()
