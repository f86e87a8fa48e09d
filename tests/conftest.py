from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    # ExportConfig reads TIDEBIND_* and ./.env; keep the developer's environment out of the tests.
    for key in list(os.environ):
        if key.startswith("TIDEBIND_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    yield
