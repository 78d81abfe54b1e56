"""Pytest configuration for test isolation.

Configuration loading honours ``BANKFEED_*`` environment variables (and the
CLI loads a ``.env`` from the working directory). A developer shell with those
set would leak into assertions about defaults, so every test starts from a
clean slate and runs inside its own temporary working directory.
"""

from __future__ import annotations

from pathlib import Path

import pytest

_ENV_VARS = (
    "BANKFEED_LOG_LEVEL",
    "BANKFEED_OUTPUT_PATH",
    "BANKFEED_LEDGER_PASSWORD",
    "BANKFEED_LEDGER_SERVER_URL",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # No stray .env from the repository root.
    monkeypatch.chdir(tmp_path)
