"""Run directory layout and atomic artifact writes.

Layout (relative to the configured output path)::

    <YYYY-MM-DDTHH.MM.SS>/
        transactions.csv          combined export, newest first
        output.json               structured snapshot, oldest first
        <source key>/<document>   raw exports and derived CSVs

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
"""

from __future__ import annotations

import contextlib
import os
import re
from datetime import datetime
from pathlib import Path

from .logging_setup import get_logger

_UNSAFE_NAME_RE = re.compile(r'[/\\|:<>?*"]')

_logger = get_logger("bankfeed.artifacts")


def safe_name(name: str) -> str:
    """Replace characters that are not allowed in file names with ``_``."""

    return _UNSAFE_NAME_RE.sub("_", name)


def run_directory(output_path: Path, now: datetime | None = None) -> Path:
    stamp = (now or datetime.now()).strftime("%Y-%m-%dT%H.%M.%S")
    return output_path / stamp


class ArtifactStore:
    """Write text artifacts below ``base``; directories are created on demand."""

    def __init__(self, base: Path) -> None:
        self.base = base

    def for_source(self, key: str) -> ArtifactStore:
        return ArtifactStore(self.base / safe_name(key))

    def write_text(self, name: str, contents: str) -> Path:
        # Encoded directly so CSV "\r\n" terminators stay untranslated.
        return self.write_bytes(name, contents.encode("utf-8"))

    def write_bytes(self, name: str, data: bytes) -> Path:
        path = self.base / safe_name(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise
        _logger.debug("artifacts:written path=%s bytes=%d", path, len(data))
        return path


__all__ = ["ArtifactStore", "run_directory", "safe_name"]
