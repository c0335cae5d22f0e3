from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

_LOG = logging.getLogger(__name__)


class SidecarReader:
    """Iterate JSON-object rows of a JSON-lines file, skipping blank or malformed lines."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.skipped = 0

    def __iter__(self) -> Iterator[dict[str, Any]]:
        with self.path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    row = json.loads(line)
                except ValueError:
                    self.skipped += 1
                    _LOG.warning("%s:%d: skipping malformed JSON line", self.path, lineno)
                    continue
                if not isinstance(row, dict):
                    self.skipped += 1
                    _LOG.warning("%s:%d: skipping non-object row", self.path, lineno)
                    continue
                yield row


def read_all(path: str | Path) -> list[dict[str, Any]]:
    """All rows of ``path``; a missing file reads as empty."""
    p = Path(path)
    if not p.exists():
        return []
    return list(SidecarReader(p))
