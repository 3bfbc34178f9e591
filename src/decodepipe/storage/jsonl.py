from __future__ import annotations

import json
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from decodepipe.core.interfaces import IDecodedEventSink
from decodepipe.core.models import DecodedEvent


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _safe_ints(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value) if abs(value) >= 2**53 else value
    if isinstance(value, (list, tuple)):
        return [_safe_ints(v) for v in value]
    if isinstance(value, dict):
        return {k: _safe_ints(v) for k, v in value.items()}
    return value


def event_to_json_line(ev: DecodedEvent) -> str:
    """Serialize as a compact JSON line.

    Integers beyond 2**53, including those nested in arrays and tuples, are
    written as strings so JSON readers keep them exact.
    """
    row = _safe_ints(ev.as_dict())
    return json.dumps(row, separators=(",", ":"), default=_json_default) + "\n"


class JsonlEventWriter(IDecodedEventSink):
    """Append decoded events to a JSON-lines file, one event per line."""

    def __init__(self, path: Path) -> None:
        self.path = path
        os.makedirs(self.path.parent, exist_ok=True)
        self._fh = open(self.path, "a", buffering=1)
        self.rows = 0

    def add(self, batch: Sequence[DecodedEvent]) -> list[Path]:
        if not batch:
            return []
        self._fh.writelines(event_to_json_line(ev) for ev in batch)
        self._fh.flush()
        self.rows += len(batch)
        return [self.path]

    def close(self) -> Path | None:
        if self._fh.closed:
            return None
        self._fh.close()
        return self.path if self.rows else None
