"""Append-only JSON-lines audit log of ledger events."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

from nav_ledger.domain.events import LedgerEvent


class JsonLinesAuditRepository:
    """Ledger listener writing one JSON object per event."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def __call__(self, event: LedgerEvent) -> None:
        self.append(event)

    def append(self, event: LedgerEvent) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(event.to_dict(), sort_keys=True) + "\n")

    def read_events(self) -> Sequence[LedgerEvent]:
        if not self._path.exists():
            return ()
        events: list[LedgerEvent] = []
        with self._path.open(encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if line:
                    events.append(LedgerEvent.from_dict(json.loads(line)))
        return tuple(events)
