"""Change notifications emitted by the ledger."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Mapping

INVESTOR_ADDED = "investor_added"
INVESTOR_REMOVED = "investor_removed"
INVESTOR_MODIFIED = "investor_modified"
SHARE_CLASS_ADDED = "share_class_added"
SHARE_CLASS_TERMS_MODIFIED = "share_class_terms_modified"
SHARE_COUNT_MODIFIED = "share_count_modified"
NAV_UPDATED = "nav_updated"
FEE_STATE_UPDATED = "fee_state_updated"
NAV_CALCULATED = "nav_calculated"
ORCHESTRATOR_CHANGED = "orchestrator_changed"


@dataclass(frozen=True)
class LedgerEvent:
    kind: str
    subject: str
    before: Mapping[str, Any]
    after: Mapping[str, Any]
    timestamp: datetime
    note: str = ""

    def changed_fields(self) -> list[str]:
        keys = set(self.before) | set(self.after)
        return sorted(k for k in keys if self.before.get(k) != self.after.get(k))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "subject": self.subject,
            "before": dict(self.before),
            "after": dict(self.after),
            "timestamp": self.timestamp.isoformat(),
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LedgerEvent":
        return cls(
            kind=str(data["kind"]),
            subject=str(data["subject"]),
            before=dict(data.get("before") or {}),
            after=dict(data.get("after") or {}),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            note=str(data.get("note") or ""),
        )


EventListener = Callable[[LedgerEvent], None]


def snapshot(value: object) -> dict[str, Any]:
    """Flatten a dataclass into JSON-friendly primitives."""
    if value is None:
        return {}
    if is_dataclass(value):
        raw = asdict(value)
    else:
        raw = dict(value)  # type: ignore[call-overload]
    return {key: _plain(item) for key, item in raw.items()}


def _plain(value: object) -> object:
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass
class AuditTrail:
    """In-memory listener keeping every event it receives."""

    events: list[LedgerEvent] = field(default_factory=list)

    def __call__(self, event: LedgerEvent) -> None:
        self.events.append(event)

    def __iter__(self) -> Iterator[LedgerEvent]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)

    def of_kind(self, kind: str) -> list[LedgerEvent]:
        return [event for event in self.events if event.kind == kind]

    def for_subject(self, subject: str) -> Iterable[LedgerEvent]:
        yield from (event for event in self.events if event.subject == subject)
