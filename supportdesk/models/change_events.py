"""
Typed row-change events.

Realtime delivers postgres_changes payloads as loose dictionaries. They are
validated here, at the transport boundary, and turned into one event class
per table before any read-model sees them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from supportdesk.exceptions import ChangeEventError
from supportdesk.models.audit_log import AuditLogEntry
from supportdesk.models.base_model import BaseModel
from supportdesk.models.ticket import Ticket
from supportdesk.models.ticket_message import TicketMessage


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    kind: ChangeKind
    new: Optional[BaseModel] = None
    old: Optional[BaseModel] = None

    @property
    def record(self) -> BaseModel:
        """The row as it is now, or as it was for a delete."""
        return self.new if self.new is not None else self.old

    @property
    def record_id(self) -> Any:
        return getattr(self.record, "id", None)


@dataclass(frozen=True)
class TicketChanged(ChangeEvent):
    pass


@dataclass(frozen=True)
class MessageChanged(ChangeEvent):
    pass


@dataclass(frozen=True)
class AuditLogChanged(ChangeEvent):
    pass


TABLE_MODELS = {
    "tickets": (Ticket, TicketChanged),
    "ticket_messages": (TicketMessage, MessageChanged),
    "audit_logs": (AuditLogEntry, AuditLogChanged),
}


def _unwrap(payload: Dict[str, Any]):
    """Return (kind, new_row, old_row) from either realtime payload shape."""
    body = payload.get("data") if isinstance(payload.get("data"), dict) else payload

    kind = body.get("type") or body.get("eventType")
    new_row = body.get("record") if "record" in body else body.get("new")
    old_row = body.get("old_record") if "old_record" in body else body.get("old")
    return kind, new_row or None, old_row or None


def parse_change_payload(table: str, payload: Any) -> ChangeEvent:
    """Validate a raw realtime payload for `table` and build its typed event."""
    if table not in TABLE_MODELS:
        raise ChangeEventError(f"No row model for table {table!r}")
    if not isinstance(payload, dict):
        raise ChangeEventError(f"Payload for {table} is not an object: {type(payload).__name__}")

    model_cls, event_cls = TABLE_MODELS[table]
    raw_kind, new_row, old_row = _unwrap(payload)

    try:
        kind = ChangeKind(str(raw_kind).upper())
    except ValueError:
        raise ChangeEventError(f"Unknown change kind {raw_kind!r} for {table}")

    if kind in (ChangeKind.INSERT, ChangeKind.UPDATE):
        if not isinstance(new_row, dict) or new_row.get("id") is None:
            raise ChangeEventError(f"{kind.value} on {table} carries no row id")
    elif not isinstance(old_row, dict) or old_row.get("id") is None:
        raise ChangeEventError(f"DELETE on {table} carries no row id")

    try:
        new = model_cls.from_dict(new_row) if isinstance(new_row, dict) else None
        old = model_cls.from_dict(old_row) if isinstance(old_row, dict) else None
    except ValueError as e:
        raise ChangeEventError(f"Malformed {table} row: {e}")

    return event_cls(table=table, kind=kind, new=new, old=old)
