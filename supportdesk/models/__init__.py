"""
Models package for the support desk.
"""

from supportdesk.models.base_model import BaseModel, parse_timestamp
from supportdesk.models.ticket import Ticket, PRIORITY_ORDER, UNKNOWN_PRIORITY_RANK
from supportdesk.models.ticket_message import TicketMessage
from supportdesk.models.audit_log import AuditLogEntry
from supportdesk.models.change_events import (
    ChangeKind,
    ChangeEvent,
    TicketChanged,
    MessageChanged,
    AuditLogChanged,
    parse_change_payload,
)

__all__ = [
    # Base
    'BaseModel',
    'parse_timestamp',

    # Rows
    'Ticket',
    'PRIORITY_ORDER',
    'UNKNOWN_PRIORITY_RANK',
    'TicketMessage',
    'AuditLogEntry',

    # Realtime
    'ChangeKind',
    'ChangeEvent',
    'TicketChanged',
    'MessageChanged',
    'AuditLogChanged',
    'parse_change_payload',
]
