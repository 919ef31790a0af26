from typing import Optional
from datetime import datetime

from supportdesk.models.base_model import BaseModel


class AuditLogEntry(BaseModel):
    """
    One status transition of a ticket.
    Maps to the audit_logs table, which the database fills in on every
    ticket status update. old_status is None for the creation entry.
    """

    FIELDS = ("id", "ticket_id", "old_status", "new_status", "changed_by", "created_at")

    def __init__(self):
        self.id: str = None
        self.ticket_id: str = None
        self.old_status: Optional[str] = None
        self.new_status: str = None
        self.changed_by: Optional[str] = None
        self.created_at: Optional[datetime] = None

    @property
    def is_creation(self) -> bool:
        return self.old_status is None

    def describe(self) -> str:
        if self.is_creation:
            return f"Ticket created as {self.new_status}"
        return f"Status changed from {self.old_status} to {self.new_status}"
