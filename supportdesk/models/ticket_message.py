from typing import Optional
from datetime import datetime

from supportdesk.models.base_model import BaseModel


class TicketMessage(BaseModel):
    """
    A message in a ticket's conversation thread.
    Maps to the ticket_messages table. Messages are never edited or deleted.
    """

    FIELDS = ("id", "ticket_id", "sender_id", "body", "created_at")

    def __init__(self):
        self.id: str = None
        self.ticket_id: str = None
        self.sender_id: str = None
        self.body: str = None
        self.created_at: Optional[datetime] = None

    def is_from(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.sender_id == user_id
