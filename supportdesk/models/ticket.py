from typing import Optional
from datetime import datetime

from supportdesk.models.base_model import BaseModel


# Display rank of each priority, most urgent first
PRIORITY_ORDER = {"Critical": 0, "High": 1, "Medium": 2, "Low": 3}
UNKNOWN_PRIORITY_RANK = 99


class Ticket(BaseModel):
    """
    Represents a customer support ticket.
    Maps to the tickets table.
    """

    FIELDS = ("id", "user_id", "category", "description", "status", "priority", "created_at")

    # Status values
    STATUS_PENDING = "Pending"
    STATUS_OPEN = "Open"
    STATUS_IN_PROGRESS = "In Progress"
    STATUS_RESOLVED = "Resolved"
    STATUSES = (STATUS_PENDING, STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_RESOLVED)

    # Priority values
    PRIORITY_LOW = "Low"
    PRIORITY_MEDIUM = "Medium"
    PRIORITY_HIGH = "High"
    PRIORITY_CRITICAL = "Critical"
    PRIORITIES = (PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH, PRIORITY_CRITICAL)

    # Category values
    CATEGORIES = (
        "Account Issue",
        "Payment",
        "KYC / Compliance",
        "Technical",
        "General Inquiry",
    )

    DESCRIPTION_MAX_LENGTH = 1000

    def __init__(self):
        self.id: str = None
        self.user_id: str = None
        self.category: str = None
        self.description: str = None
        self.status: str = self.STATUS_PENDING
        self.priority: Optional[str] = None
        self.created_at: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.status == self.STATUS_RESOLVED

    @property
    def has_known_status(self) -> bool:
        return self.status in self.STATUSES

    @property
    def has_known_priority(self) -> bool:
        return self.priority in self.PRIORITIES

    @property
    def priority_rank(self) -> int:
        """Sort rank of the priority: Critical first, unknown last."""
        return PRIORITY_ORDER.get(self.priority, UNKNOWN_PRIORITY_RANK)

    @property
    def status_style(self) -> str:
        """Badge style for the status; unknown values fall back to muted."""
        style_map = {
            "Pending": "warning",
            "Open": "primary",
            "In Progress": "accent",
            "Resolved": "success",
        }
        return style_map.get(self.status, "muted")

    @property
    def priority_style(self) -> str:
        style_map = {
            "Critical": "destructive",
            "High": "orange",
            "Medium": "warning",
            "Low": "success",
        }
        return style_map.get(self.priority, "muted")
