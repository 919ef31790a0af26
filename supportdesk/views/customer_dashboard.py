"""
Customer dashboard: the signed-in customer's tickets, the ticket form and
the ticket detail view.
"""

import logging
from typing import Any, Dict, List, Optional

from supportdesk.exceptions import GatewayError, ValidationError
from supportdesk.models.ticket import Ticket
from supportdesk.sync.tickets import Audience, TicketReadModel
from supportdesk.views.ticket_detail import TicketDetail

logger = logging.getLogger(__name__)


def validate_ticket_form(category: str, description: str, priority: Optional[str] = None) -> Dict[str, Any]:
    """Check the ticket form and return the columns to insert."""
    description = (description or "").strip()
    if not category or not description:
        raise ValidationError("Please fill in all fields.")
    if category not in Ticket.CATEGORIES:
        raise ValidationError("Please choose a valid category.")
    if len(description) > Ticket.DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be at most {Ticket.DESCRIPTION_MAX_LENGTH} characters."
        )

    record = {"category": category, "description": description}
    if priority:
        if priority not in Ticket.PRIORITIES:
            raise ValidationError("Please choose a valid priority.")
        record["priority"] = priority
    return record


class CustomerDashboard:
    def __init__(self, session):
        if not session.is_signed_in:
            raise PermissionError("The dashboard requires a signed-in user")
        self.session = session
        self.tickets = TicketReadModel(session, Audience.owned_by(session.user_id))
        self.detail = TicketDetail(session)
        self.refresh_key = 0
        self.submitting = False
        self.tickets.add_listener(self._on_tickets_changed)

    @property
    def loading(self) -> bool:
        return self.tickets.loading

    @property
    def ticket_list(self) -> List[Ticket]:
        """Newest tickets first, as the list shows them."""
        return self.tickets.newest_first

    async def activate(self) -> None:
        await self.tickets.activate()

    async def deactivate(self) -> None:
        await self.detail.close()
        await self.tickets.deactivate()

    async def submit_ticket(
        self, category: str, description: str, priority: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Create a ticket; returns the inserted row, or None when nothing was created."""
        try:
            record = validate_ticket_form(category, description, priority)
        except ValidationError as e:
            self.session.notifier.error(str(e))
            return None
        if not self.session.is_signed_in or self.submitting:
            return None

        record["user_id"] = self.session.user_id
        self.submitting = True
        try:
            row = await self.session.gateway.insert("tickets", record)
        except GatewayError as e:
            logger.error(f"Error creating ticket: {e}")
            self.session.notifier.error("Failed to create ticket.")
            return None
        finally:
            self.submitting = False

        self.session.notifier.success("Ticket created successfully.")
        self.refresh_key += 1
        await self.tickets.refresh()
        return row

    async def open_ticket(self, ticket: Ticket) -> None:
        await self.detail.open(ticket)

    async def close_ticket(self) -> None:
        await self.detail.close()

    def _on_tickets_changed(self, model: TicketReadModel) -> None:
        if self.detail.ticket is None:
            return
        current = model.get(self.detail.ticket.id)
        if current is not None:
            self.detail.refresh_ticket(current)
