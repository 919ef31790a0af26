"""
Ticket read-model.

Mirrors the tickets table for one audience: the tickets a customer owns, or
every ticket for administrators.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from supportdesk.database.gateway import ALL_EVENTS, eq
from supportdesk.exceptions import GatewayError
from supportdesk.models.change_events import ChangeEvent, ChangeKind
from supportdesk.models.ticket import Ticket
from supportdesk.sync.archive import ArchivePartition, partition_tickets
from supportdesk.sync.base import ReadModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Audience:
    """Which tickets a read-model may hold. user_id None means everyone."""
    user_id: Optional[str] = None

    @classmethod
    def owned_by(cls, user_id: str) -> "Audience":
        if not user_id:
            raise ValueError("An owned audience needs a user id")
        return cls(user_id=user_id)

    @classmethod
    def everyone(cls) -> "Audience":
        return cls()

    @property
    def is_everyone(self) -> bool:
        return self.user_id is None

    def includes(self, ticket: Ticket) -> bool:
        return self.is_everyone or ticket.user_id == self.user_id

    def filters(self) -> list:
        return [] if self.is_everyone else [eq("user_id", self.user_id)]


class TicketReadModel(ReadModel):
    table = "tickets"
    events = ALL_EVENTS
    fetch_failed_message = "Failed to load tickets."

    def __init__(self, session, audience: Audience):
        super().__init__(session)
        self.audience = audience
        self._tickets: List[Ticket] = []
        self._status_listeners: List[Callable[[Ticket, Optional[str]], None]] = []

    @property
    def tickets(self) -> List[Ticket]:
        """Tickets in creation order, oldest first."""
        return list(self._tickets)

    @property
    def newest_first(self) -> List[Ticket]:
        return list(reversed(self._tickets))

    def get(self, ticket_id) -> Optional[Ticket]:
        index = self._index(ticket_id)
        return self._tickets[index] if index is not None else None

    def partition(self) -> ArchivePartition:
        return partition_tickets(self._tickets)

    def on_status_change(self, callback: Callable[[Ticket, Optional[str]], None]) -> None:
        """Call `callback(ticket, previous_status)` whenever a ticket's status changes."""
        self._status_listeners.append(callback)

    def _index(self, ticket_id) -> Optional[int]:
        for i, ticket in enumerate(self._tickets):
            if ticket.id == ticket_id:
                return i
        return None

    def _status_changed(self, ticket: Ticket, previous: Optional[str]) -> None:
        logger.info(f"Ticket {ticket.id} status {previous} -> {ticket.status}")
        for callback in self._status_listeners[:]:
            try:
                callback(ticket, previous)
            except Exception as e:
                logger.error(f"Error in status change listener: {e}", exc_info=True)

    # =========================================================================
    # Read-model hooks
    # =========================================================================

    def _row_filter(self):
        filters = self.audience.filters()
        return filters[0] if filters else None

    async def _fetch(self):
        return await self.gateway.select(
            self.table, self.audience.filters(), order_by="created_at"
        )

    def _reset(self) -> None:
        self._tickets = []

    def _load(self, rows) -> None:
        tickets = [Ticket.from_dict(row) for row in rows]
        self._tickets = [t for t in tickets if self.audience.includes(t)]
        logger.debug(f"Loaded {len(self._tickets)} tickets")

    def _apply(self, event: ChangeEvent) -> bool:
        if event.kind == ChangeKind.DELETE:
            index = self._index(event.record_id)
            if index is None:
                return False
            del self._tickets[index]
            return True

        ticket = event.new
        index = self._index(ticket.id)

        if not self.audience.includes(ticket):
            if index is None:
                logger.debug(f"Ignoring ticket {ticket.id} outside the audience")
                return False
            # Moved out of the audience
            del self._tickets[index]
            return True

        if index is None:
            self._tickets.append(ticket)
            return True

        existing = self._tickets[index]
        if existing == ticket:
            # Echo of a change already applied locally
            return False

        self._tickets[index] = ticket
        if existing.status != ticket.status:
            self._status_changed(ticket, existing.status)
        return True

    # =========================================================================
    # Writes
    # =========================================================================

    async def change_status(self, ticket_id, new_status: str) -> bool:
        """
        Update a ticket's status.

        Local state only changes after the update succeeds; the realtime echo
        of the same change then finds nothing left to do.
        """
        if new_status not in Ticket.STATUSES:
            raise ValueError(f"Unknown ticket status: {new_status}")

        try:
            await self.gateway.update(self.table, {"status": new_status}, [eq("id", ticket_id)])
        except GatewayError as e:
            logger.error(f"Error updating status of ticket {ticket_id}: {e}")
            self.notifier.error("Failed to update ticket status.")
            return False

        index = self._index(ticket_id)
        if index is not None:
            existing = self._tickets[index]
            if existing.status != new_status:
                updated = existing.copy_with(status=new_status)
                self._tickets[index] = updated
                self._status_changed(updated, existing.status)
                self._notify_listeners()

        self.notifier.success("Ticket status updated.")
        return True
