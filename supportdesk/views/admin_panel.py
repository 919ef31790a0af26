"""
Admin panel: every ticket split into open and archived tables, the search
box, status changes, ticket statistics and the ticket detail view.
"""

import asyncio
import logging
from typing import List, Optional

from supportdesk.models.ticket import Ticket
from supportdesk.sync.archive import ArchivePartition, matches_search
from supportdesk.sync.metrics import ClientMetricsView, ServerMetricsView
from supportdesk.sync.tickets import Audience, TicketReadModel
from supportdesk.views.ticket_detail import TicketDetail

logger = logging.getLogger(__name__)


class AdminPanel:
    def __init__(self, session):
        if not session.is_admin:
            raise PermissionError("The admin panel requires an administrator session")
        self.session = session
        self.tickets = TicketReadModel(session, Audience.everyone())
        self.metrics = ServerMetricsView(session)
        # Figures derived from the loaded tickets, without extra queries
        self.client_metrics = ClientMetricsView(self.tickets)
        self.detail = TicketDetail(session, newest_first_history=True)
        self.search = ""
        self._partition: Optional[ArchivePartition] = None
        self.tickets.add_listener(self._on_tickets_changed)
        self.tickets.on_status_change(self._on_status_change)

    @property
    def loading(self) -> bool:
        return self.tickets.loading

    @property
    def selected_ticket(self) -> Optional[Ticket]:
        return self.detail.ticket

    @property
    def partition(self) -> ArchivePartition:
        if self._partition is None:
            self._partition = self.tickets.partition()
        return self._partition

    @property
    def open_tickets(self) -> List[Ticket]:
        return [t for t in self.partition.open if matches_search(t, self.search)]

    @property
    def archived_tickets(self) -> List[Ticket]:
        return [t for t in self.partition.resolved if matches_search(t, self.search)]

    def set_search(self, query: str) -> None:
        self.search = query or ""

    async def activate(self) -> None:
        await asyncio.gather(self.tickets.activate(), self.metrics.activate())

    async def deactivate(self) -> None:
        await self.detail.close()
        await self.tickets.deactivate()
        await self.metrics.deactivate()

    async def change_status(self, ticket: Ticket, new_status: str) -> bool:
        return await self.tickets.change_status(ticket.id, new_status)

    async def select(self, ticket: Ticket) -> None:
        await self.detail.open(ticket)

    async def close_detail(self) -> None:
        await self.detail.close()

    def _on_tickets_changed(self, model: TicketReadModel) -> None:
        self._partition = None
        if self.detail.ticket is not None:
            current = model.get(self.detail.ticket.id)
            if current is not None:
                self.detail.refresh_ticket(current)

    def _on_status_change(self, ticket: Ticket, previous: Optional[str]) -> None:
        self._partition = None
        if ticket.is_resolved:
            logger.info(f"Ticket {ticket.id} archived (was {previous})")
        elif previous == Ticket.STATUS_RESOLVED:
            logger.info(f"Ticket {ticket.id} reopened as {ticket.status}")
