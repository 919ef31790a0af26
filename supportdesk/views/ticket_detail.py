"""
Ticket detail view: header, message thread and status history of one ticket.

Switching to another ticket tears down the previous thread and history
models before the new ones subscribe, so at most one channel per model is
open at any time.
"""

import asyncio
import logging
from typing import Optional

from supportdesk.models.ticket import Ticket
from supportdesk.sync.audit_trail import AuditTrailReadModel
from supportdesk.sync.messages import MessageThreadReadModel

logger = logging.getLogger(__name__)


class TicketDetail:
    def __init__(self, session, newest_first_history: bool = True):
        self.session = session
        self.newest_first_history = newest_first_history
        self.ticket: Optional[Ticket] = None
        self.thread: Optional[MessageThreadReadModel] = None
        self.history: Optional[AuditTrailReadModel] = None
        self._opens = 0

    @property
    def is_open(self) -> bool:
        return self.ticket is not None

    @property
    def loading(self) -> bool:
        return any(m is not None and m.loading for m in (self.thread, self.history))

    async def open(self, ticket: Ticket) -> None:
        if self.ticket is not None and self.ticket.id == ticket.id and self.thread is not None:
            self.ticket = ticket
            return

        self._opens += 1
        opened = self._opens
        await self._release_models()
        if opened != self._opens:
            # A later open() or close() took over while the old models shut down
            return

        logger.debug(f"Opening ticket {ticket.id}")
        thread = MessageThreadReadModel(self.session, ticket.id)
        history = AuditTrailReadModel(
            self.session, ticket.id, newest_first=self.newest_first_history
        )
        self.ticket, self.thread, self.history = ticket, thread, history
        await asyncio.gather(thread.activate(), history.activate())

        if opened != self._opens:
            logger.debug(f"Ticket {ticket.id} was switched away while opening")
            for model in (thread, history):
                await model.deactivate()

    async def close(self) -> None:
        self._opens += 1
        await self._release_models()

    async def _release_models(self) -> None:
        thread, history = self.thread, self.history
        self.ticket = None
        self.thread = None
        self.history = None
        for model in (thread, history):
            if model is not None:
                await model.deactivate()

    def refresh_ticket(self, ticket: Ticket) -> bool:
        """Follow a live update of the open ticket's row."""
        if self.ticket is None or ticket.id != self.ticket.id:
            return False
        self.ticket = ticket
        return True

    async def send_message(self, body: str = None) -> bool:
        if self.thread is None:
            self.session.notifier.error("Unable to send message.")
            return False
        return await self.thread.send(body)
