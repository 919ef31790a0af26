"""
Message thread read-model for one ticket.

Messages are bulk-loaded oldest first and then extended by realtime inserts,
which are assumed to arrive in creation order and are appended as they come.
A sent message is not appended locally; it shows up when its insert event
comes back over the channel.
"""

import logging
from typing import List

from supportdesk.database.gateway import eq
from supportdesk.exceptions import GatewayError
from supportdesk.models.change_events import ChangeEvent, ChangeKind
from supportdesk.models.ticket_message import TicketMessage
from supportdesk.sync.base import ReadModel

logger = logging.getLogger(__name__)


class MessageThreadReadModel(ReadModel):
    table = "ticket_messages"
    events = (ChangeKind.INSERT,)
    fetch_failed_message = "Failed to load messages."

    def __init__(self, session, ticket_id):
        super().__init__(session)
        self.ticket_id = ticket_id
        self.draft = ""
        self.sending = False
        self._messages: List[TicketMessage] = []

    @property
    def messages(self) -> List[TicketMessage]:
        return list(self._messages)

    def _row_filter(self):
        return eq("ticket_id", self.ticket_id)

    async def _fetch(self):
        return await self.gateway.select(
            self.table, [eq("ticket_id", self.ticket_id)], order_by="created_at"
        )

    def _reset(self) -> None:
        self._messages = []

    def _load(self, rows) -> None:
        self._messages = [TicketMessage.from_dict(row) for row in rows]
        logger.debug(f"Loaded {len(self._messages)} messages for ticket {self.ticket_id}")

    def _apply(self, event: ChangeEvent) -> bool:
        if event.kind != ChangeKind.INSERT:
            return False
        message = event.new
        if message.ticket_id != self.ticket_id:
            return False
        if any(m.id == message.id for m in self._messages):
            # Already part of the bulk result
            return False
        self._messages.append(message)
        return True

    async def send(self, body: str = None) -> bool:
        """
        Send `body` (or the current draft) to the thread.

        Returns True when the insert was accepted. Blank text is ignored
        without a request; on failure the text is kept as the draft.
        """
        text = self.draft if body is None else body
        if not text or not text.strip():
            return False
        if self.sending:
            return False
        if not self.ticket_id or not self.session.is_signed_in:
            self.notifier.error("Unable to send message.")
            return False

        self.sending = True
        try:
            await self.gateway.insert(self.table, {
                "ticket_id": self.ticket_id,
                "sender_id": self.session.user_id,
                "body": text.strip(),
            })
        except GatewayError as e:
            logger.error(f"Error sending message on ticket {self.ticket_id}: {e}")
            self.notifier.error("Failed to send message.")
            self.draft = text
            return False
        finally:
            self.sending = False

        self.draft = ""
        return True
