"""
Audit trail read-model for one ticket.

Entries are written by the database whenever a ticket's status changes; this
model only reads them. The same entry can reach it twice (bulk load racing a
live insert, or two channels), so entries are de-duplicated by id.
"""

import logging
from typing import List

from supportdesk.database.gateway import eq
from supportdesk.models.audit_log import AuditLogEntry
from supportdesk.models.change_events import ChangeEvent, ChangeKind
from supportdesk.sync.base import ReadModel

logger = logging.getLogger(__name__)


class AuditTrailReadModel(ReadModel):
    table = "audit_logs"
    events = (ChangeKind.INSERT,)
    fetch_failed_message = "Failed to load status history."

    def __init__(self, session, ticket_id, newest_first: bool = False):
        super().__init__(session)
        self.ticket_id = ticket_id
        self.newest_first = newest_first
        self._entries: List[AuditLogEntry] = []
        self._ids = set()

    @property
    def entries(self) -> List[AuditLogEntry]:
        return list(self._entries)

    def _row_filter(self):
        return eq("ticket_id", self.ticket_id)

    async def _fetch(self):
        return await self.gateway.select(
            self.table,
            [eq("ticket_id", self.ticket_id)],
            order_by="created_at",
            descending=self.newest_first,
        )

    def _reset(self) -> None:
        self._entries = []
        self._ids = set()

    def _load(self, rows) -> None:
        self._reset()
        for row in rows:
            entry = AuditLogEntry.from_dict(row)
            if entry.id in self._ids:
                continue
            self._ids.add(entry.id)
            self._entries.append(entry)

    def _apply(self, event: ChangeEvent) -> bool:
        if event.kind != ChangeKind.INSERT:
            return False
        entry = event.new
        if entry.ticket_id != self.ticket_id:
            return False
        if entry.id in self._ids:
            logger.debug(f"Dropping duplicate audit entry {entry.id}")
            return False

        self._ids.add(entry.id)
        if self.newest_first:
            self._entries.insert(0, entry)
        else:
            self._entries.append(entry)
        return True
