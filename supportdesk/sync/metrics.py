"""
Aggregate ticket metrics: open total, resolved today, open by category.

Two ways to get them:
- ServerMetricsView asks the database for counts and recomputes on every
  ticket change or audit insert. "Resolved today" counts audit entries that
  moved a ticket to Resolved since local midnight. This is the canonical
  definition.
- ClientMetricsView derives the figures from an already loaded
  TicketReadModel. It has no resolution time, so "resolved today" counts
  Resolved tickets *created* today, a looser approximation.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

import pytz

from supportdesk.database.gateway import ALL_EVENTS, eq, gte, neq
from supportdesk.models.change_events import ChangeEvent, ChangeKind
from supportdesk.models.ticket import Ticket
from supportdesk.sync.base import ReadModel

logger = logging.getLogger(__name__)

NO_OPEN_TICKETS = "No open tickets"


@dataclass(frozen=True)
class TicketMetrics:
    open_total: int = 0
    resolved_today: int = 0
    by_category: Dict[str, int] = field(default_factory=dict)

    @property
    def has_open_tickets(self) -> bool:
        return bool(self.by_category)

    def category_rows(self) -> List[Tuple[str, int]]:
        """Category breakdown, largest first."""
        return sorted(self.by_category.items(), key=lambda item: (-item[1], item[0]))

    def category_summary(self) -> str:
        if not self.has_open_tickets:
            return NO_OPEN_TICKETS
        return ", ".join(f"{name}: {count}" for name, count in self.category_rows())


def start_of_today(tz=None, now: Optional[datetime] = None) -> datetime:
    """Local midnight of the current day in `tz`, as a UTC datetime."""
    tz = tz or pytz.utc
    now = now or datetime.now(pytz.utc)
    if now.tzinfo is None:
        now = pytz.utc.localize(now)

    local_now = now.astimezone(tz)
    midnight = tz.localize(datetime(local_now.year, local_now.month, local_now.day))
    return midnight.astimezone(pytz.utc)


def count_by_category(rows: Iterable) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for row in rows:
        category = row.get("category") if isinstance(row, dict) else row.category
        counts[category] = counts.get(category, 0) + 1
    return counts


class ServerMetricsView(ReadModel):
    """Metrics recomputed from aggregate queries on every relevant change."""

    fetch_failed_message = "Failed to load ticket statistics."

    def __init__(self, session):
        super().__init__(session)
        self.metrics: Optional[TicketMetrics] = None
        self._tasks = set()

    def _subscription_specs(self):
        return [
            ("tickets", ALL_EVENTS, None),
            ("audit_logs", (ChangeKind.INSERT,), None),
        ]

    async def _fetch(self) -> TicketMetrics:
        since = start_of_today(self.session.tzinfo).isoformat()
        open_total, resolved_today, open_rows = await asyncio.gather(
            self.gateway.count("tickets", [neq("status", Ticket.STATUS_RESOLVED)]),
            self.gateway.count("audit_logs", [
                eq("new_status", Ticket.STATUS_RESOLVED),
                gte("created_at", since),
            ]),
            self.gateway.select(
                "tickets", [neq("status", Ticket.STATUS_RESOLVED)], columns="category"
            ),
        )
        return TicketMetrics(
            open_total=open_total,
            resolved_today=resolved_today,
            by_category=count_by_category(open_rows),
        )

    def _reset(self) -> None:
        self.metrics = None

    def _load(self, result: TicketMetrics) -> None:
        self.metrics = result
        logger.debug(f"Ticket metrics: {result}")

    def _apply(self, event: ChangeEvent) -> bool:
        # Any change may move any figure: recompute everything
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return False

    async def deactivate(self) -> None:
        await super().deactivate()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def wait_idle(self) -> None:
        """Wait for recomputes triggered by change events to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class ClientMetricsView:
    """
    Metrics derived from a loaded TicketReadModel.

    AdminPanel exposes one as `client_metrics` next to the server view.
    """

    def __init__(self, tickets_model, tz=None):
        self.tickets_model = tickets_model
        self.tz = tz or tickets_model.session.tzinfo

    @property
    def loading(self) -> bool:
        return self.tickets_model.loading

    def compute(self, now: Optional[datetime] = None) -> TicketMetrics:
        tickets = self.tickets_model.tickets
        open_tickets = [t for t in tickets if not t.is_resolved]

        day_start = start_of_today(self.tz, now)
        day_end = day_start + timedelta(days=1)
        resolved_today = [
            t for t in tickets
            if t.is_resolved and t.created_at is not None and day_start <= t.created_at < day_end
        ]

        return TicketMetrics(
            open_total=len(open_tickets),
            resolved_today=len(resolved_today),
            by_category=count_by_category(open_tickets),
        )

    @property
    def metrics(self) -> Optional[TicketMetrics]:
        if self.loading:
            return None
        return self.compute()
