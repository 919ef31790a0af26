"""
Remote data gateway over the async Supabase client.

The read-models only ever talk to the backend through this class:
- select / count: point-in-time PostgREST reads
- insert / update: row writes
- subscribe / unsubscribe: Realtime postgres_changes channels

Every failure is raised as GatewayError; raw realtime payloads are
validated into typed change events before the callback sees them.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from supportdesk.exceptions import ChangeEventError, GatewayError
from supportdesk.models.change_events import ChangeEvent, ChangeKind, parse_change_payload

logger = logging.getLogger(__name__)

FILTER_OPS = ("eq", "neq", "gt", "gte", "lt", "lte")
ALL_EVENTS = (ChangeKind.INSERT, ChangeKind.UPDATE, ChangeKind.DELETE)


@dataclass(frozen=True)
class Filter:
    """A column predicate, usable both in queries and as a realtime row filter."""
    column: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def to_realtime(self) -> str:
        return f"{self.column}={self.op}.{self.value}"

    def matches(self, row: Dict[str, Any]) -> bool:
        """Evaluate the predicate against a row dict."""
        actual = row.get(self.column)
        if self.op == "eq":
            return actual == self.value
        if self.op == "neq":
            return actual != self.value
        if actual is None:
            return False
        if self.op == "gt":
            return actual > self.value
        if self.op == "gte":
            return actual >= self.value
        if self.op == "lt":
            return actual < self.value
        return actual <= self.value


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


@dataclass
class Subscription:
    """Handle for one open realtime channel."""
    id: int
    table: str
    events: tuple
    row_filter: Optional[Filter] = None
    channel: Any = None
    active: bool = True
    callback: Optional[Callable[[ChangeEvent], None]] = field(default=None, repr=False)


class SupabaseGateway:
    def __init__(self, client, schema: str = "public"):
        self.client = client
        self.schema = schema
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    @property
    def active_subscriptions(self) -> int:
        return len(self._subscriptions)

    # =========================================================================
    # Queries and writes
    # =========================================================================

    def _apply_filters(self, query, filters: Iterable[Filter]):
        for f in filters:
            query = getattr(query, f.op)(f.column, f.value)
        return query

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        """Fetch the rows of `table` matching every filter."""
        try:
            query = self._apply_filters(self.client.table(table).select(columns), filters)
            if order_by:
                query = query.order(order_by, desc=descending)
            result = await query.execute()
        except Exception as e:
            raise GatewayError("select", table, e) from e
        return result.data or []

    async def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        """Count the rows of `table` matching every filter, without fetching them."""
        try:
            query = self._apply_filters(
                self.client.table(table).select("*", count="exact", head=True), filters
            )
            result = await query.execute()
        except Exception as e:
            raise GatewayError("count", table, e) from e
        return result.count or 0

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = await self.client.table(table).insert(record).execute()
        except Exception as e:
            raise GatewayError("insert", table, e) from e
        return result.data[0] if result.data else {}

    async def update(
        self, table: str, patch: Dict[str, Any], filters: Sequence[Filter]
    ) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Refusing to update without a filter")
        try:
            query = self._apply_filters(self.client.table(table).update(patch), filters)
            result = await query.execute()
        except Exception as e:
            raise GatewayError("update", table, e) from e
        return result.data or []

    # =========================================================================
    # Realtime
    # =========================================================================

    async def subscribe(
        self,
        table: str,
        events: Iterable[ChangeKind],
        callback: Callable[[ChangeEvent], None],
        row_filter: Optional[Filter] = None,
    ) -> Subscription:
        """Open one channel delivering `events` on `table` to `callback`."""
        events = tuple(events)
        sub_id = next(self._ids)
        subscription = Subscription(
            id=sub_id, table=table, events=events, row_filter=row_filter, callback=callback
        )
        topic = f"{table}-changes-{sub_id}"
        if row_filter is not None:
            topic = f"{table}-{row_filter.column}-{row_filter.value}-{sub_id}"

        def handle_payload(payload):
            if not subscription.active:
                return
            try:
                event = parse_change_payload(table, payload)
            except ChangeEventError as e:
                logger.warning(f"Dropping malformed realtime payload on {table}: {e}")
                return
            if event.kind not in subscription.events:
                return
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error handling {event.kind.value} on {table}: {e}", exc_info=True)

        try:
            channel = self.client.channel(topic)
            realtime_filter = row_filter.to_realtime() if row_filter is not None else None
            kinds = ["*"] if set(events) == set(ALL_EVENTS) else [k.value for k in events]
            for kind in kinds:
                channel.on_postgres_changes(
                    kind,
                    callback=handle_payload,
                    table=table,
                    schema=self.schema,
                    filter=realtime_filter,
                )
            await channel.subscribe()
        except Exception as e:
            raise GatewayError("subscribe", table, e) from e

        subscription.channel = channel
        self._subscriptions[sub_id] = subscription
        logger.debug(f"Subscribed to {table} ({topic})")
        return subscription

    async def unsubscribe(self, subscription: Optional[Subscription]) -> None:
        """Close a channel. Unsubscribing twice is a no-op."""
        if subscription is None or not subscription.active:
            return
        subscription.active = False
        self._subscriptions.pop(subscription.id, None)
        try:
            await self.client.remove_channel(subscription.channel)
        except Exception as e:
            raise GatewayError("unsubscribe", subscription.table, e) from e
        logger.debug(f"Unsubscribed from {subscription.table} (subscription {subscription.id})")
