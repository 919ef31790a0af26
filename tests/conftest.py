# -*- coding: utf-8 -*-
"""
Shared test fixtures for the support desk test suite.

FakeGateway is an in-memory stand-in for SupabaseGateway: same methods, rows
kept in dicts, and every write delivered synchronously to the matching
subscriptions as a realtime payload. Like the real database it writes an
audit_logs row whenever a ticket is created or its status changes.
"""

import asyncio
import itertools
from collections import defaultdict
from datetime import timedelta
from typing import Any, Dict, List
from unittest.mock import MagicMock, AsyncMock

import pytest

from supportdesk.database.gateway import Subscription
from supportdesk.exceptions import GatewayError
from supportdesk.models.change_events import parse_change_payload
from supportdesk.notices import Notifier
from supportdesk.session import SessionUser, SupportSession
from supportdesk.sync.metrics import start_of_today


class FakeGateway:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.calls: List[tuple] = []
        self.failures = set()  # {(action, table)}
        self.actor = None
        self.subscriptions: List[Subscription] = []
        self._holds = defaultdict(list)
        self._ids = itertools.count(1)
        self._sub_ids = itertools.count(1)
        self._clock = start_of_today() + timedelta(seconds=1)

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    @property
    def active_subscriptions(self) -> int:
        return len(self.subscriptions)

    def subscriptions_for(self, table: str) -> List[Subscription]:
        return [s for s in self.subscriptions if s.table == table]

    def fail(self, action: str, table: str) -> None:
        self.failures.add((action, table))

    def recover(self, action: str, table: str) -> None:
        self.failures.discard((action, table))

    def hold(self, table: str, action: str = "select") -> asyncio.Event:
        """Block the next `action` (select or subscribe) on `table` until the returned event is set."""
        gate = asyncio.Event()
        self._holds[(action, table)].append(gate)
        return gate

    async def _wait_for_hold(self, action: str, table: str) -> None:
        if self._holds[(action, table)]:
            await self._holds[(action, table)].pop(0).wait()

    def count_calls(self, action: str, table: str) -> int:
        return sum(1 for call in self.calls if call == (action, table))

    def _next_timestamp(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def seed(self, table: str, **row) -> Dict[str, Any]:
        """Insert a row without notifying anyone."""
        row.setdefault("id", f"{table}-{next(self._ids)}")
        row.setdefault("created_at", self._next_timestamp())
        if table == "tickets":
            row.setdefault("status", "Pending")
            row.setdefault("priority", "Medium")
            row.setdefault("category", "Technical")
            row.setdefault("description", "Something is broken")
        self.tables[table].append(row)
        return dict(row)

    def emit(self, table: str, kind: str, new=None, old=None) -> None:
        """Deliver a raw realtime payload to the matching subscriptions."""
        payload = {"data": {"type": kind, "table": table, "record": new or {}, "old_record": old or {}}}
        event = parse_change_payload(table, payload)
        for sub in self.subscriptions[:]:
            if sub.table != table or event.kind not in sub.events or not sub.active:
                continue
            row = new if new else old
            if sub.row_filter is not None and not sub.row_filter.matches(row):
                continue
            sub.callback(event)

    async def delete(self, table: str, row_id) -> None:
        rows = self.tables[table]
        for row in rows[:]:
            if row["id"] == row_id:
                rows.remove(row)
                self.emit(table, "DELETE", old={"id": row_id})

    def _check(self, action: str, table: str) -> None:
        self.calls.append((action, table))
        if (action, table) in self.failures:
            raise GatewayError(action, table, RuntimeError("simulated failure"))

    # -------------------------------------------------------------------------
    # Gateway interface
    # -------------------------------------------------------------------------

    async def select(self, table, filters=(), order_by=None, descending=False, columns="*"):
        self._check("select", table)
        await self._wait_for_hold("select", table)
        rows = [dict(r) for r in self.tables[table] if all(f.matches(r) for f in filters)]
        if order_by:
            rows.sort(key=lambda r: r[order_by], reverse=descending)
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return rows

    async def count(self, table, filters=()):
        self._check("count", table)
        return sum(1 for r in self.tables[table] if all(f.matches(r) for f in filters))

    async def insert(self, table, record):
        self._check("insert", table)
        row = self.seed(table, **record)
        self.emit(table, "INSERT", new=row)
        if table == "tickets":
            await self.insert("audit_logs", {
                "ticket_id": row["id"],
                "old_status": None,
                "new_status": row["status"],
                "changed_by": row.get("user_id"),
            })
        return row

    async def update(self, table, patch, filters):
        self._check("update", table)
        updated = []
        for row in self.tables[table]:
            if not all(f.matches(row) for f in filters):
                continue
            old = dict(row)
            row.update(patch)
            updated.append(dict(row))
            self.emit(table, "UPDATE", new=dict(row), old=old)
            if table == "tickets" and old.get("status") != row.get("status"):
                await self.insert("audit_logs", {
                    "ticket_id": row["id"],
                    "old_status": old.get("status"),
                    "new_status": row["status"],
                    "changed_by": self.actor,
                })
        return updated

    async def subscribe(self, table, events, callback, row_filter=None):
        self._check("subscribe", table)
        await self._wait_for_hold("subscribe", table)
        sub = Subscription(
            id=next(self._sub_ids), table=table, events=tuple(events),
            row_filter=row_filter, callback=callback,
        )
        self.subscriptions.append(sub)
        return sub

    async def unsubscribe(self, subscription):
        if subscription is None or not subscription.active:
            return
        subscription.active = False
        self.subscriptions.remove(subscription)


# =============================================================================
# GATEWAY AND SESSIONS
# =============================================================================

@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def customer_session(gateway):
    return SupportSession(
        gateway, user=SessionUser(id="customer-1", email="ana@example.com"), notifier=Notifier()
    )


@pytest.fixture
def admin_session(gateway):
    gateway.actor = "admin-1"
    return SupportSession(
        gateway, user=SessionUser(id="admin-1", email="ops@example.com", role="admin"), notifier=Notifier()
    )


# =============================================================================
# SUPABASE CLIENT MOCK
# =============================================================================

@pytest.fixture
def mock_supabase():
    """Create a mock async Supabase client with chained query support."""
    mock = MagicMock()
    tables = {}

    def create_table_mock(table_name):
        if table_name in tables:
            return tables[table_name]
        table = MagicMock()
        # Support full chaining: .select().eq().neq().gte().order()...
        for method in [
            'select', 'insert', 'update', 'eq', 'neq', 'lt', 'gt', 'gte', 'lte', 'order',
        ]:
            getattr(table, method).return_value = table
        table.execute = AsyncMock(return_value=MagicMock(data=[], count=0))
        tables[table_name] = table
        return table

    mock.table = MagicMock(side_effect=create_table_mock)

    channel = MagicMock()
    channel.on_postgres_changes.return_value = channel
    channel.subscribe = AsyncMock(return_value=channel)
    mock.channel.return_value = channel
    mock.remove_channel = AsyncMock()
    return mock
