# -*- coding: utf-8 -*-
"""
Ticket read-model tests: bulk load, live changes, audience filtering,
status changes and the activation lifecycle.

Run with: pytest tests/test_ticket_read_model.py -v
"""

import asyncio

import pytest

from supportdesk.database.gateway import eq
from supportdesk.models.change_events import parse_change_payload
from supportdesk.models.ticket import Ticket
from supportdesk.sync.tickets import Audience, TicketReadModel


def _id(row):
    return eq("id", row["id"])


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def admin_model(admin_session):
    return TicketReadModel(admin_session, Audience.everyone())


@pytest.fixture
def customer_model(customer_session):
    return TicketReadModel(customer_session, Audience.owned_by("customer-1"))


# =============================================================================
# AUDIENCE
# =============================================================================

class TestAudience:
    def test_everyone_has_no_filters(self):
        assert Audience.everyone().is_everyone
        assert Audience.everyone().filters() == []

    def test_owned_audience_requires_user(self):
        with pytest.raises(ValueError):
            Audience.owned_by("")

    def test_includes(self):
        audience = Audience.owned_by("customer-1")
        assert audience.includes(Ticket.from_dict({"id": "t", "user_id": "customer-1"}))
        assert not audience.includes(Ticket.from_dict({"id": "t", "user_id": "customer-2"}))


# =============================================================================
# LOADING
# =============================================================================

class TestLoading:
    @pytest.mark.asyncio
    async def test_bulk_load_oldest_first(self, gateway, admin_model):
        first = gateway.seed("tickets", user_id="customer-1")
        second = gateway.seed("tickets", user_id="customer-2")

        await admin_model.activate()

        assert [t.id for t in admin_model.tickets] == [first["id"], second["id"]]
        assert [t.id for t in admin_model.newest_first] == [second["id"], first["id"]]
        assert admin_model.loaded
        assert not admin_model.loading

    @pytest.mark.asyncio
    async def test_customer_only_sees_own_tickets(self, gateway, customer_model):
        mine = gateway.seed("tickets", user_id="customer-1")
        gateway.seed("tickets", user_id="customer-2")

        await customer_model.activate()

        assert [t.id for t in customer_model.tickets] == [mine["id"]]

    @pytest.mark.asyncio
    async def test_loading_until_fetch_completes(self, gateway, admin_model):
        gateway.seed("tickets", user_id="customer-1")
        gate = gateway.hold("tickets")

        task = asyncio.create_task(admin_model.activate())
        await settle()
        assert admin_model.loading
        assert admin_model.tickets == []

        gate.set()
        await task
        assert not admin_model.loading
        assert len(admin_model.tickets) == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_leaves_empty_collection(self, gateway, admin_model, admin_session):
        gateway.seed("tickets", user_id="customer-1")
        gateway.fail("select", "tickets")

        await admin_model.activate()

        assert admin_model.tickets == []
        assert not admin_model.loading
        assert not admin_model.loaded
        assert admin_session.notifier.messages("error") == ["Failed to load tickets."]

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_loaded_tickets(self, gateway, admin_model, admin_session):
        gateway.seed("tickets", user_id="customer-1")
        await admin_model.activate()

        gateway.fail("select", "tickets")
        await admin_model.refresh()

        assert len(admin_model.tickets) == 1
        assert "Failed to load tickets." in admin_session.notifier.messages("error")

    @pytest.mark.asyncio
    async def test_refresh_after_recovery(self, gateway, admin_model):
        gateway.seed("tickets", user_id="customer-1")
        gateway.fail("select", "tickets")
        await admin_model.activate()

        gateway.recover("select", "tickets")
        await admin_model.refresh()

        assert admin_model.loaded
        assert len(admin_model.tickets) == 1


# =============================================================================
# LIVE CHANGES
# =============================================================================

class TestLiveChanges:
    @pytest.mark.asyncio
    async def test_insert_appends(self, gateway, admin_model):
        await admin_model.activate()

        row = await gateway.insert("tickets", {"user_id": "customer-1", "description": "Login loop"})

        assert [t.id for t in admin_model.tickets] == [row["id"]]
        assert admin_model.get(row["id"]).description == "Login loop"

    @pytest.mark.asyncio
    async def test_update_replaces_in_place(self, gateway, admin_model):
        first = gateway.seed("tickets", user_id="customer-1")
        gateway.seed("tickets", user_id="customer-2")
        await admin_model.activate()

        await gateway.update("tickets", {"priority": "Critical"}, [_id(first)])

        assert admin_model.tickets[0].id == first["id"]
        assert admin_model.tickets[0].priority == "Critical"

    @pytest.mark.asyncio
    async def test_delete_removes(self, gateway, admin_model):
        row = gateway.seed("tickets", user_id="customer-1")
        await admin_model.activate()

        await gateway.delete("tickets", row["id"])

        assert admin_model.get(row["id"]) is None
        assert admin_model.tickets == []

    @pytest.mark.asyncio
    async def test_listeners_notified_on_change(self, gateway, admin_model):
        await admin_model.activate()
        calls = []
        admin_model.add_listener(calls.append)

        await gateway.insert("tickets", {"user_id": "customer-1"})

        assert calls == [admin_model]

    @pytest.mark.asyncio
    async def test_identical_echo_is_ignored(self, gateway, admin_model):
        row = gateway.seed("tickets", user_id="customer-1")
        await admin_model.activate()
        calls = []
        admin_model.add_listener(calls.append)

        gateway.emit("tickets", "UPDATE", new=row, old=row)

        assert calls == []
        assert len(admin_model.tickets) == 1

    @pytest.mark.asyncio
    async def test_foreign_ticket_ignored_by_customer_model(self, gateway, customer_model):
        await customer_model.activate()
        subscription = gateway.subscriptions_for("tickets")[0]

        event = parse_change_payload("tickets", {
            "eventType": "INSERT",
            "new": {"id": "t-99", "user_id": "customer-2", "status": "Open"},
        })
        subscription.callback(event)

        assert customer_model.tickets == []

    @pytest.mark.asyncio
    async def test_ticket_moved_out_of_audience_is_removed(self, gateway, customer_model):
        row = gateway.seed("tickets", user_id="customer-1")
        await customer_model.activate()
        subscription = gateway.subscriptions_for("tickets")[0]

        event = parse_change_payload("tickets", {
            "eventType": "UPDATE",
            "new": {**row, "user_id": "customer-2"},
            "old": row,
        })
        subscription.callback(event)

        assert customer_model.tickets == []

    @pytest.mark.asyncio
    async def test_event_during_fetch_is_applied_once(self, gateway, admin_model):
        gateway.seed("tickets", user_id="customer-1")
        gate = gateway.hold("tickets")

        task = asyncio.create_task(admin_model.activate())
        await settle()
        row = await gateway.insert("tickets", {"user_id": "customer-2"})
        gate.set()
        await task

        ids = [t.id for t in admin_model.tickets]
        assert ids.count(row["id"]) == 1
        assert len(ids) == 2

    @pytest.mark.asyncio
    async def test_converges_with_fresh_fetch(self, gateway, admin_model):
        seeded = [gateway.seed("tickets", user_id=f"customer-{i}") for i in range(3)]
        await admin_model.activate()

        await gateway.update("tickets", {"status": "Open"}, [_id(seeded[0])])
        await gateway.insert("tickets", {"user_id": "customer-9", "priority": "High"})
        await gateway.delete("tickets", seeded[1]["id"])
        await gateway.update("tickets", {"status": "Resolved"}, [_id(seeded[2])])

        fresh = TicketReadModel(admin_model.session, Audience.everyone())
        await fresh.activate()
        assert [t.to_dict() for t in admin_model.tickets] == [t.to_dict() for t in fresh.tickets]


# =============================================================================
# STATUS CHANGES
# =============================================================================

class TestChangeStatus:
    @pytest.mark.asyncio
    async def test_success_updates_local_state(self, gateway, admin_model, admin_session):
        row = gateway.seed("tickets", user_id="customer-1", status="Open")
        await admin_model.activate()

        assert await admin_model.change_status(row["id"], "Resolved")

        assert admin_model.get(row["id"]).status == "Resolved"
        assert admin_session.notifier.last.message == "Ticket status updated."
        assert gateway.tables["tickets"][0]["status"] == "Resolved"

    @pytest.mark.asyncio
    async def test_status_listener_fires_once(self, gateway, admin_model):
        row = gateway.seed("tickets", user_id="customer-1", status="Open")
        await admin_model.activate()
        changes = []
        admin_model.on_status_change(lambda ticket, previous: changes.append((ticket.status, previous)))

        await admin_model.change_status(row["id"], "Resolved")

        assert changes == [("Resolved", "Open")]

    @pytest.mark.asyncio
    async def test_failure_keeps_state(self, gateway, admin_model, admin_session):
        row = gateway.seed("tickets", user_id="customer-1", status="Open")
        await admin_model.activate()
        gateway.fail("update", "tickets")

        assert not await admin_model.change_status(row["id"], "Resolved")

        assert admin_model.get(row["id"]).status == "Open"
        assert admin_session.notifier.last.message == "Failed to update ticket status."

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, gateway, admin_model):
        row = gateway.seed("tickets", user_id="customer-1")
        await admin_model.activate()

        with pytest.raises(ValueError):
            await admin_model.change_status(row["id"], "Closed")
        assert gateway.count_calls("update", "tickets") == 0

    @pytest.mark.asyncio
    async def test_partition_follows_status(self, gateway, admin_model):
        row = gateway.seed("tickets", user_id="customer-1", status="Open")
        await admin_model.activate()

        await admin_model.change_status(row["id"], "Resolved")
        assert [t.id for t in admin_model.partition().resolved] == [row["id"]]

        await admin_model.change_status(row["id"], "In Progress")
        assert [t.id for t in admin_model.partition().open] == [row["id"]]
        assert admin_model.partition().resolved == ()


# =============================================================================
# LIFECYCLE
# =============================================================================

class TestLifecycle:
    @pytest.mark.asyncio
    async def test_activate_registers_and_subscribes(self, gateway, admin_model, admin_session):
        await admin_model.activate()

        assert admin_model.subscription_count == 1
        assert gateway.active_subscriptions == 1
        assert admin_session.active_models == [admin_model]

    @pytest.mark.asyncio
    async def test_reactivate_keeps_single_subscription(self, gateway, admin_model):
        await admin_model.activate()
        await admin_model.activate()

        assert gateway.active_subscriptions == 1

    @pytest.mark.asyncio
    async def test_deactivate_releases_everything(self, gateway, admin_model, admin_session):
        await admin_model.activate()
        subscription = gateway.subscriptions_for("tickets")[0]

        await admin_model.deactivate()

        assert gateway.active_subscriptions == 0
        assert admin_session.active_models == []
        assert not admin_model.active

        event = parse_change_payload("tickets", {"eventType": "INSERT", "new": {"id": "late"}})
        subscription.callback(event)
        assert admin_model.get("late") is None

    @pytest.mark.asyncio
    async def test_fetch_finishing_after_deactivate_is_discarded(self, gateway, admin_model, admin_session):
        gateway.seed("tickets", user_id="customer-1")
        gate = gateway.hold("tickets")

        task = asyncio.create_task(admin_model.activate())
        await settle()
        await admin_model.deactivate()
        gate.set()
        await task

        assert admin_model.tickets == []
        assert not admin_model.loaded
        assert admin_session.notifier.notices == []

    @pytest.mark.asyncio
    async def test_superseded_refresh_is_discarded(self, gateway, admin_model):
        first = gateway.seed("tickets", user_id="customer-1")
        gateway.seed("tickets", user_id="customer-2")
        await admin_model.activate()

        gate = gateway.hold("tickets")
        slow = asyncio.create_task(admin_model.refresh())
        await settle()
        await admin_model.refresh()

        # Only visible to the older, slower fetch
        gateway.tables["tickets"].remove(next(r for r in gateway.tables["tickets"] if r["id"] == first["id"]))
        gate.set()
        await slow

        assert len(admin_model.tickets) == 2


    @pytest.mark.asyncio
    async def test_activation_scheduled_before_deactivate_is_skipped(self, gateway, admin_model, admin_session):
        gateway.seed("tickets", user_id="customer-1")

        pending = admin_model.activate()
        await admin_model.deactivate()
        await pending

        assert gateway.active_subscriptions == 0
        assert not admin_model.active
        assert admin_session.active_models == []
        assert gateway.count_calls("select", "tickets") == 0

        # A fresh activation still works
        await admin_model.activate()
        assert gateway.active_subscriptions == 1
        assert len(admin_model.tickets) == 1

    @pytest.mark.asyncio
    async def test_deactivate_while_subscribing(self, gateway, admin_model, admin_session):
        gate = gateway.hold("tickets", action="subscribe")

        task = asyncio.create_task(admin_model.activate())
        await settle()
        await admin_model.deactivate()
        gate.set()
        await task

        assert gateway.active_subscriptions == 0
        assert admin_model.subscription_count == 0
        assert admin_session.active_models == []
        assert gateway.count_calls("select", "tickets") == 0

    @pytest.mark.asyncio
    async def test_reactivate_while_subscribing(self, gateway, admin_model):
        gateway.seed("tickets", user_id="customer-1")
        gate = gateway.hold("tickets", action="subscribe")

        first = asyncio.create_task(admin_model.activate())
        await settle()
        await admin_model.activate()
        gate.set()
        await first

        assert gateway.active_subscriptions == 1
        assert admin_model.subscription_count == 1
        assert admin_model.loaded
        assert len(admin_model.tickets) == 1

        row = await gateway.insert("tickets", {"user_id": "customer-2"})
        assert [t.id for t in admin_model.tickets].count(row["id"]) == 1
