"""
Read-model base class.

A read-model is a disposable local cache of remote rows: on activation it
opens its realtime subscription(s) and runs a bulk fetch, then applies every
change event to its collection until it is deactivated.

Each activation and each fetch gets a generation number. Fetch results and
events from an older generation are dropped, so a slow response for a
previous ticket can never overwrite the state of the current one.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from supportdesk.database.gateway import ALL_EVENTS, Filter
from supportdesk.exceptions import GatewayError
from supportdesk.models.change_events import ChangeEvent

logger = logging.getLogger(__name__)


class ReadModel:
    table: str = None
    events: Sequence = ALL_EVENTS
    fetch_failed_message = "Failed to load data."

    def __init__(self, session):
        self.session = session
        self.active = False
        self.loading = False
        self.loaded = False
        self._activation = 0
        self._generation = 0
        self._fetching = False
        self._pending: List[ChangeEvent] = []
        self._subscriptions: list = []
        self._listeners: List[Callable[[Any], None]] = []

    @property
    def gateway(self):
        return self.session.gateway

    @property
    def notifier(self):
        return self.session.notifier

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # =========================================================================
    # Hooks for subclasses
    # =========================================================================

    def _row_filter(self) -> Optional[Filter]:
        return None

    def _subscription_specs(self) -> List[Tuple[str, Sequence, Optional[Filter]]]:
        """(table, events, row_filter) for every channel this model needs."""
        return [(self.table, self.events, self._row_filter())]

    async def _fetch(self):
        raise NotImplementedError

    def _load(self, result) -> None:
        raise NotImplementedError

    def _reset(self) -> None:
        raise NotImplementedError

    def _apply(self, event: ChangeEvent) -> bool:
        """Apply one change; return True when local state changed."""
        raise NotImplementedError

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, callback: Callable[[Any], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[Any], None]) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def _notify_listeners(self) -> None:
        for callback in self._listeners[:]:
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Error notifying {type(self).__name__} listener: {e}", exc_info=True)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def activate(self) -> Awaitable[None]:
        """
        (Re)start the model: drop old channels, subscribe, bulk fetch.

        The activation is bound to the model's state when activate() is
        called, not when the returned coroutine starts running. If the model
        is deactivated or activated again in between (e.g. a gather()ed
        activation whose task has not started yet), it does nothing.
        """
        return self._activate(self._activation)

    async def _activate(self, scheduled_at: int) -> None:
        if scheduled_at != self._activation:
            logger.debug(f"Skipping superseded activation of {type(self).__name__}")
            return

        self._activation += 1
        self._generation += 1
        activation = self._activation
        await self._teardown()
        if activation != self._activation:
            # Deactivated or re-activated while releasing the old channels
            return

        self._fetching = True  # buffer events until the first fetch lands
        self.active = True
        self.loading = True
        self.loaded = False
        self._pending = []
        self._reset()
        self.session.register(self)
        self._notify_listeners()

        for table, events, row_filter in self._subscription_specs():
            try:
                subscription = await self.gateway.subscribe(
                    table, events, self._make_handler(activation), row_filter
                )
            except GatewayError as e:
                logger.error(f"Error subscribing {type(self).__name__} to {table}: {e}")
                continue
            if activation != self._activation or not self.active:
                # Deactivated or re-activated while subscribing
                await self._release(subscription)
                return
            self._subscriptions.append(subscription)

        logger.debug(f"Activated {type(self).__name__} ({len(self._subscriptions)} channels)")
        await self._run_fetch()

    async def refresh(self) -> None:
        """Re-run the bulk fetch without touching the subscriptions."""
        if not self.active:
            return
        await self._run_fetch()

    async def deactivate(self) -> None:
        self.active = False
        self.loading = False
        self._activation += 1
        self._generation += 1
        self._fetching = False
        self._pending = []
        await self._teardown()
        self.session.unregister(self)
        logger.debug(f"Deactivated {type(self).__name__}")

    async def _teardown(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await self._release(subscription)

    async def _release(self, subscription) -> None:
        try:
            await self.gateway.unsubscribe(subscription)
        except GatewayError as e:
            logger.error(f"Error releasing subscription on {subscription.table}: {e}")

    async def _run_fetch(self) -> None:
        self._generation += 1
        generation = self._generation
        self._fetching = True

        try:
            result = await self._fetch()
            failed = False
        except GatewayError as e:
            result = None
            failed = True
            if generation == self._generation and self.active:
                logger.error(f"Error fetching {type(self).__name__}: {e}")

        if generation != self._generation or not self.active:
            logger.debug(f"Discarding stale {type(self).__name__} fetch (generation {generation})")
            return

        pending, self._pending = self._pending, []
        self._fetching = False

        if failed:
            self.notifier.error(self.fetch_failed_message)
            if not self.loaded:
                # Nothing to keep: stay empty and ignore what arrived meanwhile
                self._reset()
                pending = []
        else:
            self._load(result)
            self.loaded = True

        for event in pending:
            self._apply(event)

        self.loading = False
        self._notify_listeners()

    def _make_handler(self, activation: int) -> Callable[[ChangeEvent], None]:
        def handle(event: ChangeEvent) -> None:
            if activation != self._activation or not self.active:
                logger.debug(f"Dropping {event.kind.value} on {event.table} for inactive {type(self).__name__}")
                return
            if self._fetching:
                self._pending.append(event)
                return
            if self._apply(event):
                self._notify_listeners()
        return handle
