"""Best-effort fan-out of committed changes.

Events are handed over after the owning transaction has committed and delivered
in the background, so the mutation returns without waiting for subscribers.
Each subscriber sees events in the order they were handed over. A failing or
slow subscriber is logged and skipped; it never fails the mutation and is never
retried, so subscribers that need the truth re-query the ledger.
"""

import asyncio
import logging
from functools import partial
from typing import Awaitable, Callable, Iterable, Optional

from room_inventory.notifications.events import Event, RoomAvailabilityChanged

logger = logging.getLogger(__name__)

Subscriber = Callable[[Event], Awaitable[None]]


class ChangeNotifier:
    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._subscribers: list[Subscriber] = []
        # Last scheduled delivery per subscriber; the next one waits for it
        self._tails: dict[Subscriber, asyncio.Task] = {}
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def _deliver(self, subscriber: Subscriber, event: Event) -> None:
        try:
            await asyncio.wait_for(subscriber(event), timeout=self.timeout)
        except Exception:
            logger.exception("subscriber %r failed on %s", subscriber, event.event_type)

    async def _deliver_in_order(
        self, subscriber: Subscriber, events: list[Event], previous: Optional[asyncio.Task] = None
    ) -> None:
        if previous is not None:
            await asyncio.wait({previous})
        for event in events:
            logger.debug("publishing %s for room type %s", event.event_type, event.room_type_id)
            await self._deliver(subscriber, event)

    def notify(self, events: Iterable[Event]) -> None:
        """Schedule delivery of committed events and return immediately."""
        events = list(events)
        if not events:
            return
        for subscriber in list(self._subscribers):
            task = asyncio.create_task(
                self._deliver_in_order(subscriber, events, self._tails.get(subscriber))
            )
            self._tails[subscriber] = task
            self._pending.add(task)
            task.add_done_callback(partial(self._task_done, subscriber))

    def _task_done(self, subscriber: Subscriber, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if self._tails.get(subscriber) is task:
            del self._tails[subscriber]
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error("delivery to %r failed", subscriber, exc_info=task.exception())

    async def drain(self) -> None:
        """Wait until every scheduled delivery has finished."""
        while self._pending:
            await asyncio.wait(set(self._pending))


def availability_events(room_type_id: int, records) -> list[RoomAvailabilityChanged]:
    """One room_availability_changed per night, from records or NightSnapshots."""
    return [
        RoomAvailabilityChanged(
            room_type_id=room_type_id,
            date=record.date,
            booked_quantity=record.booked_quantity,
            max_sales_quantity=record.max_sales_quantity,
            is_available=record.is_available,
        )
        for record in records
    ]
