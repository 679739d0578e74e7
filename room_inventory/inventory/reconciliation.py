"""Compare ledger counters with the bookings that should be behind them.

For every night, booked_quantity must equal the number of non-cancelled
bookings of that room type whose stay covers the night. A mismatch means the
counters drifted (for instance from rows written before admission ran in a
single transaction).
"""

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from room_inventory.bookings.repository import BookingRepository
from room_inventory.dates import DateLike, as_calendar_date, iter_nights, nights
from room_inventory.inventory.ledger import InventoryLedger

logger = logging.getLogger(__name__)


@dataclass
class Drift:
    room_type_id: int
    date: date
    booked_quantity: int
    expected_quantity: int

    @property
    def difference(self) -> int:
        return self.booked_quantity - self.expected_quantity


class InventoryReconciler:
    def __init__(self, ledger: InventoryLedger):
        self.ledger = ledger

    @property
    def db(self) -> AsyncSession:
        return self.ledger.db

    async def _compare(self, room_type_id: int, start: date, end: date, records) -> list[Drift]:
        expected = await BookingRepository(self.db).nightly_occupancy(room_type_id, start, end)
        recorded = {r.date: r.booked_quantity for r in records}

        drifts = []
        for night in iter_nights(start, end):
            booked = recorded.get(night, 0)
            if booked != expected[night]:
                drifts.append(Drift(room_type_id, night, booked, expected[night]))
        for drift in drifts:
            logger.warning(
                "inventory drift room type %s on %s: ledger %d, bookings %d",
                room_type_id,
                drift.date,
                drift.booked_quantity,
                drift.expected_quantity,
            )
        return drifts

    async def report(self, room_type_id: int, start: DateLike, end: DateLike) -> list[Drift]:
        start, end = as_calendar_date(start), as_calendar_date(end)
        return await self._compare(room_type_id, start, end, await self.ledger.query(room_type_id, start, end))

    async def repair(self, room_type_id: int, start: DateLike, end: DateLike) -> list:
        """Rewrite drifted counters to the booking-derived value. Returns the updated records.

        The whole range is locked before bookings are counted, so no reservation
        can land between the count and the rewrite.
        """
        start, end = as_calendar_date(start), as_calendar_date(end)
        records = await self.ledger.get_or_create_range(room_type_id, nights(start, end), lock=True)
        repaired = []
        for drift in await self._compare(room_type_id, start, end, records):
            repaired.append(await self.ledger.set_booked(room_type_id, drift.date, drift.expected_quantity))
        if repaired:
            logger.info("repaired %d night(s) for room type %s", len(repaired), room_type_id)
        return repaired
