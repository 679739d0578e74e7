from collections import Counter
from datetime import date
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from room_inventory.bookings.models import Booking, BookingStatus
from room_inventory.dates import iter_nights


class BookingRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, booking_id: int, for_update: bool = False) -> Optional[Booking]:
        query = select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_bookings(self, status: Optional[BookingStatus] = None, room_type_id: Optional[int] = None) -> list[Booking]:
        query = select(Booking).order_by(Booking.check_in_date, Booking.id)
        if status is not None:
            query = query.where(Booking.status == BookingStatus(status).value)
        if room_type_id is not None:
            query = query.where(Booking.room_type_id == room_type_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def add(self, booking: Booking) -> Booking:
        self.db.add(booking)
        await self.db.flush()
        await self.db.refresh(booking)
        return booking

    async def compare_and_set_status(
        self, booking_id: int, expected: BookingStatus, new: BookingStatus, **values
    ) -> bool:
        """Move the booking to ``new`` only if it is still in ``expected``."""
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected.value)
            .values(status=new.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def remove(self, booking_id: int) -> bool:
        result = await self.db.execute(
            delete(Booking).where(Booking.id == booking_id).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def occupying(self, room_type_id: int, start: date, end: date) -> list[Booking]:
        """Non-cancelled bookings whose stay intersects [start, end)."""
        query = select(Booking).where(
            Booking.room_type_id == room_type_id,
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.check_out_date > start,
            Booking.check_in_date < end,
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def nightly_occupancy(self, room_type_id: int, start: date, end: date) -> Counter:
        """Number of non-cancelled bookings covering each night of [start, end)."""
        counts = Counter()
        for booking in await self.occupying(room_type_id, start, end):
            for night in iter_nights(max(booking.check_in_date, start), min(booking.check_out_date, end)):
                counts[night] += 1
        return counts
