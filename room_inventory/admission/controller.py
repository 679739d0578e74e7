"""Admission control: may this stay be sold, and reserve it all-or-nothing."""

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from room_inventory.bookings.repository import BookingRepository
from room_inventory.config import Settings
from room_inventory.database.transaction import run_in_transaction
from room_inventory.dates import DateLike, as_calendar_date, iter_nights, nights
from room_inventory.exceptions import CapacityExceeded, InvalidDateRange, NotFound, RoomUnavailable
from room_inventory.inventory.ledger import InventoryLedger
from room_inventory.inventory.models import RoomAvailability, RoomType

logger = logging.getLogger(__name__)


@dataclass
class NightSnapshot:
    date: date
    booked_quantity: int
    max_sales_quantity: int
    is_available: bool = True

    @classmethod
    def of(cls, record: RoomAvailability) -> "NightSnapshot":
        return cls(record.date, record.booked_quantity, record.max_sales_quantity, record.is_available)


@dataclass
class Reservation:
    room_type_id: int
    check_in: date
    check_out: date
    nights: list[NightSnapshot] = field(default_factory=list)


def validate_stay(check_in: DateLike, check_out: DateLike) -> tuple[date, date]:
    check_in, check_out = as_calendar_date(check_in), as_calendar_date(check_out)
    if check_out <= check_in:
        raise InvalidDateRange(check_in=check_in.isoformat(), check_out=check_out.isoformat())
    return check_in, check_out


class AdmissionController:
    def __init__(self, session_factory: sessionmaker, settings: Settings):
        self.session_factory = session_factory
        self.settings = settings

    def ledger(self, db: AsyncSession) -> InventoryLedger:
        return InventoryLedger(db, self.settings.default_max_sales_quantity)

    async def _room_type(self, db: AsyncSession, room_type_id: int) -> RoomType:
        room_type = await db.get(RoomType, room_type_id)
        if room_type is None:
            raise NotFound(f"Room type {room_type_id} not found", room_type_id=room_type_id)
        return room_type

    def _check_nights(self, room_type_id: int, records, occupancy) -> None:
        blocked = [r.date.isoformat() for r in records if not r.is_available]
        if blocked:
            raise RoomUnavailable(room_type_id=room_type_id, dates=blocked)

        full = [
            r.date.isoformat()
            for r in records
            if r.booked_quantity >= r.max_sales_quantity or occupancy[r.date] >= r.max_sales_quantity
        ]
        if full:
            raise CapacityExceeded(room_type_id=room_type_id, dates=full)

    async def reserve(
        self, db: AsyncSession, room_type_id: int, check_in: DateLike, check_out: DateLike
    ) -> Reservation:
        """Check and take one unit on every night of the stay inside the caller's transaction.

        Raises before touching any counter if a night is blocked or full; a
        version miss on any night raises StaleRowError and the caller's
        transaction rolls back every increment already made.
        """
        check_in, check_out = validate_stay(check_in, check_out)
        room_type = await self._room_type(db, room_type_id)
        if not room_type.is_available:
            raise RoomUnavailable(f"Room type {room_type_id} is not open for booking", room_type_id=room_type_id)

        ledger = self.ledger(db)
        records = await ledger.get_or_create_range(room_type_id, nights(check_in, check_out), lock=True)
        # Second opinion next to the counters: live bookings overlapping each night
        occupancy = await BookingRepository(db).nightly_occupancy(room_type_id, check_in, check_out)
        self._check_nights(room_type_id, records, occupancy)

        for record in records:
            await ledger.reserve_unit(record)

        logger.info(
            "reserved room type %s for %s..%s (%d night(s))", room_type_id, check_in, check_out, len(records)
        )
        return Reservation(room_type_id, check_in, check_out, [NightSnapshot.of(r) for r in records])

    async def release(
        self, db: AsyncSession, room_type_id: int, check_in: DateLike, check_out: DateLike
    ) -> list[NightSnapshot]:
        """Give back one unit per night, floored at zero; missing nights are created at zero.

        Release is not idempotent by itself: callers guarantee one call per booking.
        """
        ledger = self.ledger(db)
        released = []
        for night in iter_nights(check_in, check_out):
            record = await ledger.adjust_booked(room_type_id, night, -1)
            released.append(NightSnapshot.of(record))
        logger.info("released room type %s for %s..%s", room_type_id, check_in, check_out)
        return released

    async def try_reserve(self, room_type_id: int, check_in: DateLike, check_out: DateLike) -> Reservation:
        """Reserve in a transaction of its own, retried on contention."""

        async def work(db: AsyncSession) -> Reservation:
            return await self.reserve(db, room_type_id, check_in, check_out)

        try:
            return await self._run(work, "reserve")
        except (CapacityExceeded, RoomUnavailable) as exc:
            logger.warning("reservation rejected for room type %s: %s %s", room_type_id, exc.code, exc.context)
            raise

    async def release_range(self, room_type_id: int, check_in: DateLike, check_out: DateLike) -> list[NightSnapshot]:
        async def work(db: AsyncSession) -> list[NightSnapshot]:
            return await self.release(db, room_type_id, check_in, check_out)

        return await self._run(work, "release")

    async def availability_query(self, room_type_id: int, check_in: DateLike, check_out: DateLike) -> bool:
        """Advisory, read-only version of the admission check. Never reserves or creates rows."""
        check_in, check_out = validate_stay(check_in, check_out)
        async with self.session_factory() as db:
            room_type = await self._room_type(db, room_type_id)
            if not room_type.is_available:
                return False

            ledger = self.ledger(db)
            existing = {r.date: r for r in await ledger.query(room_type_id, check_in, check_out)}
            occupancy = await BookingRepository(db).nightly_occupancy(room_type_id, check_in, check_out)
            capacity = room_type.max_sales_quantity

            for night in iter_nights(check_in, check_out):
                record = existing.get(night)
                if record is None:
                    if occupancy[night] >= capacity:
                        return False
                    continue
                if not record.is_bookable:
                    return False
                if occupancy[night] >= record.max_sales_quantity:
                    return False
            return True

    async def _run(self, work, operation: str):
        return await run_in_transaction(
            self.session_factory,
            work,
            max_attempts=self.settings.reservation_max_attempts,
            retry_delay=self.settings.reservation_retry_delay,
            lock_timeout_ms=self.settings.lock_timeout_ms,
            operation=operation,
        )
