"""Per-night inventory counters.

The ledger is bound to a session whose transaction is owned by the caller
(admission, lifecycle or the admin service). It never commits on its own.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import case, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from room_inventory.database.transaction import StaleRowError
from room_inventory.dates import DateLike, as_calendar_date
from room_inventory.inventory.models import RoomAvailability, RoomType

logger = logging.getLogger(__name__)

DEFAULT_MAX_SALES_QUANTITY = 10


class InventoryLedger:
    def __init__(self, db: AsyncSession, default_max_sales_quantity: int = DEFAULT_MAX_SALES_QUANTITY):
        self.db = db
        self.default_max_sales_quantity = default_max_sales_quantity

    # ---- reads -------------------------------------------------------------

    async def query(self, room_type_id: int, start: DateLike, end: DateLike) -> list[RoomAvailability]:
        """Existing records for start <= date < end, ordered by date."""
        query = (
            select(RoomAvailability)
            .where(
                RoomAvailability.room_type_id == room_type_id,
                RoomAvailability.date >= as_calendar_date(start),
                RoomAvailability.date < as_calendar_date(end),
            )
            .order_by(RoomAvailability.date)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def default_capacity(self, room_type_id: int) -> int:
        capacity = await self.db.scalar(
            select(RoomType.max_sales_quantity).where(RoomType.id == room_type_id)
        )
        return capacity if capacity is not None else self.default_max_sales_quantity

    # ---- lazy creation -----------------------------------------------------

    async def _select_days(self, room_type_id: int, days: list[date], lock: bool) -> list[RoomAvailability]:
        query = (
            select(RoomAvailability)
            .where(
                RoomAvailability.room_type_id == room_type_id,
                RoomAvailability.date.in_(days),
            )
            .order_by(RoomAvailability.date)
            .execution_options(populate_existing=True)
        )
        if lock:
            # Rows are always locked in date order so concurrent ranges cannot deadlock
            query = query.with_for_update()
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _insert_missing(self, room_type_id: int, days: list[date]) -> None:
        capacity = await self.default_capacity(room_type_id)
        rows = [
            {
                "room_type_id": room_type_id,
                "date": day,
                "is_available": True,
                "max_sales_quantity": capacity,
                "booked_quantity": 0,
                "version": 0,
            }
            for day in days
        ]

        dialect = self.db.bind.dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(RoomAvailability).values(rows).on_conflict_do_nothing(
                index_elements=["room_type_id", "date"]
            )
            await self.db.execute(stmt)
        elif dialect == "sqlite":
            stmt = sqlite_insert(RoomAvailability).values(rows).on_conflict_do_nothing(
                index_elements=["room_type_id", "date"]
            )
            await self.db.execute(stmt)
        else:
            for row in rows:
                try:
                    async with self.db.begin_nested():
                        await self.db.execute(insert(RoomAvailability).values(**row))
                except IntegrityError:
                    # Another transaction created this night first
                    continue

    async def get_or_create_range(
        self, room_type_id: int, days: Iterable[DateLike], lock: bool = False
    ) -> list[RoomAvailability]:
        """Return one record per requested day, creating missing ones with defaults."""
        wanted = sorted({as_calendar_date(day) for day in days})
        if not wanted:
            return []

        records = await self._select_days(room_type_id, wanted, lock=False)
        present = {record.date for record in records}
        missing = [day for day in wanted if day not in present]

        if missing:
            await self._insert_missing(room_type_id, missing)
        if missing or lock:
            records = await self._select_days(room_type_id, wanted, lock=lock)
        return records

    async def get_or_create(self, room_type_id: int, day: DateLike, lock: bool = False) -> RoomAvailability:
        records = await self.get_or_create_range(room_type_id, [day], lock=lock)
        return records[0]

    # ---- counters ----------------------------------------------------------

    async def adjust_booked(self, room_type_id: int, day: DateLike, delta: int) -> RoomAvailability:
        """Apply booked_quantity += delta in one statement, floored at zero.

        The upper bound is not checked here; admission checks capacity for the
        whole stay before it increments anything.
        """
        record = await self.get_or_create(room_type_id, day)
        new_value = RoomAvailability.booked_quantity + delta
        await self.db.execute(
            update(RoomAvailability)
            .where(RoomAvailability.id == record.id)
            .values(
                booked_quantity=case((new_value < 0, 0), else_=new_value),
                version=RoomAvailability.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(record)
        return record

    async def reserve_unit(self, record: RoomAvailability) -> None:
        """Increment one night that the caller has already checked and locked.

        The UPDATE repeats the check and pins the version the caller saw, so it
        matches nothing if the row changed in between.
        """
        result = await self.db.execute(
            update(RoomAvailability)
            .where(
                RoomAvailability.id == record.id,
                RoomAvailability.version == record.version,
                RoomAvailability.is_available.is_(True),
                RoomAvailability.booked_quantity < RoomAvailability.max_sales_quantity,
            )
            .values(
                booked_quantity=RoomAvailability.booked_quantity + 1,
                version=RoomAvailability.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleRowError(f"room_availability {record.id} ({record.date}) changed concurrently")
        await self.db.refresh(record)

    async def set_booked(self, room_type_id: int, day: DateLike, quantity: int) -> RoomAvailability:
        if quantity < 0:
            raise ValueError("booked quantity cannot be negative")
        record = await self.get_or_create(room_type_id, day, lock=True)
        await self.db.execute(
            update(RoomAvailability)
            .where(RoomAvailability.id == record.id)
            .values(booked_quantity=quantity, version=RoomAvailability.version + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(record)
        return record

    # ---- administrative overrides -----------------------------------------

    async def set_admin_availability(
        self,
        room_type_id: int,
        dates: Iterable[DateLike],
        is_available: bool,
        reason: Optional[str] = None,
    ) -> list[RoomAvailability]:
        records = await self.get_or_create_range(room_type_id, dates, lock=True)
        for record in records:
            record.is_available = is_available
            record.reason = reason
        await self.db.flush()
        logger.info(
            "room type %s: %d night(s) set %s%s",
            room_type_id,
            len(records),
            "available" if is_available else "blocked",
            f" ({reason})" if reason else "",
        )
        return records

    async def set_max_quantity(self, room_type_id: int, day: DateLike, quantity: int) -> RoomAvailability:
        if quantity < 0:
            raise ValueError("max sales quantity cannot be negative")
        record = await self.get_or_create(room_type_id, day, lock=True)
        record.max_sales_quantity = quantity
        record.version = record.version + 1
        await self.db.flush()
        return record

    async def set_price_override(
        self,
        room_type_id: int,
        day: DateLike,
        weekday_price: Optional[Decimal] = None,
        weekend_price: Optional[Decimal] = None,
    ) -> RoomAvailability:
        record = await self.get_or_create(room_type_id, day, lock=True)
        record.weekday_price = weekday_price
        record.weekend_price = weekend_price
        await self.db.flush()
        return record

    async def set_holiday_override(
        self, room_type_id: int, dates: Iterable[DateLike], is_holiday: Optional[bool]
    ) -> list[RoomAvailability]:
        records = await self.get_or_create_range(room_type_id, dates, lock=True)
        for record in records:
            record.is_holiday_override = is_holiday
        await self.db.flush()
        return records
