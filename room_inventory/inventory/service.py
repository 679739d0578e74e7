import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from room_inventory.admission.controller import validate_stay
from room_inventory.config import Settings
from room_inventory.database.transaction import run_in_transaction
from room_inventory.dates import DateLike, as_calendar_date, iter_nights, nights
from room_inventory.exceptions import NotFound
from room_inventory.inventory.ledger import InventoryLedger
from room_inventory.inventory.models import RoomAvailability, RoomType
from room_inventory.inventory.pricing import NightPrice, quote_nights
from room_inventory.inventory.reconciliation import Drift, InventoryReconciler
from room_inventory.notifications.notifier import ChangeNotifier, availability_events

logger = logging.getLogger(__name__)


@dataclass
class Quote:
    room_type_id: int
    check_in: date
    check_out: date
    nights: list[NightPrice]

    @property
    def total(self) -> Decimal:
        return sum((n.price for n in self.nights), Decimal("0"))


class InventoryService:
    """Room types, calendar reads and administrative overrides."""

    def __init__(self, session_factory: sessionmaker, notifier: ChangeNotifier, settings: Settings):
        self.session_factory = session_factory
        self.notifier = notifier
        self.settings = settings

    def ledger(self, db: AsyncSession) -> InventoryLedger:
        return InventoryLedger(db, self.settings.default_max_sales_quantity)

    async def _run(self, work, operation: str):
        return await run_in_transaction(
            self.session_factory,
            work,
            max_attempts=self.settings.reservation_max_attempts,
            retry_delay=self.settings.reservation_retry_delay,
            lock_timeout_ms=self.settings.lock_timeout_ms,
            operation=operation,
        )

    @staticmethod
    async def _room_type(db: AsyncSession, room_type_id: int) -> RoomType:
        room_type = await db.get(RoomType, room_type_id)
        if room_type is None:
            raise NotFound(f"Room type {room_type_id} not found", room_type_id=room_type_id)
        return room_type

    # ---- room types --------------------------------------------------------

    async def create_room_type(
        self,
        name: str,
        price: Decimal,
        weekend_price: Optional[Decimal] = None,
        capacity: int = 2,
        max_sales_quantity: Optional[int] = None,
        is_available: bool = True,
    ) -> RoomType:
        async def work(db: AsyncSession) -> RoomType:
            room_type = RoomType(
                name=name,
                price=price,
                weekend_price=weekend_price,
                capacity=capacity,
                max_sales_quantity=(
                    max_sales_quantity
                    if max_sales_quantity is not None
                    else self.settings.default_max_sales_quantity
                ),
                is_available=is_available,
            )
            db.add(room_type)
            await db.flush()
            await db.refresh(room_type)
            return room_type

        room_type = await self._run(work, "create room type")
        logger.info("room type %s (%s) created", room_type.id, room_type.name)
        return room_type

    async def list_room_types(self) -> list[RoomType]:
        async with self.session_factory() as db:
            result = await db.execute(select(RoomType).order_by(RoomType.id))
            return list(result.scalars().all())

    async def get_room_type(self, room_type_id: int) -> RoomType:
        async with self.session_factory() as db:
            return await self._room_type(db, room_type_id)

    # ---- calendar ----------------------------------------------------------

    async def get_availability(self, room_type_id: int, start: DateLike, end: DateLike) -> list[RoomAvailability]:
        """Every night of [start, end). Nights never touched are returned unsaved, with defaults."""
        start, end = as_calendar_date(start), as_calendar_date(end)
        async with self.session_factory() as db:
            room_type = await self._room_type(db, room_type_id)
            existing = {r.date: r for r in await self.ledger(db).query(room_type_id, start, end)}

        calendar = []
        for night in iter_nights(start, end):
            record = existing.get(night)
            if record is None:
                record = RoomAvailability(
                    room_type_id=room_type_id,
                    date=night,
                    is_available=True,
                    max_sales_quantity=room_type.max_sales_quantity,
                    booked_quantity=0,
                    version=0,
                )
            calendar.append(record)
        return calendar

    async def quote(self, room_type_id: int, check_in: DateLike, check_out: DateLike) -> Quote:
        check_in, check_out = validate_stay(check_in, check_out)
        async with self.session_factory() as db:
            room_type = await self._room_type(db, room_type_id)
            records = {r.date: r for r in await self.ledger(db).query(room_type_id, check_in, check_out)}
        return Quote(room_type_id, check_in, check_out, quote_nights(room_type, nights(check_in, check_out), records))

    # ---- administrative overrides -----------------------------------------

    async def _admin_edit(self, room_type_id: int, edit, operation: str) -> list[RoomAvailability]:
        async def work(db: AsyncSession) -> list[RoomAvailability]:
            await self._room_type(db, room_type_id)
            return await edit(self.ledger(db))

        records = await self._run(work, operation)
        self.notifier.notify(availability_events(room_type_id, records))
        return records

    async def set_availability(
        self, room_type_id: int, dates: Iterable[DateLike], is_available: bool, reason: Optional[str] = None
    ) -> list[RoomAvailability]:
        dates = list(dates)

        async def edit(ledger: InventoryLedger):
            return await ledger.set_admin_availability(room_type_id, dates, is_available, reason)

        return await self._admin_edit(room_type_id, edit, "set availability")

    async def set_max_sales_quantity(self, room_type_id: int, day: DateLike, quantity: int) -> RoomAvailability:
        async def edit(ledger: InventoryLedger):
            return [await ledger.set_max_quantity(room_type_id, day, quantity)]

        records = await self._admin_edit(room_type_id, edit, "set max sales quantity")
        return records[0]

    async def set_dynamic_price(
        self,
        room_type_id: int,
        day: DateLike,
        weekday_price: Optional[Decimal] = None,
        weekend_price: Optional[Decimal] = None,
    ) -> RoomAvailability:
        async def edit(ledger: InventoryLedger):
            return [await ledger.set_price_override(room_type_id, day, weekday_price, weekend_price)]

        records = await self._admin_edit(room_type_id, edit, "set dynamic price")
        return records[0]

    async def set_holiday_override(
        self, room_type_id: int, dates: Iterable[DateLike], is_holiday: Optional[bool]
    ) -> list[RoomAvailability]:
        dates = list(dates)

        async def edit(ledger: InventoryLedger):
            return await ledger.set_holiday_override(room_type_id, dates, is_holiday)

        return await self._admin_edit(room_type_id, edit, "set holiday override")

    # ---- reconciliation ----------------------------------------------------

    async def reconciliation_report(self, room_type_id: int, start: DateLike, end: DateLike) -> list[Drift]:
        async with self.session_factory() as db:
            await self._room_type(db, room_type_id)
            return await InventoryReconciler(self.ledger(db)).report(room_type_id, start, end)

    async def repair_inventory(self, room_type_id: int, start: DateLike, end: DateLike) -> list[RoomAvailability]:
        async def edit(ledger: InventoryLedger):
            return await InventoryReconciler(ledger).repair(room_type_id, start, end)

        return await self._admin_edit(room_type_id, edit, "repair inventory")
