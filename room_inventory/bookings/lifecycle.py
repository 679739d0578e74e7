"""Booking state machine.

    pending -> confirmed -> pending_payment -> paid -> completed
                         \\-> cash_on_site ----------/
    any non-terminal status -> cancelled

Inventory is taken once at creation and given back exactly once: on the
transition into ``cancelled`` or when a non-cancelled booking is deleted. Both
happen in the same transaction as the status change, and the status change is a
compare-and-set, so a booking can never release twice.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from room_inventory.admission.controller import AdmissionController, validate_stay
from room_inventory.bookings.models import Booking, BookingStatus, PaymentMethod
from room_inventory.bookings.repository import BookingRepository
from room_inventory.config import Settings
from room_inventory.database.transaction import run_in_transaction
from room_inventory.exceptions import InvalidPaymentReference, InvalidStatusTransition, NotFound
from room_inventory.notifications.events import BookingCreated, BookingDeleted, BookingStatusChanged
from room_inventory.notifications.notifier import ChangeNotifier, availability_events

logger = logging.getLogger(__name__)

PAYMENT_REFERENCE_RE = re.compile(r"^\d{5}$")

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.PENDING_PAYMENT, BookingStatus.CASH_ON_SITE, BookingStatus.CANCELLED}
    ),
    BookingStatus.PENDING_PAYMENT: frozenset({BookingStatus.PAID, BookingStatus.CANCELLED}),
    BookingStatus.PAID: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CASH_ON_SITE: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus, new: BookingStatus) -> bool:
    return new in TRANSITIONS[current]


@dataclass
class GuestInfo:
    name: str
    phone: str
    email: Optional[str] = None
    special_requests: Optional[str] = None


class BookingLifecycle:
    def __init__(
        self,
        session_factory: sessionmaker,
        admission: AdmissionController,
        notifier: ChangeNotifier,
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.admission = admission
        self.notifier = notifier
        self.settings = settings

    async def _run(self, work, operation: str):
        return await run_in_transaction(
            self.session_factory,
            work,
            max_attempts=self.settings.reservation_max_attempts,
            retry_delay=self.settings.reservation_retry_delay,
            lock_timeout_ms=self.settings.lock_timeout_ms,
            operation=operation,
        )

    # ---- reads -------------------------------------------------------------

    async def get(self, booking_id: int) -> Booking:
        async with self.session_factory() as db:
            booking = await BookingRepository(db).get(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found", booking_id=booking_id)
        return booking

    async def list_bookings(self, status: Optional[BookingStatus] = None, room_type_id: Optional[int] = None) -> list[Booking]:
        async with self.session_factory() as db:
            return await BookingRepository(db).list_bookings(status=status, room_type_id=room_type_id)

    # ---- create ------------------------------------------------------------

    async def create(
        self,
        room_type_id: int,
        guest: GuestInfo,
        check_in: date,
        check_out: date,
        number_of_guests: int,
        total_price: Decimal,
    ) -> Booking:
        """Reserve every night and persist a pending booking, or do neither."""
        check_in, check_out = validate_stay(check_in, check_out)

        async def work(db: AsyncSession):
            reservation = await self.admission.reserve(db, room_type_id, check_in, check_out)
            booking = Booking(
                room_type_id=room_type_id,
                guest_name=guest.name,
                guest_email=guest.email,
                guest_phone=guest.phone,
                special_requests=guest.special_requests,
                check_in_date=check_in,
                check_out_date=check_out,
                number_of_guests=number_of_guests,
                total_price=total_price,
                status=BookingStatus.PENDING.value,
            )
            await BookingRepository(db).add(booking)
            return booking, reservation

        booking, reservation = await self._run(work, "create booking")
        logger.info("booking %s created for room type %s (%s..%s)", booking.id, room_type_id, check_in, check_out)

        self.notifier.notify(
            [
                BookingCreated(
                    room_type_id=room_type_id,
                    booking_id=booking.id,
                    check_in_date=check_in,
                    check_out_date=check_out,
                    status=booking.status,
                )
            ]
            + availability_events(room_type_id, reservation.nights)
        )
        return booking

    # ---- transitions -------------------------------------------------------

    async def _transition(self, booking_id: int, new: BookingStatus, **values) -> Booking:
        async def work(db: AsyncSession):
            repo = BookingRepository(db)
            booking = await repo.get(booking_id, for_update=True)
            if booking is None:
                raise NotFound(f"Booking {booking_id} not found", booking_id=booking_id)

            old = booking.booking_status
            if not can_transition(old, new):
                raise InvalidStatusTransition(
                    f"Cannot move booking {booking_id} from {old.value} to {new.value}",
                    booking_id=booking_id,
                    current=old.value,
                    requested=new.value,
                )
            if not await repo.compare_and_set_status(booking_id, old, new, **values):
                raise InvalidStatusTransition(
                    f"Booking {booking_id} changed status concurrently",
                    booking_id=booking_id,
                    current=old.value,
                    requested=new.value,
                )

            released = []
            if new is BookingStatus.CANCELLED and old.consumes_inventory:
                released = await self.admission.release(
                    db, booking.room_type_id, booking.check_in_date, booking.check_out_date
                )
            return await repo.get(booking_id), old, released

        booking, old, released = await self._run(work, f"{new.value} booking")
        logger.info("booking %s: %s -> %s", booking_id, old.value, new.value)

        self.notifier.notify(
            [
                BookingStatusChanged(
                    room_type_id=booking.room_type_id,
                    booking_id=booking.id,
                    old_status=old.value,
                    new_status=new.value,
                    check_in_date=booking.check_in_date,
                    check_out_date=booking.check_out_date,
                )
            ]
            + availability_events(booking.room_type_id, released)
        )
        return booking

    async def confirm(self, booking_id: int) -> Booking:
        return await self._transition(booking_id, BookingStatus.CONFIRMED)

    async def select_payment_method(self, booking_id: int, method: PaymentMethod) -> Booking:
        method = PaymentMethod(method)
        if method is PaymentMethod.BANK_TRANSFER:
            new = BookingStatus.PENDING_PAYMENT
        else:
            new = BookingStatus.CASH_ON_SITE
        return await self._transition(booking_id, new, payment_method=method.value)

    async def confirm_payment(self, booking_id: int, reference: str) -> Booking:
        reference = (reference or "").strip()
        if not PAYMENT_REFERENCE_RE.match(reference):
            raise InvalidPaymentReference(booking_id=booking_id)
        return await self._transition(booking_id, BookingStatus.PAID, payment_reference=reference)

    async def mark_completed(self, booking_id: int) -> Booking:
        return await self._transition(booking_id, BookingStatus.COMPLETED)

    # ---- transitions that give inventory back --------------------------------

    async def cancel(self, booking_id: int) -> Booking:
        return await self._transition(booking_id, BookingStatus.CANCELLED)

    async def delete(self, booking_id: int) -> None:
        """Cancel-then-erase: release the stay unless it was already cancelled."""

        async def work(db: AsyncSession):
            repo = BookingRepository(db)
            booking = await repo.get(booking_id, for_update=True)
            if booking is None:
                raise NotFound(f"Booking {booking_id} not found", booking_id=booking_id)

            released = []
            if booking.booking_status.consumes_inventory:
                released = await self.admission.release(
                    db, booking.room_type_id, booking.check_in_date, booking.check_out_date
                )
            if not await repo.remove(booking_id):
                raise NotFound(f"Booking {booking_id} not found", booking_id=booking_id)
            return booking, released

        booking, released = await self._run(work, "delete booking")
        logger.info("booking %s deleted (was %s)", booking_id, booking.status)

        self.notifier.notify(
            [
                BookingDeleted(
                    room_type_id=booking.room_type_id,
                    booking_id=booking_id,
                    check_in_date=booking.check_in_date,
                    check_out_date=booking.check_out_date,
                    status=booking.status,
                )
            ]
            + availability_events(booking.room_type_id, released)
        )
