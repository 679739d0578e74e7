from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from room_inventory.bookings.lifecycle import GuestInfo
from room_inventory.inventory.models import RoomAvailability


def guest(name="Test Guest"):
    return GuestInfo(name=name, phone="0912345678", email="guest@example.com")


async def make_room_type(services, name="Deluxe Double", max_sales_quantity=2, **kwargs):
    kwargs.setdefault("price", Decimal("2000"))
    kwargs.setdefault("weekend_price", Decimal("2600"))
    return await services.inventory.create_room_type(name, max_sales_quantity=max_sales_quantity, **kwargs)


async def book(services, room_type_id, check_in, check_out, name="Test Guest"):
    return await services.lifecycle.create(
        room_type_id=room_type_id,
        guest=guest(name),
        check_in=check_in,
        check_out=check_out,
        number_of_guests=2,
        total_price=Decimal("4000"),
    )


async def booked_quantities(services, room_type_id, start, end):
    """{date: booked_quantity} for every night in [start, end); missing nights read as 0."""
    async with services.session_factory() as db:
        result = await db.execute(
            select(RoomAvailability).where(
                RoomAvailability.room_type_id == room_type_id,
                RoomAvailability.date >= start,
                RoomAvailability.date < end,
            )
        )
        stored = {r.date: r.booked_quantity for r in result.scalars().all()}

    quantities = {}
    day = start
    while day < end:
        quantities[day] = stored.get(day, 0)
        day += timedelta(days=1)
    return quantities
