import asyncio
from datetime import date

import pytest
from helpers import book, booked_quantities, make_room_type

from room_inventory.exceptions import CapacityExceeded, InvalidDateRange, NotFound, RoomUnavailable


def test_reservation_takes_one_unit_per_night(run):
    async def scenario(services):
        room_type = await make_room_type(services)
        reservation = await services.admission.try_reserve(room_type.id, date(2026, 3, 1), date(2026, 3, 4))
        counts = await booked_quantities(services, room_type.id, date(2026, 2, 28), date(2026, 3, 5))
        return reservation, counts

    reservation, counts = run(scenario)
    assert [n.date for n in reservation.nights] == [date(2026, 3, 1), date(2026, 3, 2), date(2026, 3, 3)]
    assert all(n.booked_quantity == 1 for n in reservation.nights)
    assert counts == {
        date(2026, 2, 28): 0,
        date(2026, 3, 1): 1,
        date(2026, 3, 2): 1,
        date(2026, 3, 3): 1,
        date(2026, 3, 4): 0,
    }


def test_full_night_rejects_whole_stay(run):
    async def scenario(services):
        room_type = await make_room_type(services)
        await services.inventory.set_max_sales_quantity(room_type.id, date(2026, 3, 2), 0)
        with pytest.raises(CapacityExceeded) as excinfo:
            await services.admission.try_reserve(room_type.id, date(2026, 3, 1), date(2026, 3, 4))
        counts = await booked_quantities(services, room_type.id, date(2026, 3, 1), date(2026, 3, 4))
        return excinfo.value, counts

    error, counts = run(scenario)
    assert error.context["dates"] == ["2026-03-02"]
    assert set(counts.values()) == {0}


def test_blocked_night_raises_room_unavailable(run):
    async def scenario(services):
        room_type = await make_room_type(services, max_sales_quantity=5)
        await services.inventory.set_availability(room_type.id, [date(2026, 5, 1)], False, "Private event")
        with pytest.raises(RoomUnavailable):
            await services.admission.try_reserve(room_type.id, date(2026, 4, 30), date(2026, 5, 2))
        return await booked_quantities(services, room_type.id, date(2026, 4, 30), date(2026, 5, 2))

    assert set(run(scenario).values()) == {0}


def test_blocked_is_reported_before_full(run):
    async def scenario(services):
        room_type = await make_room_type(services, max_sales_quantity=1)
        await services.admission.try_reserve(room_type.id, date(2026, 5, 2), date(2026, 5, 3))
        await services.inventory.set_availability(room_type.id, [date(2026, 5, 1)], False)
        await services.admission.try_reserve(room_type.id, date(2026, 5, 1), date(2026, 5, 3))

    with pytest.raises(RoomUnavailable):
        run(scenario)


def test_closed_room_type_is_unavailable(run):
    async def scenario(services):
        room_type = await make_room_type(services, is_available=False)
        await services.admission.try_reserve(room_type.id, date(2026, 3, 1), date(2026, 3, 2))

    with pytest.raises(RoomUnavailable):
        run(scenario)


def test_unknown_room_type(run):
    async def scenario(services):
        await services.admission.try_reserve(999, date(2026, 3, 1), date(2026, 3, 2))

    with pytest.raises(NotFound):
        run(scenario)


def test_empty_stay_is_rejected(run):
    async def scenario(services):
        room_type = await make_room_type(services)
        await services.admission.try_reserve(room_type.id, date(2026, 3, 1), date(2026, 3, 1))

    with pytest.raises(InvalidDateRange):
        run(scenario)


def test_release_floors_at_zero_and_creates_missing_nights(run):
    async def scenario(services):
        room_type = await make_room_type(services)
        released = await services.admission.release_range(room_type.id, date(2026, 6, 1), date(2026, 6, 3))
        return released

    released = run(scenario)
    assert [n.date for n in released] == [date(2026, 6, 1), date(2026, 6, 2)]
    assert all(n.booked_quantity == 0 for n in released)


def test_concurrent_reservations_never_oversell(run):
    async def scenario(services):
        room_type = await make_room_type(services, max_sales_quantity=3)
        results = await asyncio.gather(
            *(services.admission.try_reserve(room_type.id, date(2026, 3, 1), date(2026, 3, 3)) for _ in range(6)),
            return_exceptions=True,
        )
        counts = await booked_quantities(services, room_type.id, date(2026, 3, 1), date(2026, 3, 3))
        return results, counts

    results, counts = run(scenario)
    succeeded = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 3
    assert all(isinstance(r, CapacityExceeded) for r in rejected)
    assert counts == {date(2026, 3, 1): 3, date(2026, 3, 2): 3}


class TestAvailabilityQuery:
    def test_untouched_nights_are_available_without_writing(self, run):
        async def scenario(services):
            room_type = await make_room_type(services)
            available = await services.admission.availability_query(room_type.id, date(2026, 7, 1), date(2026, 7, 5))
            drifts = await services.inventory.reconciliation_report(room_type.id, date(2026, 7, 1), date(2026, 7, 5))
            async with services.session_factory() as db:
                stored = await services.admission.ledger(db).query(room_type.id, date(2026, 7, 1), date(2026, 7, 5))
            return available, drifts, stored

        available, drifts, stored = run(scenario)
        assert available is True
        assert drifts == []
        assert stored == []

    def test_full_night_is_not_available(self, run):
        async def scenario(services):
            room_type = await make_room_type(services, max_sales_quantity=1)
            before = await services.admission.availability_query(room_type.id, date(2026, 7, 1), date(2026, 7, 3))
            await book(services, room_type.id, date(2026, 7, 2), date(2026, 7, 3))
            after = await services.admission.availability_query(room_type.id, date(2026, 7, 1), date(2026, 7, 3))
            next_stay = await services.admission.availability_query(room_type.id, date(2026, 7, 3), date(2026, 7, 5))
            return before, after, next_stay

        assert run(scenario) == (True, False, True)

    def test_blocked_night_is_not_available(self, run):
        async def scenario(services):
            room_type = await make_room_type(services)
            await services.inventory.set_availability(room_type.id, [date(2026, 7, 2)], False)
            return await services.admission.availability_query(room_type.id, date(2026, 7, 1), date(2026, 7, 3))

        assert run(scenario) is False

    def test_closed_room_type_is_not_available(self, run):
        async def scenario(services):
            room_type = await make_room_type(services, is_available=False)
            return await services.admission.availability_query(room_type.id, date(2026, 7, 1), date(2026, 7, 3))

        assert run(scenario) is False
