import asyncio
import sqlite3
from decimal import Decimal

import pytest
from helpers import make_room_type
from psycopg import errors as pg_errors
from sqlalchemy.exc import OperationalError

from room_inventory.container import build_services
from room_inventory.database.transaction import StaleRowError, is_contention, run_in_transaction
from room_inventory.exceptions import ConcurrentModification, RoomUnavailable
from room_inventory.inventory.ledger import InventoryLedger


def test_stale_row_is_retried_until_it_succeeds(run):
    calls = []

    async def work(db):
        calls.append(db)
        if len(calls) < 3:
            raise StaleRowError("version moved")
        return "done"

    async def scenario(services):
        return await run_in_transaction(services.session_factory, work, max_attempts=5, retry_delay=0)

    assert run(scenario) == "done"
    assert len(calls) == 3
    # every attempt gets a fresh session
    assert len({id(db) for db in calls}) == 3


def test_gives_up_with_concurrent_modification(run):
    attempts = 0

    async def work(db):
        nonlocal attempts
        attempts += 1
        raise StaleRowError("always stale")

    async def scenario(services):
        await run_in_transaction(services.session_factory, work, max_attempts=3, retry_delay=0)

    with pytest.raises(ConcurrentModification) as excinfo:
        run(scenario)
    assert attempts == 3
    assert excinfo.value.context == {"operation": "transaction", "attempts": 3}


def test_business_errors_are_not_retried(run):
    attempts = 0

    async def work(db):
        nonlocal attempts
        attempts += 1
        raise RoomUnavailable(room_type_id=1)

    async def scenario(services):
        await run_in_transaction(services.session_factory, work, max_attempts=5, retry_delay=0)

    with pytest.raises(RoomUnavailable):
        run(scenario)
    assert attempts == 1


def test_failed_attempt_rolls_back(run):
    async def scenario(services):
        room_type = await make_room_type(services)
        attempts = 0

        async def work(db):
            nonlocal attempts
            attempts += 1
            ledger = InventoryLedger(db)
            await ledger.adjust_booked(room_type.id, "2026-03-01", 1)
            if attempts == 1:
                raise StaleRowError("first attempt loses")

        await run_in_transaction(services.session_factory, work, max_attempts=2, retry_delay=0)
        async with services.session_factory() as db:
            record = await InventoryLedger(db).get_or_create(room_type.id, "2026-03-01")
            return record.booked_quantity

    assert run(scenario) == 1


def _operational(orig):
    return OperationalError("UPDATE room_availability", {}, orig)


@pytest.mark.parametrize(
    "orig",
    [
        sqlite3.OperationalError("database is locked"),
        pg_errors.LockNotAvailable("canceling statement due to lock timeout"),
        pg_errors.DeadlockDetected("deadlock detected"),
        pg_errors.SerializationFailure("could not serialize access"),
    ],
)
def test_lock_waits_count_as_contention(orig):
    assert is_contention(_operational(orig))


@pytest.mark.parametrize(
    "orig",
    [
        sqlite3.OperationalError("no such table: room_types"),
        sqlite3.OperationalError("unable to open database file"),
        pg_errors.UndefinedTable('relation "room_types" does not exist'),
    ],
)
def test_other_operational_errors_are_not_contention(orig):
    assert not is_contention(_operational(orig))


def test_busy_database_is_retried(run):
    attempts = 0

    async def work(db):
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise _operational(sqlite3.OperationalError("database is locked"))
        return attempts

    async def scenario(services):
        return await run_in_transaction(services.session_factory, work, max_attempts=3, retry_delay=0)

    assert run(scenario) == 2


def test_missing_table_propagates_unchanged(settings, caplog):
    async def main():
        # no create_tables: the schema is missing
        services = build_services(settings)
        try:
            await services.inventory.create_room_type("Twin", Decimal("1500"))
        finally:
            await services.dispose()

    with pytest.raises(OperationalError, match="no such table"):
        asyncio.run(main())
    assert not [r for r in caplog.records if "conflicted" in r.getMessage()]
