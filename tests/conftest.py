import asyncio

import pytest

from room_inventory.config import Settings
from room_inventory.container import build_services
from room_inventory.database.engine import create_tables


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'inventory.db'}",
        reservation_max_attempts=10,
        reservation_retry_delay=0.01,
        lock_timeout_ms=10000,
        notify_timeout=1.0,
    )


@pytest.fixture
def run(settings):
    """Run ``scenario(services)`` on a fresh event loop against the test database.

    The database file lives in tmp_path, so several calls inside one test share state.
    """

    def runner(scenario):
        async def main():
            services = build_services(settings)
            await create_tables(services.engine)
            try:
                return await scenario(services)
            finally:
                await services.dispose()

        return asyncio.run(main())

    return runner
