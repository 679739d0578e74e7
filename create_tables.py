import asyncio
import selectors
import sys

from room_inventory.config import Settings
from room_inventory.database.engine import create_engine_from_settings, create_tables
from room_inventory.logging_config import configure_logging


async def main():
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    engine = create_engine_from_settings(settings)
    print(f"Connecting to {engine.url.render_as_string(hide_password=True)} ...")
    try:
        await create_tables(engine)
    finally:
        await engine.dispose()
    print("Tables created.")


if __name__ == "__main__":
    if sys.platform == "win32":
        loop_factory = lambda: asyncio.SelectorEventLoop(selectors.SelectSelector())
        asyncio.run(main(), loop_factory=loop_factory)
    else:
        asyncio.run(main())
