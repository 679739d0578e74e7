from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import sessionmaker

from room_inventory.admission.controller import AdmissionController
from room_inventory.bookings.lifecycle import BookingLifecycle
from room_inventory.config import Settings
from room_inventory.database.engine import create_engine_from_settings, create_session_factory
from room_inventory.inventory.service import InventoryService
from room_inventory.notifications.notifier import ChangeNotifier


@dataclass
class Services:
    """Explicitly wired components sharing one engine and one notifier."""

    settings: Settings
    engine: AsyncEngine
    session_factory: sessionmaker
    notifier: ChangeNotifier
    admission: AdmissionController
    lifecycle: BookingLifecycle
    inventory: InventoryService

    async def dispose(self) -> None:
        await self.notifier.drain()
        await self.engine.dispose()


def build_services(settings: Settings, engine: Optional[AsyncEngine] = None) -> Services:
    engine = engine or create_engine_from_settings(settings)
    session_factory = create_session_factory(engine)
    notifier = ChangeNotifier(timeout=settings.notify_timeout)
    admission = AdmissionController(session_factory, settings)
    return Services(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        notifier=notifier,
        admission=admission,
        lifecycle=BookingLifecycle(session_factory, admission, notifier, settings),
        inventory=InventoryService(session_factory, notifier, settings),
    )
