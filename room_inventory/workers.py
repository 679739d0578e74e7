import asyncio
import logging
from datetime import date, timedelta

from room_inventory.inventory.service import InventoryService

logger = logging.getLogger(__name__)


async def reconcile_inventory_worker(
    service: InventoryService,
    poll_interval_seconds: float = 3600,
    horizon_days: int = 180,
) -> None:
    """Periodically compare ledger counters with live bookings and log any drift.

    Drift is only reported here; repairing is an explicit admin action.
    """
    while True:
        try:
            start = date.today()
            end = start + timedelta(days=horizon_days)
            for room_type in await service.list_room_types():
                drifts = await service.reconciliation_report(room_type.id, start, end)
                if drifts:
                    logger.warning(
                        "[reconcile_inventory_worker] room type %s has %d drifted night(s)",
                        room_type.id,
                        len(drifts),
                    )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[reconcile_inventory_worker] error")
            await asyncio.sleep(10)
            continue

        await asyncio.sleep(poll_interval_seconds)
