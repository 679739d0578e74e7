from datetime import date

from fastapi import APIRouter, Depends, status

from room_inventory.admission.controller import AdmissionController
from room_inventory.dependencies import get_admission, get_inventory_service
from room_inventory.inventory.schemas import (
    SAvailability,
    SAvailabilityCheck,
    SDateRangeParams,
    SDrift,
    SQuote,
    SRoomType,
    SRoomTypeCreate,
    SSetAvailability,
    SSetDynamicPrice,
    SSetHolidayOverride,
    SSetMaxSalesQuantity,
    SStayParams,
)
from room_inventory.inventory.service import InventoryService

router = APIRouter(
    prefix="/rooms",
    tags=["Rooms and availability"],
)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_room_type(
    data: SRoomTypeCreate,
    service: InventoryService = Depends(get_inventory_service),
) -> SRoomType:
    room_type = await service.create_room_type(**data.model_dump())
    return SRoomType.model_validate(room_type)


@router.get("")
async def get_room_types(service: InventoryService = Depends(get_inventory_service)) -> list[SRoomType]:
    return [SRoomType.model_validate(r) for r in await service.list_room_types()]


@router.get("/{room_type_id}")
async def get_room_type(
    room_type_id: int,
    service: InventoryService = Depends(get_inventory_service),
) -> SRoomType:
    return SRoomType.model_validate(await service.get_room_type(room_type_id))


@router.get("/{room_type_id}/availability")
async def get_availability(
    room_type_id: int,
    params: SDateRangeParams = Depends(),
    service: InventoryService = Depends(get_inventory_service),
) -> list[SAvailability]:
    """Calendar of [start, end): one entry per night."""
    records = await service.get_availability(room_type_id, params.start, params.end)
    return [SAvailability.model_validate(r) for r in records]


@router.get("/{room_type_id}/check")
async def check_availability(
    room_type_id: int,
    params: SStayParams = Depends(),
    admission: AdmissionController = Depends(get_admission),
) -> SAvailabilityCheck:
    """Advisory only: the booking itself is what reserves."""
    available = await admission.availability_query(room_type_id, params.check_in, params.check_out)
    return SAvailabilityCheck(
        room_type_id=room_type_id,
        check_in=params.check_in,
        check_out=params.check_out,
        available=available,
    )


@router.get("/{room_type_id}/quote")
async def quote(
    room_type_id: int,
    params: SStayParams = Depends(),
    service: InventoryService = Depends(get_inventory_service),
) -> SQuote:
    return SQuote.model_validate(await service.quote(room_type_id, params.check_in, params.check_out))


@router.put("/{room_type_id}/availability")
async def set_availability(
    room_type_id: int,
    data: SSetAvailability,
    service: InventoryService = Depends(get_inventory_service),
) -> list[SAvailability]:
    records = await service.set_availability(room_type_id, data.dates, data.is_available, data.reason)
    return [SAvailability.model_validate(r) for r in records]


@router.put("/{room_type_id}/availability/{day}/max-sales-quantity")
async def set_max_sales_quantity(
    room_type_id: int,
    day: date,
    data: SSetMaxSalesQuantity,
    service: InventoryService = Depends(get_inventory_service),
) -> SAvailability:
    record = await service.set_max_sales_quantity(room_type_id, day, data.max_sales_quantity)
    return SAvailability.model_validate(record)


@router.put("/{room_type_id}/availability/{day}/price")
async def set_dynamic_price(
    room_type_id: int,
    day: date,
    data: SSetDynamicPrice,
    service: InventoryService = Depends(get_inventory_service),
) -> SAvailability:
    record = await service.set_dynamic_price(room_type_id, day, data.weekday_price, data.weekend_price)
    return SAvailability.model_validate(record)


@router.put("/{room_type_id}/holidays")
async def set_holiday_override(
    room_type_id: int,
    data: SSetHolidayOverride,
    service: InventoryService = Depends(get_inventory_service),
) -> list[SAvailability]:
    records = await service.set_holiday_override(room_type_id, data.dates, data.is_holiday)
    return [SAvailability.model_validate(r) for r in records]


@router.get("/{room_type_id}/reconciliation")
async def reconciliation_report(
    room_type_id: int,
    params: SDateRangeParams = Depends(),
    service: InventoryService = Depends(get_inventory_service),
) -> list[SDrift]:
    drifts = await service.reconciliation_report(room_type_id, params.start, params.end)
    return [SDrift.model_validate(d) for d in drifts]


@router.post("/{room_type_id}/reconciliation/repair")
async def repair_inventory(
    room_type_id: int,
    params: SDateRangeParams = Depends(),
    service: InventoryService = Depends(get_inventory_service),
) -> list[SAvailability]:
    records = await service.repair_inventory(room_type_id, params.start, params.end)
    return [SAvailability.model_validate(r) for r in records]
