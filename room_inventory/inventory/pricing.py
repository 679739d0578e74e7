from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from room_inventory.dates import is_weekend_night
from room_inventory.inventory.models import RoomAvailability, RoomType


@dataclass
class NightPrice:
    date: date
    price: Decimal
    is_weekend: bool


def is_weekend_rate(day: date, record: Optional[RoomAvailability]) -> bool:
    if record is not None and record.is_holiday_override is not None:
        return record.is_holiday_override
    return is_weekend_night(day)


def night_price(room_type: RoomType, day: date, record: Optional[RoomAvailability]) -> NightPrice:
    weekend = is_weekend_rate(day, record)
    if weekend:
        candidates = (
            record.weekend_price if record is not None else None,
            room_type.weekend_price,
            room_type.price,
        )
    else:
        candidates = (record.weekday_price if record is not None else None, room_type.price)
    price = next(Decimal(c) for c in candidates if c is not None)
    return NightPrice(day, price, weekend)


def quote_nights(room_type: RoomType, days: list[date], records: dict[date, RoomAvailability]) -> list[NightPrice]:
    return [night_price(room_type, day, records.get(day)) for day in days]
