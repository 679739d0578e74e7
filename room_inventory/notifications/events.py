from datetime import date, datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(BaseModel):
    event_type: str
    room_type_id: int
    timestamp: datetime = Field(default_factory=_utcnow)

    def to_message(self) -> dict:
        payload = self.model_dump(mode="json", exclude={"event_type"})
        return {"event_type": self.event_type, "payload": payload}


class BookingCreated(Event):
    event_type: Literal["booking_created"] = "booking_created"
    booking_id: int
    check_in_date: date
    check_out_date: date
    status: str


class BookingStatusChanged(Event):
    event_type: Literal["booking_status_changed"] = "booking_status_changed"
    booking_id: int
    old_status: str
    new_status: str
    check_in_date: date
    check_out_date: date


class BookingDeleted(Event):
    event_type: Literal["booking_deleted"] = "booking_deleted"
    booking_id: int
    check_in_date: date
    check_out_date: date
    status: Optional[str] = None


class RoomAvailabilityChanged(Event):
    event_type: Literal["room_availability_changed"] = "room_availability_changed"
    date: date
    booked_quantity: int
    max_sales_quantity: int
    is_available: bool = True
