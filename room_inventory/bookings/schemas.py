from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from room_inventory.bookings.models import BookingStatus, PaymentMethod


# Schema for a new booking request
class BookingCreateSchema(BaseModel):
    room_type_id: int
    guest_name: str = Field(min_length=1, max_length=100)
    guest_phone: str = Field(min_length=1, max_length=20)
    guest_email: Optional[str] = Field(default=None, max_length=320)
    special_requests: Optional[str] = None
    check_in: date
    check_out: date
    number_of_guests: int = Field(default=2, ge=1)
    total_price: Decimal = Field(ge=0)

    @field_validator("guest_name", "guest_phone")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @model_validator(mode="after")
    def validate_dates(self):
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be strictly after check_in date.")
        return self


class PaymentMethodSchema(BaseModel):
    method: PaymentMethod


class PaymentConfirmationSchema(BaseModel):
    # Last five digits of the transfer; format is checked by the lifecycle
    reference: str


# Response schema for clients
class BookingResponseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_type_id: int
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: str
    check_in_date: date
    check_out_date: date
    number_of_guests: int
    total_price: Decimal
    special_requests: Optional[str] = None
    status: BookingStatus
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
