from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from room_inventory.exceptions import InvalidDateRange


class SRoomTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    price: Decimal = Field(ge=0)
    weekend_price: Optional[Decimal] = Field(default=None, ge=0)
    capacity: int = Field(default=2, ge=1)
    max_sales_quantity: Optional[int] = Field(default=None, ge=0)
    is_available: bool = True


class SRoomType(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: Decimal
    weekend_price: Optional[Decimal] = None
    capacity: int
    max_sales_quantity: int
    is_available: bool


class SAvailability(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    room_type_id: int
    date: date
    is_available: bool
    max_sales_quantity: int
    booked_quantity: int
    remaining_quantity: int
    weekday_price: Optional[Decimal] = None
    weekend_price: Optional[Decimal] = None
    is_holiday_override: Optional[bool] = None
    reason: Optional[str] = None


class SStayParams(BaseModel):
    check_in: date
    check_out: date

    @model_validator(mode="after")
    def check_out_after_check_in(self):
        if self.check_out <= self.check_in:
            raise InvalidDateRange()
        return self


class SDateRangeParams(BaseModel):
    start: date
    end: date

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end <= self.start:
            raise InvalidDateRange("end must be strictly after start.")
        return self


class SAvailabilityCheck(BaseModel):
    room_type_id: int
    check_in: date
    check_out: date
    available: bool


class SSetAvailability(BaseModel):
    dates: list[date] = Field(min_length=1)
    is_available: bool
    reason: Optional[str] = Field(default=None, max_length=200)


class SSetMaxSalesQuantity(BaseModel):
    max_sales_quantity: int = Field(ge=0)


class SSetDynamicPrice(BaseModel):
    weekday_price: Optional[Decimal] = Field(default=None, ge=0)
    weekend_price: Optional[Decimal] = Field(default=None, ge=0)


class SSetHolidayOverride(BaseModel):
    dates: list[date] = Field(min_length=1)
    is_holiday: Optional[bool] = None


class SNightPrice(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    price: Decimal
    is_weekend: bool


class SQuote(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    room_type_id: int
    check_in: date
    check_out: date
    nights: list[SNightPrice]
    total: Decimal


class SDrift(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    room_type_id: int
    date: date
    booked_quantity: int
    expected_quantity: int
    difference: int
