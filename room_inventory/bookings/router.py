from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from room_inventory.bookings.lifecycle import BookingLifecycle, GuestInfo
from room_inventory.bookings.models import BookingStatus
from room_inventory.bookings.schemas import (
    BookingCreateSchema,
    BookingResponseSchema,
    PaymentConfirmationSchema,
    PaymentMethodSchema,
)
from room_inventory.dependencies import get_lifecycle

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreateSchema,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> BookingResponseSchema:
    """
    Reserves one unit on every night of [check_in, check_out) and creates
    a pending booking, atomically. 409 when a night is blocked or sold out.
    """
    booking = await lifecycle.create(
        room_type_id=data.room_type_id,
        guest=GuestInfo(
            name=data.guest_name,
            phone=data.guest_phone,
            email=data.guest_email,
            special_requests=data.special_requests,
        ),
        check_in=data.check_in,
        check_out=data.check_out,
        number_of_guests=data.number_of_guests,
        total_price=data.total_price,
    )
    return BookingResponseSchema.model_validate(booking)


@router.get("")
async def get_bookings(
    status: Optional[BookingStatus] = None,
    room_type_id: Optional[int] = None,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> list[BookingResponseSchema]:
    bookings = await lifecycle.list_bookings(status=status, room_type_id=room_type_id)
    return [BookingResponseSchema.model_validate(b) for b in bookings]


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> BookingResponseSchema:
    return BookingResponseSchema.model_validate(await lifecycle.get(booking_id))


@router.post("/{booking_id}/confirm")
async def confirm_booking(
    booking_id: int,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> BookingResponseSchema:
    return BookingResponseSchema.model_validate(await lifecycle.confirm(booking_id))


@router.post("/{booking_id}/payment-method")
async def select_payment_method(
    booking_id: int,
    data: PaymentMethodSchema,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> BookingResponseSchema:
    booking = await lifecycle.select_payment_method(booking_id, data.method)
    return BookingResponseSchema.model_validate(booking)


@router.post("/{booking_id}/payment")
async def confirm_payment(
    booking_id: int,
    data: PaymentConfirmationSchema,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> BookingResponseSchema:
    booking = await lifecycle.confirm_payment(booking_id, data.reference)
    return BookingResponseSchema.model_validate(booking)


@router.post("/{booking_id}/complete")
async def complete_booking(
    booking_id: int,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> BookingResponseSchema:
    return BookingResponseSchema.model_validate(await lifecycle.mark_completed(booking_id))


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> BookingResponseSchema:
    return BookingResponseSchema.model_validate(await lifecycle.cancel(booking_id))


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: int,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> Response:
    await lifecycle.delete(booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
