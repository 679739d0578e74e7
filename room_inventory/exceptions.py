from fastapi import status


class BookingError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "booking_error"
    detail = "Booking operation failed."

    def __init__(self, detail: str | None = None, **context):
        self.detail = detail or self.detail
        self.context = context
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.detail}
        if self.context:
            body["context"] = self.context
        return body


class RoomUnavailable(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "room_unavailable"
    detail = "The room is blocked on at least one of the requested dates."


class CapacityExceeded(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "capacity_exceeded"
    detail = "No rooms left on at least one of the requested nights."


class InvalidStatusTransition(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_status_transition"
    detail = "The booking cannot move to the requested status."


class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    detail = "Requested object was not found."


class ConcurrentModification(BookingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "concurrent_modification"
    detail = "Inventory is busy, please retry the request."


class InvalidDateRange(BookingError):
    status_code = 422
    code = "invalid_date_range"
    detail = "check_out must be strictly after check_in."


class InvalidPaymentReference(BookingError):
    status_code = 422
    code = "invalid_payment_reference"
    detail = "Payment reference must be exactly 5 digits."
