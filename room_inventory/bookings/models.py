import enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func

from room_inventory.database.engine import Base


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    CASH_ON_SITE = "cash_on_site"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)

    @property
    def consumes_inventory(self) -> bool:
        # Completed stays remain counted as historical occupancy
        return self is not BookingStatus.CANCELLED


class PaymentMethod(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_SITE = "cash_on_site"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_type_id = Column(ForeignKey("room_types.id"), nullable=False)

    # Guest contact
    guest_name = Column(String(100), nullable=False)
    guest_email = Column(String(320), nullable=True)
    guest_phone = Column(String(20), nullable=False)

    # check_out is exclusive: the stay occupies [check_in, check_out)
    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    number_of_guests = Column(Integer, nullable=False, default=2)
    total_price = Column(Numeric(10, 2), nullable=False)
    special_requests = Column(Text, nullable=True)

    status = Column(String(32), nullable=False, default=BookingStatus.PENDING.value)
    payment_method = Column(String(32), nullable=True)
    payment_reference = Column(String(5), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        # Overlap lookups for admission
        Index("idx_bookings_room_type_stay", room_type_id, check_in_date, check_out_date),
        Index("idx_bookings_status", status),
    )

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    def __repr__(self):
        return (
            f"Booking(id={self.id}, room_type_id={self.room_type_id}, "
            f"{self.check_in_date}..{self.check_out_date}, status={self.status})"
        )
