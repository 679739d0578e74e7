from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)

from room_inventory.database.engine import Base


class RoomType(Base):
    __tablename__ = "room_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    capacity = Column(Integer, nullable=False, default=2)
    price = Column(Numeric(10, 2), nullable=False)
    weekend_price = Column(Numeric(10, 2), nullable=True)

    # Default number of units sellable per night, copied onto new calendar rows
    max_sales_quantity = Column(Integer, nullable=False, default=10)
    is_available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)


class RoomAvailability(Base):
    """One night of one room type: capacity, consumption and admin overrides."""

    __tablename__ = "room_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_type_id = Column(ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)

    is_available = Column(Boolean, nullable=False, default=True)
    max_sales_quantity = Column(Integer, nullable=False, default=10)
    booked_quantity = Column(Integer, nullable=False, default=0)

    weekday_price = Column(Numeric(10, 2), nullable=True)
    weekend_price = Column(Numeric(10, 2), nullable=True)
    # None = detect from weekday, True = force weekend rate, False = force weekday rate
    is_holiday_override = Column(Boolean, nullable=True)
    reason = Column(String(200), nullable=True)

    # Bumped on every counter change, used by guarded updates
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("room_type_id", "date", name="uq_room_availability_room_type_date"),
    )

    @property
    def remaining_quantity(self) -> int:
        return max(self.max_sales_quantity - self.booked_quantity, 0)

    @property
    def is_bookable(self) -> bool:
        return self.is_available and self.booked_quantity < self.max_sales_quantity

    def __repr__(self):
        return (
            f"RoomAvailability(room_type_id={self.room_type_id}, date={self.date}, "
            f"booked={self.booked_quantity}/{self.max_sales_quantity}, available={self.is_available})"
        )
