"""Bus (route offer) model definition."""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, DateTime, Float, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .booking import BookingRecord


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Bus(Base):
    """A scheduled bus trip that can be booked."""

    __tablename__ = "buses"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Operator and vehicle
    operator: Mapped[str] = mapped_column(String(120), nullable=False)
    plate_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Route
    departure_location: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    arrival_location: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    departure_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    arrival_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Price information (stored as minor units, e.g., pesewas)
    price_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    price_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GHS")

    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    amenities: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Seats
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    seats_available: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    unavailable_seats: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Constraints
    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_bus_total_seats_positive"),
        CheckConstraint("seats_available >= 0", name="ck_bus_seats_available_non_negative"),
        CheckConstraint("seats_available <= total_seats", name="ck_bus_seats_available_max"),
        CheckConstraint("price_amount >= 0", name="ck_bus_price_non_negative"),
    )

    # Relationships
    bookings: Mapped[list["BookingRecord"]] = relationship(
        "BookingRecord",
        back_populates="bus",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<Bus(id={self.id}, operator={self.operator}, "
            f"{self.departure_location}->{self.arrival_location}, departs={self.departure_time})>"
        )
