"""Booking model definition."""

from datetime import date, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from ..schemas.booking import BookingStatus
from .bus import utcnow

if TYPE_CHECKING:
    from .bus import Bus


class BookingRecord(Base):
    """Booking entity persisted by the SQL data service."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign key to bus
    bus_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("buses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Booking details
    booking_reference: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    departure_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    seat_numbers: Mapped[list] = mapped_column(JSON, nullable=False)
    passenger_details: Mapped[list] = mapped_column(JSON, nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GHS")
    payment_method: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.CONFIRMED.value,
        index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("length(user_id) > 0", name="ck_booking_user_id_not_empty"),
    )

    # Relationships
    bus: Mapped["Bus"] = relationship("Bus", back_populates="bookings")

    def __repr__(self) -> str:
        return (
            f"<BookingRecord(id={self.id}, reference={self.booking_reference}, "
            f"seats={self.seat_numbers}, status={self.status})>"
        )
