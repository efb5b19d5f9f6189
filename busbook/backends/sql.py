"""Backend data service backed by SQLAlchemy (Postgres in production, SQLite in tests)."""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Set
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..core.exceptions import BackendError, NotFoundError, RouteUnavailableError, SeatUnavailableError
from ..core.observability import metrics_collector
from ..models.booking import BookingRecord
from ..models.bus import Bus
from ..schemas.booking import BookedPassenger, BookingStatus, ConfirmedBooking, CreateBookingRequest
from ..schemas.route import RouteOffer, StructuredLocation
from .base import BackendDataService, DateRange, clock_label, format_duration, generate_booking_reference

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return Decimal(amount) / 100


def _aware(moment: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored timestamps are UTC."""
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _parse_uuid(value: str, resource_type: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as e:
        raise NotFoundError(resource_type=resource_type, resource_id=str(value)) from e


class SqlDataService(BackendDataService):
    """Data service over the ``buses`` and ``bookings`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def _taken_seats(bus: Bus) -> Set[str]:
        """Seats blocked on the bus or held by an active booking."""
        taken = set(bus.unavailable_seats or ())
        for booking in bus.bookings:
            if booking.status in ACTIVE_STATUSES:
                taken.update(booking.seat_numbers)
        return taken

    def _to_offer(self, bus: Bus) -> RouteOffer:
        departure_at = _aware(bus.departure_time)
        arrival_at = _aware(bus.arrival_time)
        return RouteOffer(
            id=str(bus.id),
            name=bus.operator,
            plate_number=bus.plate_number,
            origin=bus.departure_location,
            destination=bus.arrival_location,
            departure_time=clock_label(departure_at),
            arrival_time=clock_label(arrival_at),
            duration=format_duration(departure_at, arrival_at),
            departure_at=departure_at,
            price=from_minor_units(bus.price_amount),
            rating=bus.rating,
            amenities=tuple(bus.amenities) if bus.amenities is not None else None,
            available_seats=bus.seats_available,
            total_seats=bus.total_seats,
            unavailable_seats=tuple(sorted(self._taken_seats(bus))),
        )

    @staticmethod
    def _to_booking(record: BookingRecord, bus: Bus) -> ConfirmedBooking:
        departure_at = _aware(bus.departure_time)
        return ConfirmedBooking(
            id=str(record.id),
            reference=record.booking_reference,
            user_id=record.user_id,
            status=BookingStatus(record.status),
            route_offer_id=str(record.bus_id),
            operator=bus.operator,
            plate_number=bus.plate_number,
            origin=bus.departure_location,
            destination=bus.arrival_location,
            travel_date=record.departure_date,
            departure_time=clock_label(departure_at),
            arrival_time=clock_label(_aware(bus.arrival_time)),
            departure_at=departure_at,
            seats=tuple(record.seat_numbers),
            passengers=tuple(BookedPassenger(**p) for p in record.passenger_details),
            total_amount=from_minor_units(record.total_amount),
            currency=record.currency,
            payment_method=record.payment_method,
            created_at=_aware(record.created_at),
        )

    async def query_routes(
        self,
        origin: str,
        destination: str,
        date_range: Optional[DateRange] = None,
    ) -> List[RouteOffer]:
        stmt = (
            select(Bus)
            .options(selectinload(Bus.bookings))
            .where(
                func.lower(Bus.departure_location) == origin.lower(),
                func.lower(Bus.arrival_location) == destination.lower(),
            )
            .order_by(Bus.departure_time)
        )
        if date_range is not None:
            start, end = date_range
            stmt = stmt.where(Bus.departure_time >= start, Bus.departure_time <= end)

        try:
            with metrics_collector.time_backend_call("query_routes"):
                async with self.session_factory() as db:
                    result = await db.execute(stmt)
                    buses = list(result.scalars())
        except SQLAlchemyError as e:
            logger.error("Route query failed", extra={"origin": origin, "destination": destination, "error": str(e)})
            raise BackendError(operation="query_routes") from e

        return [self._to_offer(bus) for bus in buses]

    async def create_booking(self, request: CreateBookingRequest) -> ConfirmedBooking:
        """
        Persist a booking after checking its seats against active bookings.

        Raises:
            RouteUnavailableError: If the bus does not exist
            SeatUnavailableError: If a seat is blocked or already booked
            BackendError: On any other database failure
        """
        try:
            bus_id = UUID(str(request.route_offer_id))
        except ValueError as e:
            raise RouteUnavailableError(request.route_offer_id) from e

        try:
            with metrics_collector.time_backend_call("create_booking"):
                async with self.session_factory() as db:
                    stmt = (
                        select(Bus)
                        .options(selectinload(Bus.bookings))
                        .where(Bus.id == bus_id)
                        .with_for_update()
                    )
                    bus = (await db.execute(stmt)).scalar_one_or_none()
                    if bus is None:
                        logger.warning("Booking rejected - unknown bus", extra={"bus_id": request.route_offer_id})
                        raise RouteUnavailableError(request.route_offer_id)

                    clash = sorted(set(request.seats) & self._taken_seats(bus))
                    if clash:
                        logger.warning(
                            "Booking rejected - seats already taken",
                            extra={"bus_id": request.route_offer_id, "seats": clash}
                        )
                        raise SeatUnavailableError(seats=clash)

                    if len(request.seats) > bus.seats_available:
                        raise SeatUnavailableError(
                            detail=f"Only {bus.seats_available} seat(s) left on this bus"
                        )

                    record = BookingRecord(
                        bus_id=bus.id,
                        booking_reference=generate_booking_reference(),
                        user_id=request.user_id,
                        departure_date=request.travel_date,
                        seat_numbers=list(request.seats),
                        passenger_details=[p.model_dump() for p in request.passengers],
                        total_amount=to_minor_units(request.total_amount),
                        currency=request.currency,
                        payment_method=request.payment_method,
                        status=BookingStatus.CONFIRMED.value,
                    )
                    bus.seats_available -= len(request.seats)

                    db.add(record)
                    db.add(bus)
                    await db.commit()
                    await db.refresh(record)
        except IntegrityError as e:
            logger.error("Booking insert violated a constraint", extra={"error": str(e)})
            raise BackendError(
                detail="The booking could not be saved",
                operation="create_booking",
                retryable=False,
            ) from e
        except SQLAlchemyError as e:
            logger.error("Booking insert failed", extra={"error": str(e)})
            raise BackendError(operation="create_booking") from e

        logger.info(
            "Booking created",
            extra={
                "booking_id": str(record.id),
                "reference": record.booking_reference,
                "bus_id": str(bus.id),
                "seats": record.seat_numbers,
                "remaining_seats": bus.seats_available,
            }
        )
        return self._to_booking(record, bus)

    async def update_booking_status(self, booking_id: str, status: BookingStatus) -> None:
        record_id = _parse_uuid(booking_id, "booking")
        status = BookingStatus(status)

        try:
            async with self.session_factory() as db:
                stmt = (
                    select(BookingRecord)
                    .options(selectinload(BookingRecord.bus))
                    .where(BookingRecord.id == record_id)
                )
                record = (await db.execute(stmt)).scalar_one_or_none()
                if record is None:
                    raise NotFoundError(resource_type="booking", resource_id=booking_id)

                was_active = record.status in ACTIVE_STATUSES
                record.status = status.value
                if was_active and status is BookingStatus.CANCELLED:
                    # Restore capacity
                    record.bus.seats_available += len(record.seat_numbers)
                    db.add(record.bus)

                db.add(record)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("Booking status update failed", extra={"booking_id": booking_id, "error": str(e)})
            raise BackendError(operation="update_booking_status") from e

        logger.info("Booking status updated", extra={"booking_id": booking_id, "status": status.value})

    async def list_bookings(self, user_id: str) -> List[ConfirmedBooking]:
        stmt = (
            select(BookingRecord)
            .options(selectinload(BookingRecord.bus))
            .where(BookingRecord.user_id == user_id)
            .order_by(BookingRecord.created_at.desc())
        )
        try:
            async with self.session_factory() as db:
                records = list((await db.execute(stmt)).scalars())
        except SQLAlchemyError as e:
            logger.error("Booking listing failed", extra={"user_id": user_id, "error": str(e)})
            raise BackendError(operation="list_bookings") from e

        return [self._to_booking(record, record.bus) for record in records]

    async def list_locations(self) -> List[StructuredLocation]:
        try:
            async with self.session_factory() as db:
                origins = await db.execute(select(Bus.departure_location).distinct())
                destinations = await db.execute(select(Bus.arrival_location).distinct())
                names = set(origins.scalars()) | set(destinations.scalars())
        except SQLAlchemyError as e:
            raise BackendError(operation="list_locations") from e

        return [StructuredLocation(name=name) for name in sorted(names)]
