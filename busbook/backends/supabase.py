"""Backend data service over the Supabase PostgREST API."""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..core.config import Settings, settings
from ..core.exceptions import BackendError, NotFoundError, SeatUnavailableError
from ..core.observability import metrics_collector
from ..schemas.booking import BookedPassenger, BookingStatus, ConfirmedBooking, CreateBookingRequest, parse_age
from ..schemas.route import RouteOffer, StructuredLocation
from .base import (
    BackendDataService,
    DateRange,
    clock_label,
    format_duration,
    generate_booking_reference,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"

# Postgres error codes PostgREST passes through for seat clashes
SEAT_CONFLICT_CODES = {"23505", "23P01"}


def _decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not number.is_finite() or number < 0:
        return default
    return number


def _rating(value: Any) -> Optional[float]:
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return None
    if not 0 <= rating <= 5:
        return None
    return rating


def _count(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number >= 0 else None


def _malformed_response(operation: str) -> BackendError:
    return BackendError(
        detail="The server sent an unexpected response. Please try again later.",
        operation=operation,
        retryable=True,
        code="MALFORMED_RESPONSE",
    )


def route_offer_from_row(row: Dict[str, Any]) -> RouteOffer:
    """Map a ``buses`` row to a route offer, tolerating missing columns."""
    departure_at = parse_timestamp(row.get("departure_time"))
    arrival_at = parse_timestamp(row.get("arrival_time"))
    amenities = row.get("amenities")
    total_seats = _count(row.get("total_seats")) or 50
    available = _count(row.get("seats_available"))

    return RouteOffer(
        id=str(row.get("id") or ""),
        name=row.get("operator") or row.get("operator_name") or None,
        plate_number=row.get("plate_number") or row.get("bus_number") or None,
        origin=row.get("departure_location") or row.get("from_location") or None,
        destination=row.get("arrival_location") or row.get("to_location") or None,
        departure_time=clock_label(departure_at),
        arrival_time=clock_label(arrival_at),
        duration=format_duration(departure_at, arrival_at),
        departure_at=departure_at,
        price=_decimal(row.get("price_ghs", row.get("price"))),
        rating=_rating(row.get("rating")),
        amenities=tuple(str(a) for a in amenities) if isinstance(amenities, list) else None,
        available_seats=available if available is not None else total_seats,
        total_seats=total_seats,
        unavailable_seats=tuple(row.get("unavailable_seats") or ()),
    )


def booking_row_from_request(request: CreateBookingRequest) -> Dict[str, Any]:
    """Insert payload for the ``bookings`` table."""
    return {
        "booking_reference": generate_booking_reference(),
        "user_id": request.user_id,
        "bus_id": request.route_offer_id,
        "operator": request.operator,
        "plate_number": request.plate_number,
        "from_location": request.origin,
        "to_location": request.destination,
        "departure_date": request.travel_date.isoformat() if request.travel_date else None,
        "departure_time": request.departure_time,
        "arrival_time": request.arrival_time,
        "departure_at": request.departure_at.isoformat() if request.departure_at else None,
        "seat_numbers": list(request.seats),
        "passenger_details": [
            {
                "name": p.name,
                "seat_number": p.seat_id,
                "age": p.age,
                "phone": p.phone,
            }
            for p in request.passengers
        ],
        "total_amount": str(request.total_amount),
        "currency": request.currency,
        "payment_method": request.payment_method,
        "status": BookingStatus.CONFIRMED.value,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }


def confirmed_booking_from_row(row: Dict[str, Any]) -> ConfirmedBooking:
    """Map a ``bookings`` row to a confirmed booking."""
    raw_status = row.get("status") or row.get("booking_status") or BookingStatus.CONFIRMED.value
    try:
        status = BookingStatus(str(raw_status).lower())
    except ValueError:
        logger.warning(
            "Unknown booking status - treating as confirmed",
            extra={"booking_id": row.get("id"), "status": raw_status}
        )
        status = BookingStatus.CONFIRMED

    travel_date = row.get("departure_date")
    created_at = parse_timestamp(row.get("created_at")) or datetime.now(timezone.utc)

    return ConfirmedBooking(
        id=str(row["id"]),
        reference=row.get("booking_reference"),
        user_id=str(row.get("user_id") or ""),
        status=status,
        route_offer_id=str(row.get("bus_id") or ""),
        operator=row.get("operator"),
        plate_number=row.get("plate_number"),
        origin=row.get("from_location"),
        destination=row.get("to_location"),
        travel_date=travel_date[:10] if isinstance(travel_date, str) and travel_date else None,
        departure_time=row.get("departure_time"),
        arrival_time=row.get("arrival_time"),
        departure_at=parse_timestamp(row.get("departure_at")),
        seats=tuple(row.get("seat_numbers") or ()),
        passengers=tuple(
            BookedPassenger(
                name=p.get("name") or "",
                seat_id=p.get("seat_number") or p.get("seat_id") or "",
                age=parse_age(p.get("age")),
                phone=p.get("phone"),
            )
            for p in row.get("passenger_details") or ()
        ),
        total_amount=_decimal(row.get("total_amount")),
        currency=row.get("currency") or "GHS",
        payment_method=row.get("payment_method"),
        created_at=created_at,
    )


def location_from_row(row: Dict[str, Any]) -> StructuredLocation:
    return StructuredLocation(
        id=str(row["id"]) if row.get("id") is not None else None,
        name=row["name"],
        region=row.get("state") or row.get("region"),
        country=row.get("country"),
        code=row.get("code"),
    )


class SupabaseDataService(BackendDataService):
    """
    Data service talking to Supabase's REST interface with httpx.

    Args:
        client: Preconfigured client (tests pass one with a mock transport);
            a new one is created from settings when omitted
        config: Settings providing URL, key, schema and timeout
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, config: Optional[Settings] = None):
        self.config = config or settings
        self._owns_client = client is None
        self._headers = {
            "apikey": self.config.supabase_key,
            "Authorization": f"Bearer {self.config.supabase_key}",
            "Accept-Profile": self.config.supabase_schema,
            "Content-Profile": self.config.supabase_schema,
        }
        if client is None:
            client_options: Dict[str, Any] = {"base_url": self.config.supabase_url}
            if self.config.backend_timeout_seconds is not None:
                client_options["timeout"] = httpx.Timeout(self.config.backend_timeout_seconds)
            client = httpx.AsyncClient(**client_options)
        self.client = client

    async def __aenter__(self) -> "SupabaseDataService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _request(
        self,
        method: str,
        table: str,
        operation: str,
        params: Optional[List[tuple[str, str]]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer

        try:
            with metrics_collector.time_backend_call(operation):
                response = await self.client.request(
                    method, f"{REST_PREFIX}/{table}", params=params, json=json, headers=headers
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._map_status_error(e.response, operation) from e
        except httpx.RequestError as e:
            logger.error(
                "Backend request failed",
                extra={"operation": operation, "table": table, "error": str(e)}
            )
            raise BackendError(
                detail=f"Could not connect to server. Please try again later. ({e.__class__.__name__})",
                operation=operation,
                retryable=True,
            ) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(
                "Backend returned a body that is not JSON",
                extra={"operation": operation, "table": table, "status_code": response.status_code}
            )
            raise _malformed_response(operation) from e

    def _map_rows(self, rows: Any, operation: str, mapper: Callable[[Dict[str, Any]], Any]) -> List[Any]:
        if rows is None:
            return []
        try:
            if not isinstance(rows, list):
                raise TypeError(f"expected a list of rows, got {type(rows).__name__}")
            return [mapper(row) for row in rows]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            logger.error(
                "Backend rows could not be read",
                extra={"operation": operation, "error": str(e)}
            )
            raise _malformed_response(operation) from e

    def _map_status_error(self, response: httpx.Response, operation: str) -> BackendError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = body.get("message") or f"Backend returned HTTP {response.status_code}"
        logger.warning(
            "Backend rejected request",
            extra={
                "operation": operation,
                "status_code": response.status_code,
                "code": body.get("code"),
                "detail": message,
            }
        )

        if response.status_code == 409 or body.get("code") in SEAT_CONFLICT_CODES:
            return SeatUnavailableError(detail=message)
        return BackendError(
            detail=message,
            operation=operation,
            status_code=response.status_code,
            retryable=response.status_code >= 500 or response.status_code == 429,
        )

    async def query_routes(
        self,
        origin: str,
        destination: str,
        date_range: Optional[DateRange] = None,
    ) -> List[RouteOffer]:
        params = [
            ("select", "*"),
            ("departure_location", f"eq.{origin}"),
            ("arrival_location", f"eq.{destination}"),
        ]
        if date_range is not None:
            start, end = date_range
            params.append(("departure_time", f"gte.{start.isoformat()}"))
            params.append(("departure_time", f"lte.{end.isoformat()}"))
        params.append(("order", "departure_time.asc"))

        rows = await self._request("GET", "buses", "query_routes", params=params)
        offers = self._map_rows(rows, "query_routes", route_offer_from_row)

        logger.info(
            "Routes fetched",
            extra={"origin": origin, "destination": destination, "count": len(offers)}
        )
        return offers

    async def create_booking(self, request: CreateBookingRequest) -> ConfirmedBooking:
        rows = await self._request(
            "POST",
            "bookings",
            "create_booking",
            json=[booking_row_from_request(request)],
            prefer="return=representation",
        )
        bookings = self._map_rows(rows, "create_booking", confirmed_booking_from_row)
        if not bookings:
            raise BackendError(
                detail="Booking was not returned by the server",
                operation="create_booking",
                retryable=False,
            )

        booking = bookings[0]
        logger.info(
            "Booking created",
            extra={"booking_id": booking.id, "reference": booking.reference, "seats": list(booking.seats)}
        )
        return booking

    async def update_booking_status(self, booking_id: str, status: BookingStatus) -> None:
        rows = await self._request(
            "PATCH",
            "bookings",
            "update_booking_status",
            params=[("id", f"eq.{booking_id}")],
            json={"status": BookingStatus(status).value},
            prefer="return=representation",
        )
        if not rows:
            raise NotFoundError(resource_type="booking", resource_id=booking_id)

    async def list_bookings(self, user_id: str) -> List[ConfirmedBooking]:
        rows = await self._request(
            "GET",
            "bookings",
            "list_bookings",
            params=[
                ("select", "*"),
                ("user_id", f"eq.{user_id}"),
                ("order", "created_at.desc"),
            ],
        )
        return self._map_rows(rows, "list_bookings", confirmed_booking_from_row)

    async def list_locations(self) -> List[StructuredLocation]:
        rows = await self._request("GET", "locations", "list_locations", params=[("select", "*")])
        named = [row for row in self._map_rows(rows, "list_locations", dict) if row.get("name")]
        return self._map_rows(named, "list_locations", location_from_row)
