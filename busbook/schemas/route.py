"""Route offer, location and search-related Pydantic schemas."""

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ValidationError


class RouteOffer(BaseModel):
    """A bookable scheduled trip returned by a search. Immutable."""

    model_config = {"frozen": True}

    id: str = Field(..., description="Unique route offer ID")
    name: Optional[str] = Field(None, description="Operator name")
    plate_number: Optional[str] = Field(None, description="Vehicle plate number")
    origin: Optional[str] = Field(None, description="Departure location")
    destination: Optional[str] = Field(None, description="Arrival location")
    departure_time: Optional[str] = Field(None, description="Departure clock time, e.g. '08:00 AM'")
    arrival_time: Optional[str] = Field(None, description="Arrival clock time, e.g. '02:00 PM'")
    duration: Optional[str] = Field(None, description="Trip duration, e.g. '6h 0m'")
    departure_at: Optional[datetime] = Field(None, description="Departure timestamp when known")
    price: Decimal = Field(..., ge=0, description="Unit price per passenger")
    rating: Optional[float] = Field(None, ge=0, le=5, description="Average operator rating")
    amenities: Optional[tuple[str, ...]] = Field(None, description="Amenities on board")
    available_seats: int = Field(0, ge=0)
    total_seats: int = Field(0, ge=0)
    unavailable_seats: tuple[str, ...] = Field((), description="Seat IDs that cannot be selected")

    def is_seat_available(self, seat_id: str) -> bool:
        return seat_id not in self.unavailable_seats


class PlainTextLocation(BaseModel):
    """Free-form location typed by the user."""

    model_config = {"frozen": True}

    kind: Literal["text"] = "text"
    text: str = Field(..., min_length=1)


class StructuredLocation(BaseModel):
    """Location record from the locations table."""

    model_config = {"frozen": True}

    kind: Literal["structured"] = "structured"
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    region: Optional[str] = None
    country: Optional[str] = None
    code: Optional[str] = None


Location = Annotated[Union[PlainTextLocation, StructuredLocation], Field(discriminator="kind")]

_location_adapter = TypeAdapter(Location)


def resolve_location(raw: Any) -> Union[PlainTextLocation, StructuredLocation]:
    """
    Turn a raw location value into a tagged location.

    Strings become ``PlainTextLocation``; mappings with a ``name`` become
    ``StructuredLocation`` (``state`` is accepted as an alias of ``region``).

    Raises:
        ValidationError: If the value is blank or of an unsupported shape
    """
    if isinstance(raw, (PlainTextLocation, StructuredLocation)):
        return raw

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise ValidationError(
                detail="Location cannot be empty",
                violations=[{"path": "location", "message": "must not be blank"}],
            )
        return PlainTextLocation(text=text)

    if isinstance(raw, Mapping):
        data = dict(raw)
        if "kind" not in data:
            data["kind"] = "structured" if "name" in data else "text"
        if "state" in data and "region" not in data:
            data["region"] = data.pop("state")
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        try:
            return _location_adapter.validate_python(data)
        except PydanticValidationError as e:
            raise ValidationError(
                detail="Location record is malformed",
                violations=[
                    {"path": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ],
            ) from e

    raise ValidationError(detail=f"Unsupported location value: {raw!r}")


def location_label(location: Union[PlainTextLocation, StructuredLocation]) -> str:
    """Name used when querying the backend and in summaries."""
    if isinstance(location, StructuredLocation):
        return location.name
    return location.text


class SearchParameters(BaseModel):
    """Origin, destination, travel date and passenger count of a search."""

    origin: Location
    destination: Location
    travel_date: date
    passengers: int = Field(1, ge=1)

    @field_validator("origin", "destination", mode="before")
    @classmethod
    def resolve_raw_location(cls, v: Any) -> Any:
        return resolve_location(v)

    @property
    def origin_label(self) -> str:
        return location_label(self.origin)

    @property
    def destination_label(self) -> str:
        return location_label(self.destination)


class SortKey(str, Enum):
    """Sort orders offered on the results list."""
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"
    RATING = "rating"
    DEPARTURE = "departure"


class RouteFilters(BaseModel):
    """Filters applied to an in-memory list of route offers. Unset fields do not filter."""

    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    amenities: tuple[str, ...] = Field((), description="Every listed amenity must be present")
    query: Optional[str] = Field(None, description="Case-insensitive text matched against name, plate, origin, destination")
