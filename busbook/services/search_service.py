"""Search parameters holder and route search."""

from datetime import date
from typing import Any, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..backends.base import BackendDataService, day_range
from ..core.exceptions import BackendError, ValidationError
from ..core.observability import get_logger, metrics_collector
from ..core.operations import OperationStatus, OperationTracker
from ..schemas.route import RouteOffer, SearchParameters, StructuredLocation

logger = get_logger(__name__)


class SearchService:
    """
    Holds the current search parameters and the offers they returned.

    Overlapping searches are resolved by sequence number: a response is only
    published if no newer search was issued after it, so a slow earlier
    response cannot overwrite a newer result.
    """

    def __init__(self, backend: BackendDataService, tracker: Optional[OperationTracker] = None):
        self.backend = backend
        self.tracker = tracker or OperationTracker()
        self.params: Optional[SearchParameters] = None
        self.results: List[RouteOffer] = []
        self.locations: List[StructuredLocation] = []

    @property
    def status(self) -> OperationStatus:
        return self.tracker["search"]

    @property
    def is_loading(self) -> bool:
        return self.status.is_loading

    @property
    def error(self) -> Optional[str]:
        return self.status.error

    def set_search_params(
        self,
        origin: Any,
        destination: Any,
        travel_date: Union[date, str],
        passengers: int = 1,
    ) -> SearchParameters:
        """
        Store the search parameters.

        Raises:
            ValidationError: If a field is missing or malformed
        """
        try:
            params = SearchParameters(
                origin=origin,
                destination=destination,
                travel_date=travel_date,
                passengers=passengers,
            )
        except PydanticValidationError as e:
            raise ValidationError(
                detail="Please fill in where, when and how many passengers",
                violations=[
                    {"path": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ],
            ) from e

        self.params = params
        self.status.clear_error()
        return params

    async def search(self) -> Optional[List[RouteOffer]]:
        """
        Query the backend with the stored parameters.

        Returns:
            The offers if this call's response was published, None if it
            failed (see ``error``) or was superseded by a newer search

        Raises:
            ValidationError: If no search parameters were set
        """
        if self.params is None:
            raise ValidationError(
                detail="Please choose an origin, destination and date first",
                violations=[{"path": "search", "message": "search parameters are not set"}],
            )

        params = self.params
        status = self.status
        ticket = status.issue()
        status.clear_error()
        metrics_collector.record_search()
        log = logger.with_context(
            ticket=ticket,
            origin=params.origin_label,
            destination=params.destination_label,
            travel_date=params.travel_date.isoformat(),
        )

        try:
            offers = await self.backend.query_routes(
                params.origin_label,
                params.destination_label,
                day_range(params.travel_date),
            )
        except BackendError as e:
            if status.is_latest(ticket):
                self.results = []
                status.fail(e.user_message)
                log.warning("Search failed", error=e.user_message, code=e.code)
            else:
                metrics_collector.record_stale_response("search")
            return None
        finally:
            status.finish()

        if not status.is_latest(ticket):
            metrics_collector.record_stale_response("search")
            log.info("Discarding stale search response", latest=status.latest_ticket)
            return None

        self.results = offers
        log.info("Search completed", count=len(offers))
        return offers

    async def refresh(self) -> Optional[List[RouteOffer]]:
        """Pull-to-refresh: re-run the current search."""
        return await self.search()

    async def load_locations(self) -> List[StructuredLocation]:
        """Fetch location suggestions; keeps the previous list on failure."""
        status = self.tracker["locations"]
        ticket = status.issue()
        status.clear_error()
        try:
            locations = await self.backend.list_locations()
        except BackendError as e:
            if status.is_latest(ticket):
                status.fail(e.user_message)
            return self.locations
        finally:
            status.finish()

        if status.is_latest(ticket):
            self.locations = locations
        return self.locations

    def suggest_locations(self, query: str, limit: int = 5) -> List[StructuredLocation]:
        """Known locations whose name, region or code contains ``query``."""
        needle = (query or "").strip().lower()
        if not needle:
            return []
        matches = []
        for location in self.locations:
            fields = (location.name, location.region, location.code)
            if any(value and needle in value.lower() for value in fields):
                matches.append(location)
                if len(matches) >= limit:
                    break
        return matches
