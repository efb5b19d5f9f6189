"""Per-operation loading, error and request-sequence tracking."""

from typing import Dict, Optional


class OperationStatus:
    """
    Status of one logical operation (search, submit, ...).

    Loading is a counter so overlapping calls cannot mask each other's
    completion. Every call takes a ticket from a monotonically increasing
    sequence; only the holder of the latest ticket may publish its result.
    """

    def __init__(self, name: str):
        self.name = name
        self.in_flight = 0
        self.error: Optional[str] = None
        self._sequence = 0

    @property
    def is_loading(self) -> bool:
        return self.in_flight > 0

    @property
    def latest_ticket(self) -> int:
        return self._sequence

    def issue(self) -> int:
        """Start a call and return its sequence ticket."""
        self._sequence += 1
        self.in_flight += 1
        return self._sequence

    def finish(self) -> None:
        """Mark one call as done, whatever its outcome."""
        if self.in_flight > 0:
            self.in_flight -= 1

    def is_latest(self, ticket: int) -> bool:
        return ticket == self._sequence

    def fail(self, message: str) -> None:
        self.error = message

    def clear_error(self) -> None:
        self.error = None

    def __repr__(self) -> str:
        return (
            f"<OperationStatus(name={self.name!r}, in_flight={self.in_flight}, "
            f"sequence={self._sequence}, error={self.error!r})>"
        )


class OperationTracker:
    """Scoped registry of operation statuses; one per booking session."""

    def __init__(self):
        self._operations: Dict[str, OperationStatus] = {}

    def __getitem__(self, name: str) -> OperationStatus:
        if name not in self._operations:
            self._operations[name] = OperationStatus(name)
        return self._operations[name]

    @property
    def is_loading(self) -> bool:
        """True while any tracked operation has a call in flight."""
        return any(op.is_loading for op in self._operations.values())

    def errors(self) -> Dict[str, str]:
        """Current error message per operation, for operations that failed."""
        return {name: op.error for name, op in self._operations.items() if op.error}
