"""
Error kinds raised by the seating core.

All four propagate to the caller untouched; the HTTP layer maps them onto
status codes through ``SeatingError.status_code`` and ``error_code``.
"""

from typing import Any, Optional


class SeatingError(Exception):
    """Base class for every error the seating core raises"""

    status_code = 400
    error_code = "seating_error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(SeatingError):
    """Malformed input: missing id, non-positive party size, bad table data"""

    status_code = 422
    error_code = "validation_error"


class NotFoundError(SeatingError):
    """A referenced guest, table or event is unknown (usually a stale cache)"""

    status_code = 404
    error_code = "not_found"

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found" if resource_id is None else f"{resource} '{resource_id}' not found"
        super().__init__(message, details={"resource": resource, "id": resource_id})
        self.resource = resource
        self.resource_id = resource_id


class CapacityExceededError(SeatingError):
    """Assigning the guest would put the table over its capacity"""

    status_code = 409
    error_code = "capacity_exceeded"

    def __init__(self, table_id: str, capacity: int, occupancy: int, party_size: int):
        super().__init__(
            f"Table '{table_id}' is full: {occupancy} of {capacity} seats taken, "
            f"cannot seat a party of {party_size}",
            details={
                "table_id": table_id,
                "capacity": capacity,
                "occupancy": occupancy,
                "party_size": party_size,
            },
        )
        self.table_id = table_id
        self.capacity = capacity
        self.occupancy = occupancy
        self.party_size = party_size


class PersistenceError(SeatingError):
    """The record store failed or timed out during a load or a write"""

    status_code = 503
    error_code = "persistence_error"
