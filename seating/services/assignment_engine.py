"""
Guest-to-table assignment under the table capacity invariant
"""

import logging
from typing import Any, Iterable, Optional

from seating.core.errors import CapacityExceededError, SeatingError, ValidationError
from seating.schemas.guest import GuestRecord, MoveFailure, MoveResult
from seating.services.guest_roster import GuestRoster, effective_party_size
from seating.services.table_store import TableStore

logger = logging.getLogger(__name__)


def require_id(value: Any, field: str) -> str:
    """Reject missing, blank or non-string ids before touching any store"""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", details={"field": field, "value": value})
    return value


def require_party_size(guest: GuestRecord) -> int:
    """Party size of a guest about to be seated.

    A missing value counts as one person, an explicit zero or negative
    value is rejected.
    """
    size = guest.party_size
    if size is not None and not isinstance(size, bool) and isinstance(size, int) and size < 1:
        raise ValidationError(
            f"Guest '{guest.id}' has a non-positive party size ({size})",
            details={"guest_id": guest.id, "party_size": size},
        )
    return effective_party_size(size)


class AssignmentEngine:
    """The only writer of ``GuestRecord.table_id``.

    Every method either applies its change completely or raises and leaves
    both stores as they were. ``plan_*`` methods run the same checks and
    return the would-be record without applying it, so a caller can persist
    first and commit to memory afterwards.
    """

    def __init__(self, tables: TableStore, roster: GuestRoster):
        self.tables = tables
        self.roster = roster

    def occupancy(self, table_id: str, exclude_guest_id: Optional[str] = None) -> int:
        """People currently assigned to a table"""
        seated = (
            guest for guest in self.roster.list_guests()
            if guest.table_id == table_id and guest.id != exclude_guest_id
        )
        return GuestRoster.party_size_sum(seated)

    def plan_assign(self, guest_id: str, table_id: str) -> GuestRecord:
        require_id(guest_id, "guest_id")
        require_id(table_id, "table_id")
        guest = self.roster.get(guest_id)
        table = self.tables.get(table_id)
        party_size = require_party_size(guest)

        if guest.table_id == table_id:
            return guest

        current = self.occupancy(table_id, exclude_guest_id=guest_id)
        if current + party_size > table.capacity:
            raise CapacityExceededError(table_id, table.capacity, current, party_size)
        return guest.model_copy(update={"table_id": table_id})

    def plan_unassign(self, guest_id: str) -> GuestRecord:
        require_id(guest_id, "guest_id")
        guest = self.roster.get(guest_id)
        if guest.table_id is None:
            return guest
        return guest.model_copy(update={"table_id": None})

    def assign(self, guest_id: str, table_id: str) -> GuestRecord:
        """Seat a guest; idempotent when the guest already sits there"""
        updated = self.plan_assign(guest_id, table_id)
        self.roster.replace(updated)
        logger.info(f"Guest {guest_id} assigned to table {table_id}")
        return updated

    def unassign(self, guest_id: str) -> GuestRecord:
        updated = self.plan_unassign(guest_id)
        self.roster.replace(updated)
        return updated

    def move_many(self, guest_ids: Iterable[str], target_table_id: str) -> MoveResult:
        """Assign each guest in order, continuing past failures.

        Guests moved earlier in the batch count toward the capacity seen by
        later ones. Nothing already moved is rolled back.
        """
        result = MoveResult()
        for guest_id in guest_ids:
            try:
                self.assign(guest_id, target_table_id)
            except SeatingError as exc:
                logger.info(f"Batch move of guest {guest_id} to table {target_table_id} failed: {exc.message}")
                result.failed.append(MoveFailure(id=str(guest_id), reason=exc.error_code, message=exc.message))
            else:
                result.moved.append(guest_id)
        return result

    def delete_guest(self, guest_id: str) -> None:
        """Unassign and remove in one step, so no capacity stays held"""
        require_id(guest_id, "guest_id")
        # Occupancy is derived from the roster, so dropping the record frees its seats
        self.roster.remove(guest_id)
        logger.info(f"Guest {guest_id} deleted")
