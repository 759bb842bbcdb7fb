"""
Event-scoped seating session: in-memory stores plus write-through persistence
"""

import asyncio
import functools
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from google.api_core.exceptions import GoogleAPIError
from sqlalchemy.exc import SQLAlchemyError

from seating.core.config import settings
from seating.core.errors import (
    CapacityExceededError,
    NotFoundError,
    PersistenceError,
    SeatingError,
    ValidationError,
)
from seating.schemas.annotation import AnnotationRecord
from seating.schemas.category import CategoryCreate, CategoryRecord
from seating.schemas.guest import GuestCreate, GuestRecord, MoveFailure, MoveResult, RsvpStatus
from seating.schemas.stats import EventStats
from seating.schemas.table import TableCreate, TableRecord, TableUpdate
from seating.services.annotation_layer import AnnotationLayer
from seating.services.assignment_engine import AssignmentEngine, require_id
from seating.services.guest_roster import GuestRoster
from seating.services.repositories import RecordStore
from seating.services.stats_service import StatsAggregator
from seating.services.table_store import TableStore

logger = logging.getLogger(__name__)


class EventSeatingSession:
    """Tables, guests, categories and annotations of one event, owned by one caller.

    Lifecycle:
      1. ``await session.load()`` fetches everything from the record store.
      2. Mutations check locally, write to the store under a timeout, and
         only then change memory. A failed write leaves memory untouched.
      3. When the store rejects a write the local check had allowed
         (capacity taken by another device, record deleted elsewhere) the
         session reloads before re-raising.
      4. ``await session.refresh()`` at any time to resynchronize.
      5. After a store call times out its worker may still be running on
         the store, so the session refuses every further store call. Open
         a new session with a new store to continue.

    ``stats()`` is recomputed from memory on every call.
    """

    def __init__(self, event_id: str, store: RecordStore, timeout: Optional[float] = None):
        self.event_id = require_id(event_id, "event_id")
        self.store = store
        self.timeout = settings.PERSISTENCE_TIMEOUT_SECONDS if timeout is None else timeout
        self.tables = TableStore(event_id)
        self.roster = GuestRoster(event_id)
        self.annotations = AnnotationLayer(event_id)
        self.categories: List[CategoryRecord] = []
        self.engine = AssignmentEngine(self.tables, self.roster)
        self.loaded = False
        self.stale = True
        self.abandoned_call: Optional[str] = None

    # -------- persistence plumbing --------

    async def _call(self, fn, *args):
        """Run a blocking store call in a worker thread, bounded by the timeout.

        On timeout the worker is abandoned, not joined. It may still hold
        the store, so every later call is refused instead of sharing it.
        """
        if self.abandoned_call is not None:
            raise PersistenceError(
                f"Record store may still be running an abandoned {self.abandoned_call} call",
                details={"event_id": self.event_id, "call": self.abandoned_call},
            )
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(fn, *args)), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            self.stale = True
            self.abandoned_call = fn.__name__
            logger.error(f"Record store call {fn.__name__} timed out after {self.timeout}s for event {self.event_id}")
            raise PersistenceError(f"Record store did not answer within {self.timeout} seconds") from exc
        except SeatingError:
            self.stale = True
            raise
        except (SQLAlchemyError, GoogleAPIError, OSError) as exc:
            self.stale = True
            logger.error(f"Record store call {fn.__name__} failed for event {self.event_id}: {exc}")
            raise PersistenceError(f"Record store failure: {exc}") from exc

    async def load(self) -> None:
        """Fetch a fresh snapshot; on failure the previous snapshot stays"""
        if not await self._call(self.store.event_exists, self.event_id):
            raise NotFoundError("Event", self.event_id)
        tables = await self._call(self.store.list_tables, self.event_id)
        guests = await self._call(self.store.list_guests, self.event_id)
        categories = await self._call(self.store.list_categories, self.event_id)
        annotations = await self._call(self.store.list_annotations, self.event_id)

        self.tables.load(tables)
        self.roster.load(guests)
        self.categories = list(categories)
        self.annotations.load(annotations)
        self.loaded = True
        self.stale = False
        logger.info(f"Loaded event {self.event_id}: {len(tables)} tables, {len(guests)} guests")

    async def refresh(self) -> None:
        await self.load()

    async def _resync_after_rejection(self, exc: SeatingError) -> None:
        logger.warning(f"Record store rejected a write for event {self.event_id} ({exc.error_code}), reloading")
        try:
            await self.load()
        except SeatingError as reload_exc:
            logger.error(f"Reload of event {self.event_id} failed: {reload_exc.message}")

    def _require_loaded(self) -> None:
        if not self.loaded:
            raise RuntimeError(f"Event {self.event_id} is not loaded; call load() first")

    # -------- reads --------

    def list_tables(self, event_id: Optional[str] = None) -> List[TableRecord]:
        self._require_loaded()
        return self.tables.list_tables(event_id)

    def list_guests(self, event_id: Optional[str] = None) -> List[GuestRecord]:
        self._require_loaded()
        return self.roster.list_guests(event_id)

    def get_guest(self, guest_id: str) -> GuestRecord:
        self._require_loaded()
        return self.roster.get(require_id(guest_id, "guest_id"))

    def get_table(self, table_id: str) -> TableRecord:
        self._require_loaded()
        return self.tables.get(require_id(table_id, "table_id"))

    def stats(self) -> EventStats:
        self._require_loaded()
        return StatsAggregator.compute_stats(self.roster.list_guests(), self.tables.list_tables())

    # -------- assignment --------

    async def _write_assignment(self, guest_id: str, table_id: Optional[str]) -> GuestRecord:
        if table_id is None:
            planned = self.engine.plan_unassign(guest_id)
        else:
            planned = self.engine.plan_assign(guest_id, table_id)
        if planned.table_id == self.roster.get(guest_id).table_id:
            return planned

        await self._call(self.store.assign_table, self.event_id, guest_id, table_id)
        if table_id is None:
            return self.engine.unassign(guest_id)
        return self.engine.assign(guest_id, table_id)

    async def assign(self, guest_id: str, table_id: str) -> GuestRecord:
        """Seat a guest; raises CapacityExceededError when the table is full"""
        self._require_loaded()
        try:
            return await self._write_assignment(guest_id, table_id)
        except (CapacityExceededError, NotFoundError) as exc:
            if self.stale:
                await self._resync_after_rejection(exc)
            raise

    async def unassign(self, guest_id: str) -> GuestRecord:
        self._require_loaded()
        try:
            return await self._write_assignment(guest_id, None)
        except NotFoundError as exc:
            if self.stale:
                await self._resync_after_rejection(exc)
            raise

    async def move_many(self, guest_ids: Iterable[str], target_table_id: str) -> MoveResult:
        """Move guests one by one, in order, reporting each failure.

        Earlier moves count toward the capacity later ones see. Already
        moved guests stay moved when a later one fails. A store failure
        ends the batch: the guests not yet written are reported failed.
        """
        self._require_loaded()
        result = MoveResult()
        rejected_by_store = None
        pending = list(guest_ids)
        for index, guest_id in enumerate(pending):
            try:
                await self._write_assignment(guest_id, target_table_id)
            except PersistenceError as exc:
                for skipped in pending[index:]:
                    result.failed.append(MoveFailure(id=str(skipped), reason=exc.error_code, message=exc.message))
                break
            except SeatingError as exc:
                result.failed.append(MoveFailure(id=str(guest_id), reason=exc.error_code, message=exc.message))
                if self.stale:
                    rejected_by_store = exc
            else:
                result.moved.append(guest_id)
        if rejected_by_store is not None:
            await self._resync_after_rejection(rejected_by_store)
        logger.info(
            f"Moved {len(result.moved)} guests to table {target_table_id} "
            f"for event {self.event_id}, {len(result.failed)} failed"
        )
        return result

    async def delete_guest(self, guest_id: str) -> None:
        """Remove a guest; their seats are free as soon as this returns"""
        self._require_loaded()
        self.get_guest(guest_id)
        try:
            await self._call(self.store.delete_guest, self.event_id, guest_id)
        except NotFoundError as exc:
            await self._resync_after_rejection(exc)
            raise
        self.engine.delete_guest(guest_id)

    # -------- plain field updates --------

    async def set_checked_in(self, guest_id: str, checked_in: bool) -> GuestRecord:
        guest = self.get_guest(guest_id)
        if not isinstance(checked_in, bool):
            raise ValidationError("checked_in must be true or false", details={"checked_in": checked_in})
        fields = {"checked_in": checked_in, "checked_in_at": datetime.utcnow() if checked_in else None}
        stored = await self._call(self.store.update_guest, self.event_id, guest_id, fields)
        updated = guest.model_copy(update={"checked_in": stored.checked_in, "checked_in_at": stored.checked_in_at})
        self.roster.replace(updated)
        logger.info(f"Guest {guest_id} {'checked in' if checked_in else 'check-in cleared'} for event {self.event_id}")
        return updated

    async def set_rsvp_status(self, guest_id: str, status: RsvpStatus) -> GuestRecord:
        guest = self.get_guest(guest_id)
        try:
            status = RsvpStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown RSVP status: {status!r}", details={"rsvp_status": status})
        stored = await self._call(self.store.update_guest, self.event_id, guest_id, {"rsvp_status": status.value})
        updated = guest.model_copy(update={"rsvp_status": stored.rsvp_status})
        self.roster.replace(updated)
        return updated

    # -------- record editing done outside the assignment rules --------

    async def add_table(self, data: TableCreate) -> TableRecord:
        self._require_loaded()
        table = await self._call(self.store.create_table, self.event_id, data.model_dump(mode="json"))
        self.tables.replace(table)
        return table

    async def replace_table(self, table_id: str, data: TableUpdate) -> TableRecord:
        """Apply an edited table record; existing guests are never evicted"""
        self.get_table(table_id)
        fields = data.model_dump(mode="json", exclude_unset=True)
        if "capacity" in fields and fields["capacity"] is None:
            raise ValidationError("capacity cannot be cleared", details={"table_id": table_id})
        if "shape" in fields and fields["shape"] is None:
            raise ValidationError("shape cannot be cleared", details={"table_id": table_id})
        table = await self._call(self.store.update_table, self.event_id, table_id, fields)
        self.tables.replace(table)
        seated = self.engine.occupancy(table_id)
        if seated > table.capacity:
            logger.warning(
                f"Table {table_id} of event {self.event_id} now holds {seated} people "
                f"over a capacity of {table.capacity}"
            )
        return table

    async def delete_table(self, table_id: str) -> None:
        """Unseat the table's guests, then drop the table"""
        self.get_table(table_id)
        await self._call(self.store.delete_table, self.event_id, table_id)
        for guest in GuestRoster.filter_by_table(self.roster.list_guests(), table_id):
            self.engine.unassign(guest.id)
        self.tables.remove(table_id)

    async def add_guest(self, data: GuestCreate) -> GuestRecord:
        self._require_loaded()
        guest = await self._call(self.store.create_guest, self.event_id, data.model_dump(mode="json"))
        self.roster.replace(guest)
        return guest

    async def add_category(self, data: CategoryCreate) -> CategoryRecord:
        self._require_loaded()
        category = await self._call(self.store.create_category, self.event_id, data.name, data.side.value)
        self.categories.append(category)
        return category

    async def replace_annotations(self, annotations: Iterable[AnnotationRecord]) -> List[AnnotationRecord]:
        self._require_loaded()
        saved = await self._call(self.store.replace_annotations, self.event_id, list(annotations))
        self.annotations.replace_all(saved)
        return saved
