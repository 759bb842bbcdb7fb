"""
Occupancy, RSVP and check-in statistics derived from tables and guests
"""

import math
from typing import Dict, Iterable, List

from seating.schemas.guest import GuestRecord, RsvpStatus
from seating.schemas.stats import EventStats, RsvpCounts, TableOccupancy, TableStats
from seating.schemas.table import TableKind, TableRecord
from seating.services.guest_roster import GuestRoster, effective_party_size
from seating.services.table_store import TableStore


def percent(part: int, whole: int) -> int:
    """Percentage rounded half up, clamped to [0, 100]; zero when there is no whole"""
    if whole <= 0:
        return 0
    return max(0, min(100, math.floor(part / whole * 100 + 0.5)))


class StatsAggregator:
    """Pure aggregation over the current guests and tables.

    Nothing is cached between calls: every figure is recomputed from the
    lists passed in, so it cannot drift from them.
    """

    @staticmethod
    def assigned_people_by_table(guests: Iterable[GuestRecord]) -> Dict[str, int]:
        people: Dict[str, int] = {}
        for guest in guests:
            if not guest.table_id:
                continue
            people[guest.table_id] = people.get(guest.table_id, 0) + effective_party_size(guest.party_size)
        return people

    @staticmethod
    def rsvp_counts(guests: List[GuestRecord]) -> RsvpCounts:
        return RsvpCounts(
            coming=len(GuestRoster.filter_by_status(guests, RsvpStatus.COMING)),
            pending=len(GuestRoster.filter_by_status(guests, RsvpStatus.PENDING)),
            declined=len(GuestRoster.filter_by_status(guests, RsvpStatus.DECLINED)),
            total=len(guests),
        )

    @staticmethod
    def table_occupancy(guests: List[GuestRecord], tables: List[TableRecord]) -> List[TableOccupancy]:
        """Per-table occupancy; a table over capacity is reported, not corrected"""
        assigned = StatsAggregator.assigned_people_by_table(guests)
        arrived = StatsAggregator.assigned_people_by_table(
            GuestRoster.filter_by_checked_in(guests, True)
        )
        rows = []
        for table in tables:
            people = assigned.get(table.id, 0)
            kind = TableStore.table_kind(table.shape)
            if kind is TableKind.REGULAR:
                is_full, is_opened = people >= table.capacity, True
            elif kind is TableKind.RESERVE:
                is_full, is_opened = people >= table.capacity, people > 0
            else:
                raise ValueError(f"Unhandled table kind: {kind}")
            rows.append(TableOccupancy(
                table_id=table.id,
                kind=kind,
                capacity=table.capacity,
                assigned_people=people,
                arrived_people=arrived.get(table.id, 0),
                is_full=is_full,
                is_opened=is_opened,
                over_capacity=people > table.capacity,
            ))
        return rows

    @staticmethod
    def table_stats(occupancy: List[TableOccupancy]) -> TableStats:
        regular = [row for row in occupancy if row.kind is TableKind.REGULAR]
        reserve = [row for row in occupancy if row.kind is TableKind.RESERVE]
        full_regular = sum(1 for row in regular if row.is_full)
        return TableStats(
            total_regular=len(regular),
            full_regular=full_regular,
            not_full_regular=max(0, len(regular) - full_regular),
            total_reserve=len(reserve),
            opened_reserve=sum(1 for row in reserve if row.is_opened),
        )

    @staticmethod
    def capacity_in_play(occupancy: List[TableOccupancy]) -> int:
        """Capacity of regular tables plus reserve tables already opened"""
        return sum(row.capacity for row in occupancy if row.is_opened)

    @staticmethod
    def compute_stats(guests: Iterable[GuestRecord], tables: Iterable[TableRecord]) -> EventStats:
        """Full dashboard statistics for one event"""
        guests = list(guests)
        tables = list(tables)
        people = GuestRoster.party_size_sum

        counts = StatsAggregator.rsvp_counts(guests)
        coming = GuestRoster.filter_by_status(guests, RsvpStatus.COMING)
        seated = [guest for guest in guests if guest.table_id]
        checked_in = GuestRoster.filter_by_checked_in(guests, True)
        seated_arrived = [guest for guest in checked_in if guest.table_id]

        arrived_people = people(checked_in)
        seated_arrived_people = people(seated_arrived)

        occupancy = StatsAggregator.table_occupancy(guests, tables)
        total_capacity = StatsAggregator.capacity_in_play(occupancy)

        return EventStats(
            counts=counts,
            invited_people=people(guests),
            confirmed_people=people(coming),
            pending_people=people(GuestRoster.filter_by_status(guests, RsvpStatus.PENDING)),
            declined_people=people(GuestRoster.filter_by_status(guests, RsvpStatus.DECLINED)),
            seated_count=len(seated),
            seated_percent=percent(len(seated), counts.total),
            checked_in_count=len(checked_in),
            checked_in_percent=percent(len(checked_in), counts.total),
            checked_in_confirmed_count=sum(1 for guest in checked_in if guest.rsvp_status == RsvpStatus.COMING),
            checked_in_not_confirmed_count=sum(1 for guest in checked_in if guest.rsvp_status != RsvpStatus.COMING),
            not_confirmed_total=counts.pending + counts.declined,
            arrived_people=arrived_people,
            seated_arrived_people=seated_arrived_people,
            arrived_not_seated_people=max(0, arrived_people - seated_arrived_people),
            total_capacity=total_capacity,
            max_capacity=TableStore.total_capacity(tables),
            free_seats=max(0, total_capacity - seated_arrived_people),
            table_stats=StatsAggregator.table_stats(occupancy),
            tables=occupancy,
        )
