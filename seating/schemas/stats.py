"""
Derived statistics schemas
"""

from typing import List

from .common import WireModel
from .table import TableKind

class RsvpCounts(WireModel):
    """Guest records per RSVP status"""
    coming: int
    pending: int
    declined: int
    total: int

class TableStats(WireModel):
    """Fullness of regular tables and usage of reserve tables"""
    total_regular: int
    full_regular: int
    not_full_regular: int
    total_reserve: int
    opened_reserve: int

class TableOccupancy(WireModel):
    """Live occupancy of one table"""
    table_id: str
    kind: TableKind
    capacity: int
    assigned_people: int
    arrived_people: int
    is_full: bool
    is_opened: bool
    over_capacity: bool

class EventStats(WireModel):
    """Everything staff see on the event dashboard"""
    counts: RsvpCounts
    invited_people: int
    confirmed_people: int
    pending_people: int
    declined_people: int
    seated_count: int
    seated_percent: int
    checked_in_count: int
    checked_in_percent: int
    checked_in_confirmed_count: int
    checked_in_not_confirmed_count: int
    not_confirmed_total: int
    arrived_people: int
    seated_arrived_people: int
    arrived_not_seated_people: int
    total_capacity: int
    max_capacity: int
    free_seats: int
    table_stats: TableStats
    tables: List[TableOccupancy]
