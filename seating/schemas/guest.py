"""
Guest-related Pydantic schemas
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import Field

from .common import RecordModel, WireModel

class RsvpStatus(str, Enum):
    """Guest confirmation state"""
    COMING = "coming"
    PENDING = "pending"
    DECLINED = "declined"

class GuestRecord(RecordModel):
    """A guest record; one record may stand for a whole family"""
    id: str
    name: str
    phone: str = ""
    # Stored as found; sums treat a missing or invalid value as 1
    party_size: Optional[int] = 1
    rsvp_status: RsvpStatus = RsvpStatus.PENDING
    table_id: Optional[str] = None
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    category_id: Optional[str] = None

class GuestCreate(WireModel):
    """Schema for creating a guest"""
    name: str = Field(min_length=1)
    phone: str = ""
    party_size: int = Field(default=1, ge=1)
    rsvp_status: RsvpStatus = RsvpStatus.PENDING
    category_id: Optional[str] = None

class AssignRequest(WireModel):
    """Seat a guest at a table"""
    table_id: str

class MoveManyRequest(WireModel):
    """Move several guests to one table, in order"""
    guest_ids: List[str]

class MoveFailure(WireModel):
    """One guest a batch move could not seat"""
    id: str
    reason: str
    message: str

class MoveResult(WireModel):
    """Outcome of a batch move"""
    moved: List[str] = Field(default_factory=list)
    failed: List[MoveFailure] = Field(default_factory=list)

class CheckInUpdate(WireModel):
    """Check-in station toggle"""
    checked_in: bool

class RsvpUpdate(WireModel):
    """RSVP status change"""
    rsvp_status: RsvpStatus

class CheckInFilter(str, Enum):
    """Check-in station list filter"""
    ALL = "all"
    CHECKED_IN = "checked_in"
    NOT_CHECKED_IN = "not_checked_in"
