"""
Guest category schemas
"""

from enum import Enum
from typing import List
from pydantic import Field

from .common import RecordModel, WireModel
from .guest import GuestRecord

class CategorySide(str, Enum):
    """Which side of the event a category belongs to"""
    GROOM = "groom"
    BRIDE = "bride"

class CategoryRecord(RecordModel):
    """Display grouping for guests; carries no capacity semantics"""
    id: str
    name: str
    side: CategorySide = CategorySide.GROOM

class CategoryCreate(WireModel):
    """Schema for creating a category"""
    name: str = Field(min_length=1)
    side: CategorySide = CategorySide.GROOM

class CategorySection(WireModel):
    """Guests of one category as shown at a check-in station"""
    key: str
    name: str
    guests: List[GuestRecord]
    checked_in: int
    total: int
