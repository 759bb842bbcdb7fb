"""
Table-related Pydantic schemas
"""

from enum import Enum
from typing import Optional
from pydantic import Field

from .common import RecordModel, WireModel

class TableShape(str, Enum):
    """Physical shape of a table on the floor plan"""
    REGULAR_SQUARE = "regular-square"
    REGULAR_RECTANGLE = "regular-rectangle"
    RESERVE = "reserve"

class TableKind(str, Enum):
    """Which statistics a table takes part in"""
    REGULAR = "regular"
    RESERVE = "reserve"

# One entry per TableShape; every consumer resolves the kind through this map
SHAPE_KINDS = {
    TableShape.REGULAR_SQUARE: TableKind.REGULAR,
    TableShape.REGULAR_RECTANGLE: TableKind.REGULAR,
    TableShape.RESERVE: TableKind.RESERVE,
}

class TableRecord(RecordModel):
    """A physical table for one event"""
    id: str
    number: Optional[int] = None
    name: Optional[str] = None
    capacity: int = Field(gt=0)
    shape: TableShape = TableShape.REGULAR_SQUARE
    x: Optional[float] = None
    y: Optional[float] = None

class TableCreate(WireModel):
    """Schema for creating a table"""
    number: Optional[int] = None
    name: Optional[str] = None
    capacity: int = Field(gt=0)
    shape: TableShape = TableShape.REGULAR_SQUARE
    x: Optional[float] = None
    y: Optional[float] = None

class TableUpdate(WireModel):
    """Schema for replacing table fields; omitted fields keep their value"""
    number: Optional[int] = None
    name: Optional[str] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    shape: Optional[TableShape] = None
    x: Optional[float] = None
    y: Optional[float] = None
