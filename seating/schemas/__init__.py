"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .table import *
from .guest import *
from .category import *
from .annotation import *
from .stats import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "WireModel",
    "RecordModel",
    "EventCreate",
    "EventResponse",
    "TableShape",
    "TableKind",
    "TableRecord",
    "TableCreate",
    "TableUpdate",
    "SHAPE_KINDS",
    "RsvpStatus",
    "GuestRecord",
    "GuestCreate",
    "AssignRequest",
    "MoveManyRequest",
    "MoveFailure",
    "MoveResult",
    "CheckInUpdate",
    "RsvpUpdate",
    "CheckInFilter",
    "CategorySide",
    "CategoryRecord",
    "CategoryCreate",
    "CategorySection",
    "AnnotationRecord",
    "AnnotationsReplace",
    "RsvpCounts",
    "TableStats",
    "TableOccupancy",
    "EventStats",
]
