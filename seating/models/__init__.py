"""
Database models package
"""

from .event import Event
from .table import Table
from .guest import Guest
from .category import Category
from .annotation import Annotation

__all__ = ["Event", "Table", "Guest", "Category", "Annotation"]
