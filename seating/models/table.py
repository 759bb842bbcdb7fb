"""
Table model
"""

import uuid
from sqlalchemy import Column, Integer, String, Float, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from seating.core.db import Base

class Table(Base):
    __tablename__ = "tables"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    number = Column(Integer, nullable=True)
    name = Column(String(100), nullable=True)
    capacity = Column(Integer, nullable=False)
    shape = Column(String(32), nullable=False, default="regular-square")  # regular-square, regular-rectangle, reserve
    x = Column(Float, nullable=True)
    y = Column(Float, nullable=True)

    # Relationships
    event = relationship("Event", back_populates="tables")
    guests = relationship("Guest", back_populates="table")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_tables_capacity_positive"),
    )
