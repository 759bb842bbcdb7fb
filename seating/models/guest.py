"""
Guest model
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from seating.core.db import Base

class Guest(Base):
    __tablename__ = "guests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), default="")
    party_size = Column(Integer, nullable=True, default=1)
    rsvp_status = Column(String(20), nullable=False, default="pending")  # coming, pending, declined
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=True, index=True)
    checked_in = Column(Boolean, default=False)
    checked_in_at = Column(DateTime, nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = relationship("Event", back_populates="guests")
    table = relationship("Table", back_populates="guests")
    category = relationship("Category", back_populates="guests")
