"""
Floor-plan annotation model
"""

import uuid
from sqlalchemy import Column, Integer, String, Float, Text, ForeignKey
from sqlalchemy.orm import relationship

from seating.core.db import Base

class Annotation(Base):
    __tablename__ = "annotations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)  # keeps the saved order
    x = Column(Float, nullable=False, default=0.0)
    y = Column(Float, nullable=False, default=0.0)
    text = Column(Text, nullable=False, default="")

    # Relationships
    event = relationship("Event", back_populates="annotations")
