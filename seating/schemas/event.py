"""
Event-related Pydantic schemas
"""

from datetime import datetime
from pydantic import BaseModel, EmailStr

class EventCreate(BaseModel):
    """Schema for creating an event"""
    name: str
    date: datetime
    organizer_email: EmailStr

class EventResponse(BaseModel):
    """Basic event response"""
    id: str
    name: str
    date: datetime
    organizer_email: str
    created_at: datetime

    class Config:
        from_attributes = True
