"""
Shared route dependencies
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from seating.core.db import SessionLocal, get_db
from seating.services.event_session import EventSeatingSession
from seating.services.repositories import RecordStore


def get_session_factory():
    """Session factory for work that outlives a request, such as a WebSocket"""
    return SessionLocal


def get_record_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


async def get_event_session(event_id: str, store: RecordStore = Depends(get_record_store)) -> EventSeatingSession:
    """A freshly loaded session for the event in the path; one per request"""
    session = EventSeatingSession(event_id, store)
    await session.load()
    return session
