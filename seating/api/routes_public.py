"""
Public API routes - no authentication required
"""

from fastapi import APIRouter, Depends

from seating.api.deps import get_event_session
from seating.services.event_session import EventSeatingSession
from seating.utils.responses import success_response
from seating.utils.security import enforce_rate_limit

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/events/{event_id}/stats", dependencies=[Depends(enforce_rate_limit)])
async def get_public_stats(session: EventSeatingSession = Depends(get_event_session)):
    """Headline occupancy figures for lobby screens, without per-table rows"""
    stats = session.stats().model_copy(update={"tables": []})
    return success_response(
        message="Event statistics retrieved successfully",
        data=stats
    )
