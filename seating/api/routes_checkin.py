"""
Check-in station routes - used by staff at the venue entrance
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from seating.api.deps import get_event_session
from seating.api.ws import websocket_manager
from seating.schemas.guest import CheckInFilter, CheckInUpdate
from seating.services.checkin_service import CheckInService
from seating.services.event_session import EventSeatingSession
from seating.services.guest_roster import GuestRoster
from seating.utils.responses import success_response
from seating.utils.security import verify_admin_token

router = APIRouter(dependencies=[Depends(verify_admin_token)])

# Initialize check-in service with WebSocket manager
checkin_service = CheckInService(websocket_manager)

@router.post("/events/{event_id}/guests/{guest_id}")
async def check_in_guest(
    guest_id: str,
    checkin_data: CheckInUpdate,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Mark a guest as arrived, or undo it, and broadcast the update"""
    result = await checkin_service.check_in_guest(session, guest_id, checkin_data.checked_in)
    message = "Guest checked in successfully" if checkin_data.checked_in else "Guest check-in cleared"
    if checkin_data.checked_in and result["was_already_checked_in"]:
        message = "Guest was already checked in"
    return success_response(message=message, data=result)

@router.get("/events/{event_id}/sections")
async def list_checkin_sections(
    filter: CheckInFilter = Query(CheckInFilter.ALL),
    search: Optional[str] = Query(None),
    session: EventSeatingSession = Depends(get_event_session)
):
    """Guests grouped by category, with arrival counts per section"""
    guests = session.list_guests()
    if filter is CheckInFilter.CHECKED_IN:
        guests = GuestRoster.filter_by_checked_in(guests, True)
    elif filter is CheckInFilter.NOT_CHECKED_IN:
        guests = GuestRoster.filter_by_checked_in(guests, False)
    guests = GuestRoster.search(guests, search)

    all_guests = session.list_guests()
    return success_response(
        message="Check-in sections retrieved successfully",
        data={
            "sections": GuestRoster.sections_by_category(guests, session.categories),
            "counts": {
                "total": len(all_guests),
                "checked_in": len(GuestRoster.filter_by_checked_in(all_guests, True)),
            },
        }
    )
