"""
Admin API routes - requires authentication
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from seating.api.deps import get_event_session
from seating.api.ws import websocket_manager
from seating.core.db import get_db
from seating.schemas.annotation import AnnotationsReplace
from seating.schemas.category import CategoryCreate
from seating.schemas.event import EventCreate, EventResponse
from seating.schemas.guest import AssignRequest, GuestCreate, MoveManyRequest, RsvpStatus, RsvpUpdate
from seating.schemas.table import TableCreate, TableUpdate
from seating.services.checkin_service import CheckInService
from seating.services.event_session import EventSeatingSession
from seating.services.guest_roster import GuestRoster
from seating.services.repositories import EventRepo, use_firestore
from seating.utils.responses import success_response
from seating.utils.security import verify_admin_token

router = APIRouter(dependencies=[Depends(verify_admin_token)])

# Broadcasts every change made here to the event's staff screens
checkin_service = CheckInService(websocket_manager)

# -------- events --------

@router.post("/events")
async def create_event(event_data: EventCreate, db: Session = Depends(get_db)):
    """Create a new event"""
    if use_firestore():
        data = EventRepo.create_fs(event_data.name, event_data.date.isoformat(), event_data.organizer_email)
    else:
        event = EventRepo.create_sql(db, event_data.name, event_data.date, event_data.organizer_email)
        data = EventResponse.model_validate(event)
    return success_response(message="Event created successfully", data=data, status_code=201)

@router.get("/events/{event_id}/stats")
async def get_event_stats(session: EventSeatingSession = Depends(get_event_session)):
    """Dashboard statistics including per-table occupancy"""
    return success_response(message="Event statistics retrieved", data=session.stats())

# -------- tables --------

@router.get("/events/{event_id}/tables")
async def list_tables(session: EventSeatingSession = Depends(get_event_session)):
    """All tables of an event"""
    return success_response(message="Tables retrieved successfully", data=session.list_tables())

@router.post("/events/{event_id}/tables")
async def create_table(
    table_data: TableCreate,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Add a table to the floor plan"""
    table = await session.add_table(table_data)
    await checkin_service.broadcast_seating_update(session, "table_created", {"table": table})
    return success_response(message="Table created successfully", data=table, status_code=201)

@router.put("/events/{event_id}/tables/{table_id}")
async def update_table(
    table_id: str,
    table_data: TableUpdate,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Replace table fields; a capacity cut keeps existing guests seated"""
    table = await session.replace_table(table_id, table_data)
    await checkin_service.broadcast_seating_update(session, "table_updated", {"table": table})
    return success_response(message="Table updated successfully", data=table)

@router.delete("/events/{event_id}/tables/{table_id}")
async def delete_table(
    table_id: str,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Delete a table after unseating its guests"""
    await session.delete_table(table_id)
    await checkin_service.broadcast_seating_update(session, "table_deleted", {"table_id": table_id})
    return success_response(message="Table deleted successfully", data={"deleted_table_id": table_id})

@router.post("/events/{event_id}/tables/{table_id}/move")
async def move_guests_to_table(
    table_id: str,
    move_data: MoveManyRequest,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Move several guests to one table; reports each guest that did not fit"""
    result = await session.move_many(move_data.guest_ids, table_id)
    if result.moved:
        await checkin_service.broadcast_seating_update(session, "assignment", {"moved": result.moved, "table_id": table_id})
    message = f"Moved {len(result.moved)} guests"
    if result.failed:
        message += f", {len(result.failed)} could not be moved"
    return success_response(message=message, data=result)

# -------- guests --------

@router.get("/events/{event_id}/guests")
async def search_guests(
    status: Optional[RsvpStatus] = Query(None),
    table_id: Optional[str] = Query(None),
    checked_in: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    session: EventSeatingSession = Depends(get_event_session)
):
    """Search and list guests for an event"""
    guests = session.list_guests()
    if status is not None:
        guests = GuestRoster.filter_by_status(guests, status)
    if table_id is not None:
        guests = GuestRoster.filter_by_table(guests, table_id)
    if checked_in is not None:
        guests = GuestRoster.filter_by_checked_in(guests, checked_in)
    guests = GuestRoster.search(guests, search)

    total = len(guests)
    offset = (page - 1) * per_page

    return success_response(
        message="Guests retrieved successfully",
        data={
            "guests": guests[offset:offset + per_page],
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "pages": (total + per_page - 1) // per_page
            }
        }
    )

@router.post("/events/{event_id}/guests")
async def create_guest(
    guest_data: GuestCreate,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Add a guest to the roster, unassigned"""
    guest = await session.add_guest(guest_data)
    await checkin_service.broadcast_guest_update(session, guest, "guest_created")
    return success_response(message="Guest created successfully", data=guest, status_code=201)

@router.delete("/events/{event_id}/guests/{guest_id}")
async def delete_guest(
    guest_id: str,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Delete a guest, freeing their seats"""
    await session.delete_guest(guest_id)
    await checkin_service.broadcast_seating_update(session, "guest_deleted", {"guest_id": guest_id})
    return success_response(message="Guest deleted successfully", data={"deleted_guest_id": guest_id})

@router.post("/events/{event_id}/guests/{guest_id}/assign")
async def assign_guest(
    guest_id: str,
    assign_data: AssignRequest,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Seat a guest at a table; 409 when the table is full"""
    guest = await session.assign(guest_id, assign_data.table_id)
    await checkin_service.broadcast_guest_update(session, guest, "assignment")
    return success_response(message="Guest assigned successfully", data=guest)

@router.post("/events/{event_id}/guests/{guest_id}/unassign")
async def unassign_guest(
    guest_id: str,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Remove a guest from their table"""
    guest = await session.unassign(guest_id)
    await checkin_service.broadcast_guest_update(session, guest, "assignment")
    return success_response(message="Guest unassigned successfully", data=guest)

@router.patch("/events/{event_id}/guests/{guest_id}/rsvp")
async def update_rsvp(
    guest_id: str,
    rsvp_data: RsvpUpdate,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Change a guest's RSVP status"""
    guest = await session.set_rsvp_status(guest_id, rsvp_data.rsvp_status)
    await checkin_service.broadcast_guest_update(session, guest, "rsvp")
    return success_response(message="RSVP status updated", data=guest)

# -------- categories --------

@router.get("/events/{event_id}/categories")
async def list_categories(session: EventSeatingSession = Depends(get_event_session)):
    return success_response(message="Categories retrieved successfully", data=session.categories)

@router.post("/events/{event_id}/categories")
async def create_category(
    category_data: CategoryCreate,
    session: EventSeatingSession = Depends(get_event_session)
):
    category = await session.add_category(category_data)
    return success_response(message="Category created successfully", data=category, status_code=201)

# -------- floor-plan annotations --------

@router.get("/events/{event_id}/annotations")
async def list_annotations(session: EventSeatingSession = Depends(get_event_session)):
    return success_response(message="Annotations retrieved successfully", data=session.annotations.list_annotations())

@router.put("/events/{event_id}/annotations")
async def replace_annotations(
    annotations_data: AnnotationsReplace,
    session: EventSeatingSession = Depends(get_event_session)
):
    """Save the whole annotation list of the floor plan"""
    saved = await session.replace_annotations(annotations_data.annotations)
    return success_response(message="Annotations saved successfully", data=saved)
