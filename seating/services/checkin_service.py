"""
Guest check-in and seating change broadcasting
"""

from datetime import datetime
from typing import Any, Dict, Optional

from seating.api.ws import WebSocketManager
from seating.schemas.guest import GuestRecord
from seating.services.event_session import EventSeatingSession
from seating.utils.responses import to_wire

class CheckInService:
    """Applies check-ins and pushes every seating change to connected screens.

    Each broadcast carries freshly computed stats so dashboards never have
    to keep counters of their own.
    """

    def __init__(self, websocket_manager: WebSocketManager):
        self.websocket_manager = websocket_manager

    async def check_in_guest(
        self,
        session: EventSeatingSession,
        guest_id: str,
        checked_in: bool = True,
    ) -> Dict[str, Any]:
        """Mark a guest as arrived (or clear it) and broadcast the update"""
        was_checked_in = session.get_guest(guest_id).checked_in
        guest = await session.set_checked_in(guest_id, checked_in)
        stats = to_wire(session.stats())

        message = {
            "type": "checkin",
            "guest": to_wire(guest),
            "was_already_checked_in": was_checked_in,
            "stats": stats,
            "timestamp": datetime.utcnow().isoformat(),
        }
        await self.websocket_manager.broadcast_to_event(session.event_id, message)

        return {"guest": to_wire(guest), "was_already_checked_in": was_checked_in, "stats": stats}

    async def broadcast_seating_update(
        self,
        session: EventSeatingSession,
        update_type: str = "seating_update",
        payload: Optional[Dict[str, Any]] = None,
    ):
        """Broadcast a seating change with the stats it produced"""
        message = {
            "type": update_type,
            "timestamp": datetime.utcnow().isoformat(),
            "stats": to_wire(session.stats()),
            **to_wire(payload or {}),
        }
        await self.websocket_manager.broadcast_to_event(session.event_id, message)

    async def broadcast_guest_update(
        self,
        session: EventSeatingSession,
        guest: GuestRecord,
        update_type: str = "guest_update",
    ):
        """Broadcast an individual guest change"""
        await self.broadcast_seating_update(session, update_type, {"guest": to_wire(guest)})
