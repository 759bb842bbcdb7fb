"""
WebSocket manager for real-time updates
"""

import json
import logging
from typing import Dict, List
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends

from seating.api.deps import get_session_factory
from seating.core.errors import SeatingError
from seating.services.event_session import EventSeatingSession
from seating.services.repositories import RecordStore

logger = logging.getLogger(__name__)

class WebSocketManager:
    """Staff screens connected per event, for live check-in and seating updates"""

    def __init__(self):
        # event_id -> list of websockets
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, event_id: str):
        """Accept WebSocket connection and add it to the event room"""
        await websocket.accept()
        self.active_connections.setdefault(event_id, []).append(websocket)
        logger.info(f"WebSocket connected to event {event_id}. Total connections: {self.get_connection_count(event_id)}")

    def disconnect(self, websocket: WebSocket, event_id: str):
        """Remove WebSocket connection from the event room"""
        room = self.active_connections.get(event_id)
        if not room or websocket not in room:
            return
        room.remove(websocket)
        logger.info(f"WebSocket disconnected from event {event_id}. Remaining connections: {len(room)}")
        if not room:
            del self.active_connections[event_id]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to a single screen"""
        try:
            await websocket.send_text(json.dumps(message))
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.error(f"Error sending personal message: {e}")

    async def broadcast_to_event(self, event_id: str, message: dict):
        """Send a message to every screen watching an event"""
        connections = list(self.active_connections.get(event_id, []))
        if not connections:
            logger.debug(f"No active connections for event {event_id}")
            return

        payload = json.dumps(message)
        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(payload)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.error(f"Error broadcasting to websocket: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket, event_id)

    def get_connection_count(self, event_id: str) -> int:
        return len(self.active_connections.get(event_id, []))

    def get_all_connection_counts(self) -> Dict[str, int]:
        return {
            event_id: len(connections)
            for event_id, connections in self.active_connections.items()
        }

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

# Router for WebSocket endpoints
router = APIRouter()

@router.websocket("/events/{event_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    event_id: str,
    session_factory=Depends(get_session_factory)
):
    """Live updates for one event; the first message carries current stats.

    The database session only lives for the initial load, an idle screen
    holds no pooled connection.
    """
    db = session_factory()
    try:
        session = EventSeatingSession(event_id, RecordStore(db))
        await session.load()
    except SeatingError as e:
        await websocket.close(code=4004, reason=e.message)
        return
    finally:
        db.close()

    await websocket_manager.connect(websocket, event_id)

    try:
        await websocket_manager.send_personal_message({
            "type": "connection",
            "event_id": event_id,
            "connection_count": websocket_manager.get_connection_count(event_id),
            "stats": session.stats().model_dump(mode="json", by_alias=True),
        }, websocket)

        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue

            # Heartbeat
            if isinstance(client_message, dict) and client_message.get("type") == "ping":
                await websocket_manager.send_personal_message({
                    "type": "pong",
                    "timestamp": client_message.get("timestamp"),
                }, websocket)

    except WebSocketDisconnect:
        pass
    finally:
        websocket_manager.disconnect(websocket, event_id)

@router.get("/stats")
async def websocket_stats():
    """Connection counts per event (for debugging)"""
    counts = websocket_manager.get_all_connection_counts()
    return {
        "total_events_with_connections": len(counts),
        "connection_counts": counts,
        "total_connections": sum(counts.values()),
    }
