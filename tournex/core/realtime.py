"""
WebSocket fan-out for tournament rooms.

Clients subscribe to ``tournament:{id}`` and receive JSON frames of the form
``{"event": <name>, "data": <payload>}``. Delivery is at-most-once: a socket
that fails to receive is dropped, and emit never raises.
"""

import logging
from typing import Any, Dict, List

from fastapi import WebSocket

logger = logging.getLogger(__name__)

TOURNAMENT_UPDATED = "tournament_updated"
PARTICIPANT_JOINED = "participant_joined"
PARTICIPANT_BANNED = "participant_banned"
MATCH_REPORTED = "match_reported"


def tournament_room(tournament_id: int) -> str:
    return f"tournament:{tournament_id}"


class ConnectionManager:
    def __init__(self):
        # room -> list of connected WebSockets
        self.rooms: Dict[str, List[WebSocket]] = {}

    async def connect(self, room: str, websocket: WebSocket):
        await websocket.accept()
        self.rooms.setdefault(room, []).append(websocket)
        logger.info(f"Subscriber joined {room} ({len(self.rooms[room])} total)")

    def disconnect(self, room: str, websocket: WebSocket):
        if room in self.rooms:
            if websocket in self.rooms[room]:
                self.rooms[room].remove(websocket)
            if not self.rooms[room]:
                del self.rooms[room]
            logger.info(f"Subscriber left {room}")

    def subscriber_count(self, room: str) -> int:
        return len(self.rooms.get(room, []))

    async def emit(self, room: str, event: str, data: Any):
        """Broadcast an event to every subscriber of a room."""
        if room not in self.rooms:
            logger.debug(f"No subscribers in {room} for {event}")
            return

        message = {"event": event, "data": data}
        dead = []
        for ws in list(self.rooms[room]):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping subscriber in {room} after failed {event} send: {e}")
                dead.append(ws)

        for ws in dead:
            self.disconnect(room, ws)


manager = ConnectionManager()


async def emit_tournament_event(tournament_id: int, event: str, data: Any):
    try:
        await manager.emit(tournament_room(tournament_id), event, data)
    except Exception:
        logger.exception(f"Failed to emit {event} for tournament {tournament_id}")
