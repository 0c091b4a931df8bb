import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from tournex.api.dependencies import get_db
from tournex.core import realtime
from tournex.services import tournament_service

logger = logging.getLogger(__name__)

router = APIRouter()

KEEPALIVE_SECONDS = 30.0


@router.websocket("/ws/tournaments/{tournament_id}")
async def tournament_updates(websocket: WebSocket, tournament_id: int, db: Session = Depends(get_db)):
    """Spectators subscribe here to receive a tournament's live events."""
    if tournament_service.get_tournament(db, tournament_id) is None:
        await websocket.close(code=4004, reason="Tournament not found")
        return
    # The session is not needed for the life of the subscription
    db.close()

    room = realtime.tournament_room(tournament_id)
    await realtime.manager.connect(room, websocket)

    try:
        # Subscribers only listen; reads exist to notice disconnects
        while True:
            try:
                await asyncio.wait_for(websocket.receive_text(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                try:
                    await websocket.send_json({"event": "ping", "data": None})
                except Exception as e:
                    logger.debug(f"Keepalive failed in {room}: {e}")
                    break
    except WebSocketDisconnect:
        pass
    finally:
        realtime.manager.disconnect(room, websocket)
