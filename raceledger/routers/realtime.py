# raceledger/routers/realtime.py
"""
Realtime notifications (WebSocket).
"""
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from raceledger.core.deps import get_notifier
from raceledger.core.logging import get_logger
from raceledger.services.notifications import WebSocketNotifier

router = APIRouter(prefix="/realtime", tags=["Realtime"])

logger = get_logger(__name__)


@router.websocket("/notifications")
async def notifications_endpoint(
    websocket: WebSocket,
    notifier: WebSocketNotifier = Depends(get_notifier),
):
    """
    Push sessionCompleted and orphanedSession events to the client.

    Messages are {"event": ..., "data": {...}}. Anything the client sends is ignored.
    """
    await notifier.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        notifier.disconnect(websocket)
