"""
Notification sinks for session and orphan events.
"""
import asyncio
from typing import Any, Protocol

from fastapi import WebSocket

from raceledger.core.logging import get_logger

logger = get_logger(__name__)

SESSION_COMPLETED = "sessionCompleted"
ORPHANED_SESSION = "orphanedSession"


class NotificationSink(Protocol):
    """Protocol for anything that receives engine events."""

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        """
        Deliver one event.

        Args:
            event: Event name (sessionCompleted, orphanedSession)
            payload: JSON-serializable body
        """
        ...


class LoggingNotifier:
    """Sink that only logs; used when no subscribers are wired up."""

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        logger.info(f"🔔 {event}: {', '.join(f'{k}={v}' for k, v in payload.items() if k != 'results')}")


class WebSocketNotifier:
    """
    Broadcasts events to connected WebSocket clients.

    Services publish from worker threads; messages are handed to the
    application's event loop captured at startup.
    """

    def __init__(self):
        self._connections: set[WebSocket] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)
        logger.info(f"Notification client connected ({len(self._connections)} total)")

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)
        logger.info(f"Notification client disconnected ({len(self._connections)} total)")

    async def broadcast(self, message: dict[str, Any]) -> None:
        for websocket in list(self._connections):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping notification client: {e}")
                self.disconnect(websocket)

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        message = {"event": event, "data": payload}
        if self._loop is None or self._loop.is_closed():
            logger.debug(f"No event loop attached, {event} not broadcast")
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._loop.create_task(self.broadcast(message))
        else:
            asyncio.run_coroutine_threadsafe(self.broadcast(message), self._loop)
