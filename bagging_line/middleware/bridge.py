import asyncio
import logging
from typing import List, Optional

from fastapi import WebSocket

from ..simulation.flow import Event

logger = logging.getLogger("EventBridge")


# --- WebSocket Manager ---
class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: dict):
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning(f"Error sending to client, dropping it: {e}")
                self.disconnect(connection)


class EventBridge:
    """
    Forwards line events from the tick thread to WebSocket clients.

    Dispatcher callbacks run in the simulation thread; broadcasts are handed
    to the server loop captured at startup.
    """
    def __init__(self, manager: ConnectionManager):
        self.manager = manager
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop

    def on_event(self, event: Event):
        if not self.manager.active_connections:
            return
        if self.loop and self.loop.is_running():
            asyncio.run_coroutine_threadsafe(self.manager.broadcast(event.to_dict()), self.loop)
        else:
            logger.debug("Event loop not ready, event not streamed")
