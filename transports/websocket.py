import asyncio
import json
from typing import Dict, Iterable, List

from fastapi import WebSocket

from core.events import Event
from logging_config import get_logger

logger = get_logger(__name__)


class WebSocketTransport:
    """Persistent-connection delivery. The connection id is the participant id."""

    name = "websocket"

    def __init__(self):
        # Format: {participant_id: websocket}
        self.connections: Dict[str, WebSocket] = {}

    def register(self, participant_id: str, websocket: WebSocket):
        self.connections[participant_id] = websocket
        logger.debug(f"Registered connection {participant_id} (local connections: {len(self.connections)})")

    def unregister(self, participant_id: str):
        if self.connections.pop(participant_id, None) is not None:
            logger.debug(f"Removed connection {participant_id} from local tracking")

    async def _send(self, participant_id: str, message: str):
        websocket = self.connections.get(participant_id)
        if websocket is None:
            logger.debug(f"No connection for {participant_id}, dropping message")
            return
        try:
            await websocket.send_text(message)
        except Exception as e:
            logger.warning(f"Error sending to connection {participant_id}: {e}")
            self.unregister(participant_id)

    async def deliver_to_user(self, participant_id: str, event: Event):
        await self._send(participant_id, json.dumps(event.to_message()))

    async def deliver_to_room(self, event: Event):
        message = json.dumps(event.to_message())
        recipients = event.recipient_ids()
        if recipients:
            await asyncio.gather(*(self._send(pid, message) for pid in recipients))
            logger.debug(f"Broadcasted {event.name} to {len(recipients)} connections in room {event.target}")

    async def await_updates_for(self, participant_id: str, timeout: float) -> List[dict]:
        # Pushed immediately, nothing is buffered
        return []

    async def release(self, participant_ids: Iterable[str]):
        # The socket stays open; the participant may join another room on it
        for participant_id in participant_ids:
            logger.debug(f"Session closed for connection {participant_id}")
