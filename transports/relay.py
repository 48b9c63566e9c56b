import asyncio
from functools import partial
from typing import Iterable, List

import pusher

from constants import PUSHER_APP_ID, PUSHER_CLUSTER, PUSHER_KEY, PUSHER_SECRET
from core.events import Event
from logging_config import get_logger
from redis_keys import RELAY_ROOM_CHANNEL, RELAY_USER_CHANNEL

logger = get_logger(__name__)

# Pusher caps a single trigger call at 100 channels
MAX_CHANNELS_PER_TRIGGER = 100


def room_channel(room_id: str) -> str:
    return RELAY_ROOM_CHANNEL.format(room_id=room_id)


def user_channel(participant_id: str) -> str:
    return RELAY_USER_CHANNEL.format(participant_id=participant_id)


class PusherRelayBackend:
    name = "pusher"

    def __init__(self, client: pusher.Pusher = None):
        self.client = client or pusher.Pusher(
            app_id=PUSHER_APP_ID,
            key=PUSHER_KEY,
            secret=PUSHER_SECRET,
            cluster=PUSHER_CLUSTER,
            ssl=True,
        )

    def trigger(self, channels, event: str, data: dict):
        self.client.trigger(channels, event, data)

    def authorize_channel(self, socket_id: str, channel: str) -> dict:
        return self.client.authenticate(channel=channel, socket_id=socket_id)


class RelayTransport:
    """Delivery through a third-party relay.

    Broadcasts go to the room channel, point-to-point events to the private
    per-participant channel. A broadcast that excludes the actor is fanned out
    over the recipients' private channels instead, so the actor never sees it.
    """

    name = "relay"

    def __init__(self, backend):
        self.backend = backend

    async def _trigger(self, channels, event: Event):
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, partial(self.backend.trigger, channels, event.name, event.payload))

    async def deliver_to_user(self, participant_id: str, event: Event):
        await self._trigger(user_channel(participant_id), event)
        logger.debug(f"Triggered {event.name} on {user_channel(participant_id)}")

    async def deliver_to_room(self, event: Event):
        if event.exclude is None:
            await self._trigger(room_channel(event.target), event)
            logger.debug(f"Triggered {event.name} on {room_channel(event.target)}")
            return
        channels = [user_channel(pid) for pid in event.recipient_ids()]
        for start in range(0, len(channels), MAX_CHANNELS_PER_TRIGGER):
            await self._trigger(channels[start:start + MAX_CHANNELS_PER_TRIGGER], event)
        logger.debug(f"Triggered {event.name} on {len(channels)} private channels of room {event.target}")

    async def await_updates_for(self, participant_id: str, timeout: float) -> List[dict]:
        return []

    async def release(self, participant_ids: Iterable[str]):
        for participant_id in participant_ids:
            logger.debug(f"Relay session closed for {participant_id}")

    def authorize_channel(self, socket_id: str, channel: str) -> dict:
        return self.backend.authorize_channel(socket_id, channel)
