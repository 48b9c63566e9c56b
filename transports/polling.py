import asyncio
from collections import deque
from typing import Dict, Iterable, List, Optional

from core.events import Event
from core.sessions import SessionDirectory
from logging_config import get_logger

logger = get_logger(__name__)


class Mailbox:
    """Unbounded FIFO of pending updates for one participant."""

    def __init__(self):
        self.updates = deque()
        self.ready = asyncio.Event()
        self.closing = False

    def put(self, update: dict):
        self.updates.append(update)
        self.ready.set()

    def drain(self) -> List[dict]:
        updates = list(self.updates)
        self.updates.clear()
        self.ready.clear()
        return updates


class PollingTransport:
    """Long-poll delivery: every event is queued and picked up by ``await_updates_for``."""

    name = "polling"

    def __init__(self, sessions: Optional[SessionDirectory] = None):
        self.mailboxes: Dict[str, Mailbox] = {}
        # without a directory every participant counts as connected
        self.sessions = sessions

    def mailbox(self, participant_id: str) -> Mailbox:
        box = self.mailboxes.get(participant_id)
        if box is None:
            box = self.mailboxes[participant_id] = Mailbox()
        return box

    def has_mailbox(self, participant_id: str) -> bool:
        return participant_id in self.mailboxes

    def is_live(self, participant_id: str) -> bool:
        return self.sessions is None or participant_id in self.sessions

    def enqueue(self, participant_id: str, event: Event):
        box = self.mailboxes.get(participant_id)
        if box is None or box.closing:
            # a closed session only keeps the final notices queued before release
            if not self.is_live(participant_id):
                logger.debug(f"Dropped {event.name} for {participant_id}: no open session")
                return
            box = self.mailbox(participant_id)
            box.closing = False
        box.put({"event": event.name, "data": event.payload, "timestamp": event.timestamp})
        logger.debug(f"Queued {event.name} for {participant_id} ({len(box.updates)} pending)")

    async def deliver_to_user(self, participant_id: str, event: Event):
        self.enqueue(participant_id, event)

    async def deliver_to_room(self, event: Event):
        for participant_id in event.recipient_ids():
            self.enqueue(participant_id, event)

    async def await_updates_for(self, participant_id: str, timeout: float) -> List[dict]:
        """Wait up to ``timeout`` seconds for updates, then drain them all.

        Returns an empty list on timeout; the client is expected to poll again.
        Several concurrent waits on the same mailbox are allowed, the first one
        to wake up takes the updates.
        """
        box = self.mailbox(participant_id)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            if box.updates:
                updates = box.drain()
                if box.closing:
                    self.mailboxes.pop(participant_id, None)
                return updates
            remaining = deadline - loop.time()
            if remaining <= 0:
                return []
            try:
                await asyncio.wait_for(box.ready.wait(), remaining)
            except asyncio.TimeoutError:
                return []

    async def release(self, participant_ids: Iterable[str]):
        # Final notices (rejection, session end) stay queued until picked up
        for participant_id in participant_ids:
            box = self.mailboxes.get(participant_id)
            if box is None:
                continue
            if box.updates:
                box.closing = True
            else:
                del self.mailboxes[participant_id]
